"""Final image prompt assembly.

Format: ``weight::scene tags::, [Name1: appearance1], [Name2: appearance2]``.
The weight wrapper is present only for a positive weight; either side may be
missing. Korean never passes through: scene tags containing it are dropped,
and so is any appearance group whose tags (the part after the first colon)
contain it.
"""

from collections.abc import Iterable

from scene_tagger.language import contains_disallowed_language


def safe_tags(tags: str | None) -> str:
    """Return trimmed tags, or '' if empty or containing Korean."""
    if not tags or not isinstance(tags, str):
        return ""
    trimmed = tags.strip()
    if contains_disallowed_language(trimmed):
        return ""
    return trimmed


def safe_appearance_group(group: str | None) -> str:
    """Validate a "Name: tags" group; the name may be in any language."""
    if not group or not isinstance(group, str):
        return ""
    trimmed = group.strip()
    colon = trimmed.find(":")
    if colon > 0:
        tags = trimmed[colon + 1:].strip()
        if not tags or contains_disallowed_language(tags):
            return ""
        return trimmed
    return safe_tags(trimmed)


def format_weight(weight: float) -> str:
    weight = float(weight)
    return str(int(weight)) if weight.is_integer() else repr(weight)


def compose(
    scene_tags: str,
    appearance_groups: str | Iterable[str] | None = None,
    weight: float = 0,
) -> str:
    """Combine scene tags and appearance groups into the final prompt."""
    scene = safe_tags(scene_tags)
    if isinstance(appearance_groups, str):
        appearance_groups = [appearance_groups]
    groups = [g for g in map(safe_appearance_group, appearance_groups or []) if g]
    wrapped = ", ".join(f"[{g}]" for g in groups)

    try:
        weight = float(weight or 0)
    except (TypeError, ValueError):
        weight = 0
    if scene and weight > 0:
        scene = f"{format_weight(weight)}::{scene}::"

    return ", ".join(part for part in (scene, wrapped) if part)
