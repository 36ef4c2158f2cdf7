"""Inline appearance references.

Scene descriptions may embed placeholders such as
``{{appearanceTag: Alice}}'s description``; they are replaced by the
character's appearance tags before matching and generation.
"""

import re
from collections.abc import Callable, Iterable

from scene_tagger.models import AppearanceVarMap, Character

AppearanceLookup = Callable[[str], str]

_REF_RE = re.compile(
    r"\{\{appearanceTag:\s*([^}]+?)\s*\}\}(?:\s*['‘’]?s\s+description)?",
    re.IGNORECASE,
)


def no_appearance(name: str) -> str:
    return ""


def build_appearance_var_map(
    contacts: Iterable[Character],
    include_names: Iterable[str],
    lookup: AppearanceLookup,
) -> AppearanceVarMap:
    """Collect appearance tags for every contact, then for hint names not yet covered."""
    var_map: AppearanceVarMap = {}
    candidates = [c.name for c in contacts] + [str(n or "").strip() for n in include_names]
    for name in candidates:
        key = name.lower()
        if not key or key in var_map:
            continue
        tags = str(lookup(name) or "").strip()
        if tags:
            var_map[key] = tags
    return var_map


def resolve_references(text: str, var_map: AppearanceVarMap) -> str:
    """Replace appearance placeholders with tags; unknown names become ''."""
    if not text:
        return ""
    lookup = {
        name.strip().lower(): tags.strip()
        for name, tags in var_map.items()
        if name and name.strip() and tags and tags.strip()
    }
    return _REF_RE.sub(lambda m: lookup.get(m.group(1).strip().lower(), ""), text)
