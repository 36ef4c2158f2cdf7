"""Character selection for a scene.

Hint names (e.g. the current speaker) are always included. Every other
registry character is included when its name, display name or sub name is
mentioned in the scene text:
  - plain ASCII word names ("Al", "bob_2") must match on word boundaries, so
    "Al" does not match inside "Alice";
  - anything else (spaces, Hangul, punctuation) is a substring match.
"""

import re
from collections.abc import Iterable, Sequence

from scene_tagger.models import Character, MatchedCharacter
from scene_tagger.references import AppearanceLookup, no_appearance

_WORD_NAME_RE = re.compile(r"^[a-z0-9_]+$", re.IGNORECASE)


def is_name_mentioned(name: str, text_lower: str) -> bool:
    """Check whether name appears in already lower-cased text."""
    if not name:
        return False
    norm = name.lower()
    if _WORD_NAME_RE.match(norm):
        pattern = rf"(^|[^a-z0-9_]){re.escape(norm)}([^a-z0-9_]|$)"
        return re.search(pattern, text_lower) is not None
    return norm in text_lower


def _find_contact(registry: Sequence[Character], name_lower: str) -> Character | None:
    for contact in registry:
        if any(n.lower() == name_lower for n in contact.names()):
            return contact
    return None


def match_characters(
    text: str,
    hints: Iterable[str],
    registry: Sequence[Character],
    lookup: AppearanceLookup = no_appearance,
) -> list[MatchedCharacter]:
    """Return the characters relevant to text: hints first, then mentioned contacts."""
    text_lower = (text or "").lower()
    matched: list[MatchedCharacter] = []
    seen: set[str] = set()

    for hint in hints:
        clean = str(hint or "").strip()
        if not clean:
            continue
        normalized = clean.lower()
        if normalized in seen:
            continue
        contact = _find_contact(registry, normalized)
        name = contact.name if contact else clean
        seen.add(normalized)
        if name.lower() != normalized and name.lower() in seen:
            # another alias of the same contact was already hinted
            continue
        seen.add(name.lower())
        matched.append(MatchedCharacter(
            name=name,
            appearance_tags=str(lookup(name) or "").strip(),
        ))

    if not text_lower:
        return matched

    for contact in registry:
        names = contact.names()
        if any(n.lower() in seen for n in names):
            continue
        if any(is_name_mentioned(n, text_lower) for n in names):
            seen.add(contact.name.lower())
            matched.append(MatchedCharacter(
                name=contact.name,
                appearance_tags=str(lookup(contact.name) or "").strip(),
            ))

    return matched
