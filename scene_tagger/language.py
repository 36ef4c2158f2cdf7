"""Disallowed-language detection.

Image APIs only accept English tags, so any Korean text (Hangul syllables,
Hangul Jamo, compatibility Jamo) is treated as untranslated source.
"""

import re

_KOREAN_RE = re.compile(r"[\uAC00-\uD7AF\u1100-\u11FF\u3130-\u318F]")


def contains_disallowed_language(text: str | None) -> bool:
    """Return True if text contains at least one Korean character."""
    if not text:
        return False
    return _KOREAN_RE.search(text) is not None
