"""Model output → clean tag string.

The answer the model gives is untrusted: it may contain reasoning text,
markdown fences, pipes instead of commas, Korean, or half-written bracket
blocks. sanitize() never raises; the worst case is an empty string.

Bracketed blocks ("[민지: long hair, blue eyes]") are set aside before the
language check because character names inside them may legitimately be
Korean. Only the text outside brackets must be English.
"""

import logging
import re

from scene_tagger.language import contains_disallowed_language

logger = logging.getLogger(__name__)

_REASONING_CLOSE_RE = re.compile(r"<\s*/\s*img-gen\s*>", re.IGNORECASE)
_REASONING_OPEN_RE = re.compile(r"<\s*img-gen\s*>", re.IGNORECASE)
_FENCE_BLOCK_RE = re.compile(r"```.*?```", re.DOTALL)
_FENCE_MARKER_RE = re.compile(r"```[\w+-]*")
_LEADING_NOISE_RE = re.compile(r"^[^a-zA-Z0-9_(\[]*")
_BRACKET_RE = re.compile(r"\[[^\]]+\]")
_APPEARANCE_BLOCK_RE = re.compile(r"\[[^\]]+:[^\]]+\]")
_PLACEHOLDER_RE = re.compile(r"\x00(\d+)\x00")


def strip_reasoning(text: str) -> str:
    """Keep only what follows the last </img-gen>.

    An <img-gen> block that is never closed is cut off together with
    everything after it.
    """
    closes = list(_REASONING_CLOSE_RE.finditer(text))
    if closes:
        return text[closes[-1].end():]
    opening = _REASONING_OPEN_RE.search(text)
    if opening:
        logger.warning("Unterminated reasoning block in model output; dropping it")
        return text[:opening.start()]
    return text


def strip_fences(text: str) -> str:
    """Drop complete ``` blocks along with their content.

    If that leaves nothing, the whole answer was fenced: keep the content and
    remove only the markers.
    """
    stripped = _FENCE_BLOCK_RE.sub("", text)
    if not stripped.strip():
        stripped = text
    return _FENCE_MARKER_RE.sub("", stripped)


def _normalize_plain(text: str) -> str:
    text = text.replace("_", " ").replace("[", "").replace("]", "")
    return re.sub(r"\s+", " ", text)


def _restore_token(token: str, blocks: list[str]) -> str:
    # re.split with a capture group alternates plain text and block indices
    parts = _PLACEHOLDER_RE.split(token)
    restored = [
        blocks[int(part)] if i % 2 else _normalize_plain(part)
        for i, part in enumerate(parts)
    ]
    return "".join(restored).strip()


def sanitize(raw: str | None) -> str:
    """Strip non-tag noise from model output; drop scene tags if Korean remains."""
    if not raw or not isinstance(raw, str):
        return ""

    cleaned = strip_reasoning(raw.replace("\x00", ""))
    cleaned = strip_fences(cleaned).replace("|", ",")
    cleaned = _LEADING_NOISE_RE.sub("", cleaned).strip()

    blocks: list[str] = []

    def _stash(match: re.Match) -> str:
        blocks.append(match.group(0))
        return f"\x00{len(blocks) - 1}\x00"

    without_brackets = _BRACKET_RE.sub(_stash, cleaned)

    if contains_disallowed_language(without_brackets):
        logger.warning("Model output contains Korean outside bracket blocks; discarding scene tags")
        return ", ".join(blocks)

    tokens = (_restore_token(t, blocks) for t in without_brackets.split(","))
    return ", ".join(t for t in tokens if t)


def extract_appearance_blocks(text: str) -> tuple[str, list[str]]:
    """Split sanitized output into (scene tags, ["Name: tags", ...]).

    Only bracket blocks with a colon count as appearance blocks; their outer
    brackets are removed. The rest is re-split on commas and pipes.
    """
    groups = [
        block[1:-1].strip()
        for block in _APPEARANCE_BLOCK_RE.findall(text or "")
    ]
    remainder = _APPEARANCE_BLOCK_RE.sub("", text or "").replace("|", ",")
    scene = ", ".join(s.strip() for s in remainder.split(",") if s.strip())
    return scene, [g for g in groups if g]
