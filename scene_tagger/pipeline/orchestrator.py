"""Pipeline orchestrator — turns one scene description into an image prompt.

Every image path (messenger, SNS, user) goes through run_pipeline().

Flow:
  1. Blank input → empty result.
  2. Build the appearance variable map (unless given) and expand
     {{appearanceTag: Name}} references in the input.
  3. Match characters: hint names first, then contacts mentioned in the text.
  4. Scene tags:
       input already an English tag list → sanitize it, no model call
       otherwise → build the prompt, call the generation adapter, sanitize.
     A missing adapter or a failed call yields no scene tags.
  5. No scene tags → appearance groups of the matched characters only.
  6. Otherwise split [Name: tags] blocks out of the answer. Blocks the model
     chose are authoritative; without any, matched characters are used.
  7. Compose "weight::scene::, [Name: tags], ...".
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from typing import Any

from pydantic import ValidationError

from scene_tagger.composer import compose
from scene_tagger.language import contains_disallowed_language
from scene_tagger.llm import GenerationAdapter, GenerationError
from scene_tagger.matcher import match_characters
from scene_tagger.models import (
    AppearanceVarMap,
    Character,
    MatchedCharacter,
    PipelineResult,
    RouteSettings,
)
from scene_tagger.prompts import PromptError, PromptMode, build_prompt, with_description
from scene_tagger.references import (
    AppearanceLookup,
    build_appearance_var_map,
    no_appearance,
    resolve_references,
)
from scene_tagger.sanitizer import extract_appearance_blocks, sanitize
from scene_tagger.settings import get_route_settings

logger = logging.getLogger(__name__)

MIN_TAG_LIST_PARTS = 2
MAX_TAG_LENGTH = 40

_SENTENCE_PUNCT_RE = re.compile(r"[.!?'\"`]")
_APPEARANCE_BLOCK_RE = re.compile(r"\[[^\]]+:[^\]]+\]")


async def run_pipeline(
    raw_input: str,
    *,
    contacts: Iterable[Character | dict[str, Any]] = (),
    include_names: Iterable[str] = (),
    appearance_lookup: AppearanceLookup | None = None,
    appearance_var_map: AppearanceVarMap | None = None,
    tag_weight: float = 0,
    additional_prompt: str = "",
    adapter: GenerationAdapter | None = None,
    route: RouteSettings | None = None,
) -> PipelineResult:
    """Convert a raw scene description into scene tags, appearance groups and a final prompt."""
    if not raw_input or not isinstance(raw_input, str) or not raw_input.strip():
        return PipelineResult()

    registry = _load_contacts(contacts)
    hints = [str(n or "").strip() for n in include_names]
    lookup = appearance_lookup or no_appearance
    var_map = appearance_var_map or build_appearance_var_map(registry, hints, lookup)

    # 2. References
    resolved = resolve_references(raw_input, var_map)

    # 3. Characters
    matched = match_characters(resolved, hints, registry, lookup)
    logger.debug("matched characters: %s", [c.name for c in matched])

    # 4. Scene tags
    scene_output = await generate_scene_tags(
        resolved,
        adapter=adapter,
        characters=matched,
        character_aware=bool(matched or registry),
        additional_prompt=additional_prompt,
        route=route,
    )

    # 5. Appearance-only fallback
    if not scene_output:
        groups = _appearance_groups(matched)
        if not groups:
            return PipelineResult()
        return PipelineResult(
            appearance_groups=groups,
            final_prompt=compose("", groups, tag_weight),
            characters=matched,
        )

    # 6. Split appearance blocks from scene tags
    scene_tags, model_groups = extract_appearance_blocks(scene_output)
    groups = model_groups or _appearance_groups(matched)

    # 7. Compose
    return PipelineResult(
        scene_tags=scene_tags,
        appearance_groups=groups,
        final_prompt=compose(scene_tags, groups, tag_weight),
        characters=matched,
    )


async def generate_scene_tags(
    text: str,
    *,
    adapter: GenerationAdapter | None,
    characters: Sequence[MatchedCharacter] = (),
    character_aware: bool | None = None,
    additional_prompt: str = "",
    route: RouteSettings | None = None,
) -> str:
    """Return sanitized English tags for text, or '' when none can be produced."""
    trimmed = (text or "").strip()
    if not trimmed:
        return ""

    if not contains_disallowed_language(trimmed) and looks_like_tag_list(trimmed):
        logger.debug("input is already a tag list; skipping generation")
        return sanitize(trimmed)

    if adapter is None:
        logger.warning("No generation backend available; cannot convert tags")
        return ""

    if character_aware is None:
        character_aware = bool(characters)
    mode = PromptMode.CHARACTER_AWARE if character_aware else PromptMode.LEGACY

    try:
        prompt = with_description(build_prompt(mode, characters, additional_prompt), trimmed)
        raw = await adapter.invoke(prompt, route)
    except (GenerationError, PromptError) as e:
        logger.warning("Scene tag generation failed: %s", e)
        return ""

    return sanitize(raw)


def looks_like_tag_list(text: str) -> bool:
    """Comma-separated short parts without sentence punctuation.

    A single part only counts when the text holds a [Name: tags] block.
    """
    parts = [p.strip() for p in text.split(",") if p.strip()]
    if not parts:
        return False
    if len(parts) < MIN_TAG_LIST_PARTS and not _APPEARANCE_BLOCK_RE.search(text):
        return False
    return all(
        len(p) <= MAX_TAG_LENGTH and not _SENTENCE_PUNCT_RE.search(p)
        for p in parts
    )


def pipeline_options(settings: dict[str, Any] | None) -> dict[str, Any]:
    """run_pipeline keyword arguments taken from the extension settings."""
    settings = settings or {}
    try:
        tag_weight = float(settings.get("tagWeight") or 0)
    except (TypeError, ValueError):
        tag_weight = 0
    return {
        "route": get_route_settings(settings),
        "tag_weight": tag_weight,
        "additional_prompt": str(settings.get("additionalPrompt") or "").strip(),
    }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_contacts(contacts: Iterable[Character | dict[str, Any]]) -> list[Character]:
    registry: list[Character] = []
    for contact in contacts or ():
        if isinstance(contact, Character):
            registry.append(contact)
            continue
        try:
            registry.append(Character.model_validate(contact))
        except ValidationError as e:
            logger.warning("Skipping invalid contact %r: %s", contact, e)
    return registry


def _appearance_groups(characters: Sequence[MatchedCharacter]) -> list[str]:
    return [g for g in (c.appearance_group() for c in characters) if g]
