"""Tests for model output sanitizing and appearance block extraction."""

import pytest

from scene_tagger.sanitizer import extract_appearance_blocks, sanitize, strip_fences, strip_reasoning


# ── strip_reasoning ────────────────────────────────────────


def test_strip_reasoning_keeps_tail():
    assert strip_reasoning("<img-gen>think</img-gen>\nanswer") == "\nanswer"


def test_strip_reasoning_marker_whitespace_and_case():
    assert strip_reasoning("<IMG-GEN>x< / Img-Gen >tail") == "tail"


def test_strip_reasoning_uses_last_closing_marker():
    text = "<img-gen>a</img-gen>\n<img-gen>b</img-gen>\nfinal"
    assert strip_reasoning(text) == "\nfinal"


def test_strip_reasoning_unterminated_block_dropped():
    assert strip_reasoning("1girl, cafe <img-gen>민지가 카페에") == "1girl, cafe "


def test_strip_reasoning_no_markers():
    assert strip_reasoning("1girl, cafe") == "1girl, cafe"


# ── strip_fences ───────────────────────────────────────────


def test_strip_fences_drops_block_content():
    assert strip_fences("```json\n{}\n```\n1girl").strip() == "1girl"


def test_strip_fences_all_fenced_keeps_content():
    assert strip_fences("```\n1girl, cafe\n```").strip() == "1girl, cafe"


def test_strip_fences_stray_marker_removed():
    assert strip_fences("1girl, cafe```").strip() == "1girl, cafe"


# ── sanitize ───────────────────────────────────────────────


def test_reasoning_block_discarded():
    raw = "<img-gen>reasoning...</img-gen>\n1girl, cafe, indoor, [Alice: long hair, blue eyes]"
    assert sanitize(raw) == "1girl, cafe, indoor, [Alice: long hair, blue eyes]"


def test_korean_reasoning_discarded():
    raw = "<img-gen>철수와 영희가 카페에 간다.</img-gen>\n2girls, cafe"
    assert sanitize(raw) == "2girls, cafe"


def test_unterminated_korean_reasoning_does_not_leak():
    assert sanitize("<img-gen>철수와 영희가 카페에 간다") == ""


def test_fenced_note_before_answer_dropped():
    assert sanitize("```\nnote about the scene\n```\n1girl, cafe") == "1girl, cafe"


def test_fenced_korean_note_does_not_discard_answer():
    assert sanitize("```\n민지가 카페에 있다\n```\n1girl, cafe") == "1girl, cafe"


def test_fully_fenced_answer_kept():
    assert sanitize("```text\n1girl, cafe\n```") == "1girl, cafe"


def test_pipes_become_commas():
    assert sanitize("1girl | cafe|indoor") == "1girl, cafe, indoor"


def test_leading_noise_trimmed():
    assert sanitize("**Tags:** 1girl, cafe") == "Tags:** 1girl, cafe"
    assert sanitize("- (masterpiece), 1girl") == "(masterpiece), 1girl"


def test_underscores_and_whitespace_normalized():
    assert sanitize("looking_at_viewer,   upper   body ,,  ") == "looking at viewer, upper body"


def test_bracket_content_not_normalized():
    raw = "1girl, [Alice: long_hair,  blue eyes]"
    assert sanitize(raw) == "1girl, [Alice: long_hair,  blue eyes]"


def test_korean_name_in_bracket_allowed():
    raw = "1girl, cafe, [민지: long hair, blue eyes]"
    assert sanitize(raw) == "1girl, cafe, [민지: long hair, blue eyes]"


def test_korean_scene_tags_keep_only_brackets():
    raw = "카페에서 커피를 마시는 [민지: long hair], 그리고 웃음"
    assert sanitize(raw) == "[민지: long hair]"


def test_korean_scene_tags_without_brackets():
    assert sanitize("1girl, 카페, indoor") == ""


def test_unterminated_bracket_does_not_leave_stray_brackets():
    result = sanitize("1girl, cafe, [Alice: long hair, blue eyes")
    assert "[" not in result
    assert result.startswith("1girl, cafe, ")


def test_nested_colons_in_bracket():
    assert sanitize("1girl, [Alice: hair: long, eyes: blue]") == "1girl, [Alice: hair: long, eyes: blue]"


def test_bracket_glued_to_tag():
    assert sanitize("smile [Alice: long hair]") == "smile [Alice: long hair]"


def test_placeholder_lookalike_text_is_plain_text():
    assert sanitize("__BRACKET_0__, cafe") == "BRACKET 0, cafe"


@pytest.mark.parametrize("raw", [None, "", "   ", "```\n```", "<img-gen>only thinking</img-gen>"])
def test_empty_results(raw):
    assert sanitize(raw) == ""


def test_non_string_input():
    assert sanitize(123) == ""  # type: ignore[arg-type]


@pytest.mark.parametrize("raw", [
    "1girl, selfie, cafe, indoor, upper body",
    "looking_at_viewer | smile",
    "<img-gen>x</img-gen>\n1boy, [철수: short hair], night",
    "  * 1girl,, beach ,  ",
])
def test_idempotent(raw):
    once = sanitize(raw)
    assert sanitize(once) == once


# ── extract_appearance_blocks ──────────────────────────────


def test_extract_blocks():
    scene, groups = extract_appearance_blocks("1girl, cafe, indoor, [Alice: long hair, blue eyes]")
    assert scene == "1girl, cafe, indoor"
    assert groups == ["Alice: long hair, blue eyes"]


def test_extract_multiple_blocks_between_tags():
    scene, groups = extract_appearance_blocks("[A: x], 2girls, [B: y], cafe")
    assert scene == "2girls, cafe"
    assert groups == ["A: x", "B: y"]


def test_extract_ignores_brackets_without_colon():
    scene, groups = extract_appearance_blocks("1girl, [smile], cafe")
    assert scene == "1girl, [smile], cafe"
    assert groups == []


def test_extract_no_scene_tags():
    scene, groups = extract_appearance_blocks("[민지: long hair]")
    assert scene == ""
    assert groups == ["민지: long hair"]
