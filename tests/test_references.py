"""Tests for appearance reference resolution and the variable map."""

from scene_tagger.models import Character
from scene_tagger.references import build_appearance_var_map, resolve_references

VARS = {"alice": "long hair, blue eyes", "민지": "short hair, brown eyes"}


# ── resolve_references ─────────────────────────────────────


def test_resolves_placeholder():
    text = "{{appearanceTag: Alice}} at the beach"
    assert resolve_references(text, VARS) == "long hair, blue eyes at the beach"


def test_lookup_is_case_insensitive():
    assert resolve_references("{{APPEARANCETAG:ALICE}}", VARS) == "long hair, blue eyes"


def test_possessive_suffix_consumed():
    text = "{{appearanceTag: Alice}}'s description, smiling"
    assert resolve_references(text, VARS) == "long hair, blue eyes, smiling"


def test_curly_apostrophe_suffix_consumed():
    text = "{{appearanceTag:Alice}}’s description"
    assert resolve_references(text, VARS) == "long hair, blue eyes"


def test_korean_name():
    assert resolve_references("{{appearanceTag: 민지}}", VARS) == "short hair, brown eyes"


def test_unknown_reference_dropped():
    assert resolve_references("cafe {{appearanceTag: Bob}}'s description", VARS) == "cafe "


def test_multiple_references():
    text = "{{appearanceTag: Alice}} and {{appearanceTag: 민지}}"
    assert resolve_references(text, VARS) == "long hair, blue eyes and short hair, brown eyes"


def test_empty_text():
    assert resolve_references("", VARS) == ""


def test_plain_text_untouched():
    assert resolve_references("no refs {here}", VARS) == "no refs {here}"


# ── build_appearance_var_map ───────────────────────────────


def test_var_map_from_contacts_and_hints():
    tags = {"Alice": " long hair ", "Hint": "red scarf"}
    var_map = build_appearance_var_map(
        [Character(name="Alice"), Character(name="Bob")],
        ["Hint", "alice", ""],
        lambda name: tags.get(name, ""),
    )
    assert var_map == {"alice": "long hair", "hint": "red scarf"}


def test_var_map_skips_none_from_lookup():
    var_map = build_appearance_var_map([Character(name="Alice")], [], lambda name: None)
    assert var_map == {}
