"""Tests for the extension settings store."""

import json
from unittest.mock import patch

from scene_tagger import settings
from scene_tagger.models import RouteSettings


def test_defaults_when_file_missing(isolated_settings):
    s = settings.get_settings()
    assert s["tagWeight"] == 0
    assert s["additionalPrompt"] == ""
    assert s["aiRoutes"]["tagGeneration"] == {
        "api": "", "chatSource": "", "modelSettingKey": "", "model": "",
    }


def test_path_from_environment(isolated_settings):
    assert settings.settings_path() == isolated_settings


def test_path_lookup_does_not_reread_dotenv(isolated_settings):
    with patch("scene_tagger.settings.load_dotenv") as mock_load:
        settings.settings_path()
        settings.get_settings()
    mock_load.assert_not_called()


def test_stored_values_merged(isolated_settings):
    isolated_settings.write_text(json.dumps({
        "aiRoutes": {"tagGeneration": {"chatSource": "claude"}},
        "tagWeight": 5,
    }))
    s = settings.get_settings()
    assert s["tagWeight"] == 5
    assert s["aiRoutes"]["tagGeneration"]["chatSource"] == "claude"
    assert s["aiRoutes"]["tagGeneration"]["model"] == ""


def test_update_persists(isolated_settings):
    settings.update_settings({
        "aiRoutes": {"tagGeneration": {"model": "gpt-4o-mini"}},
        "additionalPrompt": "밤 장면",
    })
    stored = json.loads(isolated_settings.read_text())
    assert stored["aiRoutes"]["tagGeneration"]["model"] == "gpt-4o-mini"
    assert stored["additionalPrompt"] == "밤 장면"
    assert settings.get_settings()["additionalPrompt"] == "밤 장면"


def test_update_keeps_other_fields(isolated_settings):
    settings.update_settings({"tagWeight": 3})
    settings.update_settings({"aiRoutes": {"tagGeneration": {"api": "openai"}}})
    s = settings.get_settings()
    assert s["tagWeight"] == 3
    assert s["aiRoutes"]["tagGeneration"]["api"] == "openai"


def test_explicit_path(tmp_path):
    path = tmp_path / "other.json"
    settings.update_settings({"tagWeight": 2}, path=path)
    assert settings.get_settings(path)["tagWeight"] == 2


def test_route_settings():
    s = {"aiRoutes": {"tagGeneration": {"api": "openai", "chatSource": " claude ",
                                         "modelSettingKey": "", "model": "m"}}}
    assert settings.get_route_settings(s) == RouteSettings(api="openai", chat_source="claude", model="m")


def test_route_settings_missing():
    assert settings.get_route_settings(None) == RouteSettings()
    assert settings.get_route_settings({"aiRoutes": {"tagGeneration": "bad"}}) == RouteSettings()
