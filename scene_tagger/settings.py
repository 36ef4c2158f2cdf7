"""Extension settings (AI routes, tag weight, extra tag instructions).

Stored as one JSON file. The path comes from SCENE_TAGGER_SETTINGS (a .env
file in the working directory is honoured) and defaults to
./scene-tagger.json. Missing keys fall back to defaults.
"""

import json
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from scene_tagger.models import RouteSettings

load_dotenv()

SETTINGS_ENV = "SCENE_TAGGER_SETTINGS"
DEFAULT_SETTINGS_FILE = "scene-tagger.json"
TAG_GENERATION_ROUTE = "tagGeneration"

_ROUTE_DEFAULTS: dict[str, str] = {
    "api": "",
    "chatSource": "",
    "modelSettingKey": "",
    "model": "",
}

_SETTINGS_DEFAULTS: dict[str, Any] = {
    "aiRoutes": {
        TAG_GENERATION_ROUTE: _ROUTE_DEFAULTS,
    },
    "tagWeight": 0,
    "additionalPrompt": "",
}


def settings_path() -> Path:
    return Path(os.getenv(SETTINGS_ENV) or DEFAULT_SETTINGS_FILE)


def _defaults() -> dict[str, Any]:
    return json.loads(json.dumps(_SETTINGS_DEFAULTS))


def get_settings(path: Path | None = None) -> dict[str, Any]:
    """Read settings, returning defaults merged with stored values."""
    settings = _defaults()
    path = path or settings_path()
    if path.is_file():
        stored = json.loads(path.read_text())
        for task, route in (stored.get("aiRoutes") or {}).items():
            if isinstance(route, dict):
                settings["aiRoutes"].setdefault(task, dict(_ROUTE_DEFAULTS)).update(route)
        if "tagWeight" in stored:
            settings["tagWeight"] = stored["tagWeight"]
        if "additionalPrompt" in stored:
            settings["additionalPrompt"] = stored["additionalPrompt"]
    return settings


def update_settings(fields: dict[str, Any], path: Path | None = None) -> dict[str, Any]:
    """Merge fields into settings and persist. Returns full settings."""
    path = path or settings_path()
    settings = get_settings(path)
    for task, route in (fields.get("aiRoutes") or {}).items():
        if isinstance(route, dict):
            settings["aiRoutes"].setdefault(task, dict(_ROUTE_DEFAULTS)).update(route)
    if "tagWeight" in fields:
        settings["tagWeight"] = fields["tagWeight"]
    if "additionalPrompt" in fields:
        settings["additionalPrompt"] = fields["additionalPrompt"]
    path.write_text(json.dumps(settings, indent=2, ensure_ascii=False))
    return settings


def get_route_settings(
    settings: dict[str, Any] | None, task: str = TAG_GENERATION_ROUTE
) -> RouteSettings:
    """Route override for a task; empty fields when nothing is configured."""
    route = ((settings or {}).get("aiRoutes") or {}).get(task) or {}
    if not isinstance(route, dict):
        return RouteSettings()
    return RouteSettings.model_validate(
        {key: route.get(key, "") for key in _ROUTE_DEFAULTS}
    )
