from pathlib import Path

import pytest

from scene_tagger import settings


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the settings store at a fresh file for every test."""
    path = tmp_path / "scene-tagger.json"
    monkeypatch.setenv(settings.SETTINGS_ENV, str(path))
    return path
