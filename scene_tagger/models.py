"""Core domain models.

Every pipeline stage reads or produces these types.
Pydantic validates registry and settings data at the boundary; after that the
pipeline treats them as read-only values.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Shared backend configuration (chat_completion_source, <source>_model keys).
# Owned by the host; the generation adapter mutates it only inside a route
# override scope.
ChatSettings = dict[str, Any]

# Lower-cased character name → trimmed appearance tags.
AppearanceVarMap = dict[str, str]


class Character(BaseModel):
    """A known contact supplied by the character registry."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(min_length=1)
    display_name: str = Field("", alias="displayName")
    sub_name: str = Field("", alias="subName")
    description: str = ""
    appearance_tags: str = Field("", alias="appearanceTags")

    @field_validator("name", "display_name", "sub_name", "appearance_tags", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return str(value or "").strip()

    def names(self) -> list[str]:
        """Non-empty name, display name and sub name, in that order."""
        return [n for n in (self.name, self.display_name, self.sub_name) if n]


class MatchedCharacter(BaseModel):
    """A character selected for the current scene."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    appearance_tags: str = ""

    def appearance_group(self) -> str:
        """Return "Name: tags", or "" when there are no tags."""
        if not self.appearance_tags:
            return ""
        return f"{self.name}: {self.appearance_tags}"


class RouteSettings(BaseModel):
    """Which backend/model handles tag generation (empty = leave as is)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, protected_namespaces=())

    api: str = ""
    chat_source: str = Field("", alias="chatSource")
    model_setting_key: str = Field("", alias="modelSettingKey")
    model: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        return str(value or "").strip()


class PipelineResult(BaseModel):
    """Output of one pipeline run."""

    scene_tags: str = ""
    appearance_groups: list[str] = Field(default_factory=list)
    final_prompt: str = ""
    characters: list[MatchedCharacter] = Field(default_factory=list)
