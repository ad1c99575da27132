from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Record(BaseModel):
    # Content rows are read-only; extra CSV columns are tolerated
    model_config = ConfigDict(frozen=True, extra="ignore")


class CharacterDefinition(_Record):
    """Static definition of a playable character."""

    char_id: int = Field(..., description="Stable numeric character id")
    name: str = Field(..., description="Display name")
    base_hp: int = Field(100, ge=1, description="HP before equipment bonuses")
    description: str = Field("", description="Profile text")


class EquipmentLevelDefinition(_Record):
    """Equipment tier for one character at one level."""

    char_id: int
    level: int = Field(..., ge=1, le=5)
    name: str
    hp_bonus: int = Field(0, ge=0)
    skill_bonus: int = Field(0, ge=0)


class DialogueLine(_Record):
    dialogue_id: int = Field(..., description="Monotonic ordering key within a scene")
    scene_id: int
    char_id: Optional[int] = None
    speaker: str = ""
    text: str = ""

    @field_validator("char_id", mode="before")
    @classmethod
    def blank_char_is_narration(cls, v):
        # CSV cells for narration lines are empty strings
        if v == "" or v is None:
            return None
        return v


class EndingDefinition(_Record):
    ending_type: str
    title: str = ""
    description: str = ""

    @field_validator("ending_type")
    @classmethod
    def normalize_type(cls, v: str) -> str:
        return v.strip().upper()
