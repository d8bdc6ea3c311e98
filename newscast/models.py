"""Data models for Newscast - playable items and audio metadata."""

from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class ItemKind(str, Enum):
    PRIMARY = "primary"
    COMPANION = "companion"


class Plan(str, Enum):
    FREE = "free"
    TRIAL = "trial"
    PAID = "paid"


class PlayableItem(BaseModel):
    """A daily news clip or its explainer, as shown in the playlist."""
    model_config = ConfigDict(frozen=True)

    id: str
    group_date: str
    title: str
    media_ref: str
    display_duration: str
    exact_duration_seconds: Optional[float] = None
    kind: ItemKind = ItemKind.PRIMARY
    parent_id: Optional[str] = None

    @property
    def is_companion(self) -> bool:
        return self.kind == ItemKind.COMPANION


class CompanionInfo(BaseModel):
    """Explainer audio registered for one primary item."""
    model_config = ConfigDict(frozen=True)

    parent_id: str
    media_ref: str
    title: Optional[str] = None
    display_duration: Optional[str] = None
    exact_duration_seconds: Optional[float] = None


class AudioMetadata(BaseModel):
    """Metadata answer of the audio API (HEAD on the stored object)."""
    model_config = ConfigDict(populate_by_name=True)

    filename: str
    url: str
    duration: Optional[str] = None
    exact_duration_seconds: Optional[float] = Field(default=None, alias="exactDurationSeconds")
    duration_source: str = Field(default="not_available", alias="durationSource")
    metadata: Dict[str, str] = Field(default_factory=dict)
    custom_metadata: Dict[str, str] = Field(default_factory=dict, alias="customMetadata")
