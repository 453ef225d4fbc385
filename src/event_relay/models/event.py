"""Event models shared by the platform adapters and the reconciler."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EntityType(str, Enum):
    """Where a scheduled event takes place."""

    STAGE_INSTANCE = "stage_instance"
    VOICE = "voice"
    EXTERNAL = "external"


class SourceEvent(BaseModel):
    """Snapshot of a scheduled event on the community guild.

    Fetched fresh on every tick and never persisted. The source platform owns
    its lifecycle.
    """

    model_config = ConfigDict(frozen=True)

    # Identity
    id: str = Field(..., description="Source event ID")
    name: str = Field(..., description="Display name")

    # Time
    start_time: datetime | None = Field(default=None, description="Scheduled start")
    end_time: datetime | None = Field(default=None, description="Scheduled end")

    # Where
    entity_type: EntityType = Field(default=EntityType.EXTERNAL)
    privacy_level: str = Field(default="guild_only")
    location: str | None = Field(
        default=None, description="Location for external events"
    )
    channel_name: str | None = Field(
        default=None, description="Voice/stage channel name on the source guild"
    )

    # Content
    description: str | None = Field(
        default=None, description="Free text, may embed a signup link"
    )
    image_url: str | None = Field(default=None, description="Cover image URL")

    @property
    def start_timestamp(self) -> float:
        """POSIX start timestamp, 0 when the event has no start time."""
        if self.start_time is None:
            return 0.0
        return self.start_time.timestamp()


@dataclass(frozen=True)
class MirrorLink:
    """Association between a source event and its copy on one destination guild."""

    destination_event_id: str
    destination_server_id: str
    source_event_id: str


@dataclass
class TokenGrant:
    """A privilege key handed to a community member."""

    token: str
    used: bool = False
    created: bool = False
