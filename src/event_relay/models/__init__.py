"""Domain models for event relay."""

from event_relay.models.event import (
    EntityType,
    MirrorLink,
    SourceEvent,
    TokenGrant,
)

__all__ = [
    "EntityType",
    "MirrorLink",
    "SourceEvent",
    "TokenGrant",
]
