"""Remote platform adapters."""

from event_relay.platforms.base import (
    AgendaChannel,
    EventSource,
    PrivilegeKeyIssuer,
    RemoteCallFailure,
)

__all__ = [
    "AgendaChannel",
    "EventSource",
    "PrivilegeKeyIssuer",
    "RemoteCallFailure",
]
