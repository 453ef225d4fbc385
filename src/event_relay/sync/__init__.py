"""Reconciliation of mirrored events and the published agenda.

## Features

- Mirror community events onto destination guilds
- Purge mirrors of deleted events
- Publish a day-grouped agenda to the TeamSpeak channel description
- Tick on a fixed interval without overlapping ticks
"""

from event_relay.sync.reconciler import Reconciler, TickResult
from event_relay.sync.scheduler import TickScheduler

__all__ = [
    "Reconciler",
    "TickResult",
    "TickScheduler",
]
