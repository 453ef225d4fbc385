"""Event mirroring and agenda reconciliation.

Keeps destination guilds and the TeamSpeak agenda in line with the
community guild's scheduled events.

## Tick

1. Fetch the community's scheduled events (a failure ends the tick)
2. Purge: for every stored link whose source event is gone, delete the
   mirror and then the link, even when the remote delete failed
3. Sync: for every destination guild and event, create the mirror and store
   the link if none exists, otherwise edit the mirror in place
4. Render: publish the agenda only when it differs from the current
   description (ignoring its leading timestamp line)

Steps and items fail independently. Failures are logged and collected in the
TickResult; nothing is retried within a tick, the next tick starts over from
the fetched events and the store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Sequence
from zoneinfo import ZoneInfo

from event_relay.agenda.renderer import (
    render_agenda,
    strip_timestamp_line,
    timestamp_line,
)
from event_relay.database.store import EventStore, StoreFailure
from event_relay.models.event import SourceEvent
from event_relay.platforms.base import AgendaChannel, EventSource, RemoteCallFailure

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    """Result of one reconciliation tick."""

    community_id: str
    events_found: int = 0
    mirrors_created: int = 0
    mirrors_updated: int = 0
    mirrors_purged: int = 0
    agenda_written: bool = False
    errors: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def success(self) -> bool:
        return len(self.errors) == 0


class Reconciler:
    """Runs reconciliation ticks for one community.

    Example:
        ```python
        reconciler = Reconciler(
            source,
            EventStore(database),
            teamspeak,
            community_id="662951803469692928",
            destination_server_ids=["1127384155244728400"],
        )
        result = await reconciler.tick()
        ```
    """

    def __init__(
        self,
        source: EventSource,
        store: EventStore,
        agenda: AgendaChannel | None,
        *,
        community_id: str,
        destination_server_ids: Sequence[str] = (),
        agenda_channel_id: str = "1",
        display_timezone: ZoneInfo | None = None,
        timezone_label: str = "PST",
    ):
        """Initialize the reconciler.

        Args:
            source: Platform holding the source events and their mirrors
            store: Mirror link store
            agenda: Channel showing the agenda, or None to skip rendering
            community_id: Guild whose events are the source of truth
            destination_server_ids: Guilds that receive mirrors
            agenda_channel_id: Channel whose description holds the agenda
            display_timezone: Timezone for agenda days and times
            timezone_label: Label shown next to agenda times
        """
        self.source = source
        self.store = store
        self.agenda = agenda
        self.community_id = community_id
        self.destination_server_ids = list(destination_server_ids)
        self.agenda_channel_id = agenda_channel_id
        self.display_timezone = display_timezone or ZoneInfo("America/Los_Angeles")
        self.timezone_label = timezone_label

    async def tick(self) -> TickResult:
        """Run one full reconciliation pass."""
        result = TickResult(community_id=self.community_id)

        try:
            events = await self.source.list_events(self.community_id)
        except RemoteCallFailure as e:
            logger.warning(f"Could not fetch events for {self.community_id}: {e}")
            result.errors.append(f"RemoteCallFailure: {e}")
            return result

        result.events_found = len(events)

        for step in (self.purge_stale_mirrors, self.sync_mirrors, self.publish_agenda):
            try:
                await step(events, result)
            except Exception as e:
                logger.exception(f"Error in {step.__name__}: {e}")
                result.errors.append(f"{step.__name__}: {e}")

        logger.info(
            f"Tick for {self.community_id}: "
            f"{result.events_found} found, "
            f"{result.mirrors_created} created, "
            f"{result.mirrors_updated} updated, "
            f"{result.mirrors_purged} purged, "
            f"agenda {'written' if result.agenda_written else 'unchanged'}"
        )

        return result

    async def purge_stale_mirrors(
        self,
        events: Sequence[SourceEvent],
        result: TickResult,
    ) -> None:
        """Delete mirrors whose source event no longer exists."""
        live_ids = {event.id for event in events}

        for link in await self.store.all_links():
            if link.source_event_id in live_ids:
                continue

            logger.info(
                f"Purging mirror {link.destination_event_id} "
                f"from {link.destination_server_id}"
            )
            try:
                await self.source.delete_mirror(
                    link.destination_server_id, link.destination_event_id
                )
            except RemoteCallFailure as e:
                # The link goes anyway; the remote copy may be left orphaned
                logger.warning(f"Could not delete mirror: {e}")
                result.errors.append(f"RemoteCallFailure: {e}")

            try:
                await self.store.delete_link(link.destination_event_id)
            except StoreFailure as e:
                logger.warning(f"Could not delete link: {e}")
                result.errors.append(f"StoreFailure: {e}")
                continue

            result.mirrors_purged += 1

    async def sync_mirrors(
        self,
        events: Sequence[SourceEvent],
        result: TickResult,
    ) -> None:
        """Create or update the mirror of every event on every destination."""
        for server_id in self.destination_server_ids:
            logger.debug(f"Syncing {server_id}")
            for event in events:
                try:
                    await self._sync_one(server_id, event, result)
                except (RemoteCallFailure, StoreFailure, ValueError) as e:
                    logger.warning(f"Could not sync {event.id} to {server_id}: {e}")
                    result.errors.append(f"{type(e).__name__}: {e}")

    async def _sync_one(
        self,
        server_id: str,
        event: SourceEvent,
        result: TickResult,
    ) -> None:
        link = await self.store.find_link(event.id, server_id)

        if link is None:
            mirror_id = await self.source.create_mirror(server_id, event)
            result.mirrors_created += 1
            await self.store.insert_link(mirror_id, server_id, event.id)
        else:
            await self.source.edit_mirror(server_id, link.destination_event_id, event)
            result.mirrors_updated += 1

    async def publish_agenda(
        self,
        events: Sequence[SourceEvent],
        result: TickResult,
    ) -> None:
        """Write the rendered agenda if it differs from the published one."""
        if self.agenda is None:
            return

        agenda = render_agenda(events, self.display_timezone, self.timezone_label)

        try:
            current = await self.agenda.read_text(self.agenda_channel_id)
        except RemoteCallFailure as e:
            logger.warning(f"Could not read agenda: {e}")
            result.errors.append(f"RemoteCallFailure: {e}")
            return

        if strip_timestamp_line(current) == agenda:
            logger.info("No agenda changes detected")
            return

        now = datetime.now(timezone.utc)
        text = (
            timestamp_line(now, self.display_timezone, self.timezone_label)
            + "\n"
            + agenda
        )
        try:
            await self.agenda.write_text(self.agenda_channel_id, text)
        except RemoteCallFailure as e:
            logger.warning(f"Could not write agenda: {e}")
            result.errors.append(f"RemoteCallFailure: {e}")
            return

        result.agenda_written = True
