"""Discord scheduled events adapter.

Reads the community guild's scheduled events and maintains their copies on
destination guilds through discord.py.

## Mirrors

Voice and stage events reference a channel of the source guild, which does
not exist on destination guilds. Every mirror is therefore created as an
external event:

- location: source location, else the source channel name, else "Discord"
- end time: source end, else start + DEFAULT_DURATION (external events
  require one)
- cover image: copied on creation only
"""

from __future__ import annotations

import logging
from datetime import timedelta

import discord

from event_relay.models.event import EntityType, SourceEvent
from event_relay.platforms.base import EventSource, RemoteCallFailure

logger = logging.getLogger(__name__)

DEFAULT_DURATION = timedelta(hours=1)
DEFAULT_LOCATION = "Discord"


def source_event_from_discord(event: discord.ScheduledEvent) -> SourceEvent:
    """Snapshot a discord.py scheduled event."""
    channel = event.channel
    cover = event.cover_image
    try:
        entity_type = EntityType(event.entity_type.name)
    except ValueError:
        logger.warning(
            f"Event {event.id} has unknown entity type {event.entity_type}, "
            "treating it as external"
        )
        entity_type = EntityType.EXTERNAL
    return SourceEvent(
        id=str(event.id),
        name=event.name,
        start_time=event.start_time,
        end_time=event.end_time,
        entity_type=entity_type,
        privacy_level=event.privacy_level.name,
        location=event.location,
        channel_name=channel.name if channel is not None else None,
        description=event.description,
        image_url=cover.url if cover is not None else None,
    )


class DiscordEventSource(EventSource):
    """EventSource backed by a connected discord.py client.

    Example:
        ```python
        source = DiscordEventSource(client)
        events = await source.list_events("662951803469692928")
        mirror_id = await source.create_mirror("1127384155244728400", events[0])
        ```
    """

    name = "discord"

    def __init__(self, client: discord.Client):
        """Initialize the adapter.

        Args:
            client: A logged-in discord.py client with the guilds intent
        """
        self.client = client
        self._covers: dict[str, discord.Asset] = {}

    def _get_guild(self, guild_id: str, operation: str) -> discord.Guild:
        guild = self.client.get_guild(int(guild_id))
        if guild is None:
            raise RemoteCallFailure(
                f"Guild {guild_id} is not available",
                platform=self.name,
                operation=operation,
            )
        return guild

    async def _fetch_event(
        self,
        guild: discord.Guild,
        event_id: str,
    ) -> discord.ScheduledEvent:
        event = guild.get_scheduled_event(int(event_id))
        if event is None:
            event = await guild.fetch_scheduled_event(int(event_id))
        return event

    def _mirror_fields(self, event: SourceEvent) -> dict:
        if event.start_time is None:
            raise ValueError(f"Event {event.id} has no start time")
        return {
            "name": event.name,
            "start_time": event.start_time,
            "end_time": event.end_time or event.start_time + DEFAULT_DURATION,
            "entity_type": discord.EntityType.external,
            "privacy_level": discord.PrivacyLevel.guild_only,
            "location": event.location or event.channel_name or DEFAULT_LOCATION,
            "description": event.description or "",
        }

    async def list_events(self, community_id: str) -> list[SourceEvent]:
        guild = self._get_guild(community_id, "list_events")
        try:
            events = await guild.fetch_scheduled_events()
        except discord.HTTPException as e:
            raise RemoteCallFailure(
                str(e), platform=self.name, operation="list_events"
            ) from e

        self._covers = {
            str(event.id): event.cover_image
            for event in events
            if event.cover_image is not None
        }
        return [source_event_from_discord(event) for event in events]

    async def create_mirror(
        self,
        destination_server_id: str,
        event: SourceEvent,
    ) -> str:
        guild = self._get_guild(destination_server_id, "create_mirror")
        fields = self._mirror_fields(event)

        try:
            cover = self._covers.get(event.id)
            if cover is not None:
                fields["image"] = await cover.read()
            mirror = await guild.create_scheduled_event(**fields)
        except discord.DiscordException as e:
            raise RemoteCallFailure(
                str(e), platform=self.name, operation="create_mirror"
            ) from e

        logger.info(f"Created mirror {mirror.id} of {event.id} in {destination_server_id}")
        return str(mirror.id)

    async def edit_mirror(
        self,
        destination_server_id: str,
        destination_event_id: str,
        event: SourceEvent,
    ) -> None:
        guild = self._get_guild(destination_server_id, "edit_mirror")
        fields = self._mirror_fields(event)

        try:
            mirror = await self._fetch_event(guild, destination_event_id)
            await mirror.edit(**fields)
        except discord.HTTPException as e:
            raise RemoteCallFailure(
                str(e), platform=self.name, operation="edit_mirror"
            ) from e

    async def delete_mirror(
        self,
        destination_server_id: str,
        destination_event_id: str,
    ) -> None:
        guild = self._get_guild(destination_server_id, "delete_mirror")

        try:
            mirror = await self._fetch_event(guild, destination_event_id)
            await mirror.delete()
        except discord.NotFound:
            logger.info(
                f"Mirror {destination_event_id} already gone from {destination_server_id}"
            )
        except discord.HTTPException as e:
            raise RemoteCallFailure(
                str(e), platform=self.name, operation="delete_mirror"
            ) from e
