"""Pytest fixtures for event relay tests.

This module provides test fixtures that ensure:
1. No external API calls are made (Discord, TeamSpeak)
2. Each test gets its own throwaway SQLite database
3. Isolated test environment with controlled configuration
"""

import os
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

# Set test environment BEFORE importing application modules
os.environ.setdefault("DISCORD_TOKEN", "test-discord-token")
os.environ.setdefault("COMMUNITY_ID", "100")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from event_relay.database.connection import Database
from event_relay.database.store import EventStore, TokenStore
from event_relay.models.event import SourceEvent
from event_relay.platforms.base import (
    AgendaChannel,
    EventSource,
    PrivilegeKeyIssuer,
    RemoteCallFailure,
)

PACIFIC = ZoneInfo("America/Los_Angeles")
SIGNUP = "Event Details and Signup Link: https://discord.com/channels/100/200/{id}"


# =============================================================================
# Fakes
# =============================================================================


class FakeEventSource(EventSource):
    """In-memory Discord: source events plus per-guild mirrors."""

    name = "fake"

    def __init__(self, events: list[SourceEvent] | None = None):
        self.events = list(events or [])
        self.mirrors: dict[str, dict[str, SourceEvent]] = {}
        self.created: list[tuple[str, str]] = []
        self.edited: list[tuple[str, str]] = []
        self.deleted: list[tuple[str, str]] = []
        self.fail_list = False
        self.fail_create = False
        self.fail_edit = False
        self.fail_delete = False
        self._next_id = 9000

    async def list_events(self, community_id: str) -> list[SourceEvent]:
        if self.fail_list:
            raise RemoteCallFailure("boom", platform=self.name, operation="list_events")
        return list(self.events)

    async def create_mirror(self, destination_server_id: str, event: SourceEvent) -> str:
        if self.fail_create:
            raise RemoteCallFailure("boom", platform=self.name, operation="create_mirror")
        self._next_id += 1
        mirror_id = str(self._next_id)
        self.mirrors.setdefault(destination_server_id, {})[mirror_id] = event
        self.created.append((destination_server_id, event.id))
        return mirror_id

    async def edit_mirror(
        self, destination_server_id: str, destination_event_id: str, event: SourceEvent
    ) -> None:
        if self.fail_edit:
            raise RemoteCallFailure("boom", platform=self.name, operation="edit_mirror")
        self.mirrors.setdefault(destination_server_id, {})[destination_event_id] = event
        self.edited.append((destination_server_id, destination_event_id))

    async def delete_mirror(
        self, destination_server_id: str, destination_event_id: str
    ) -> None:
        self.deleted.append((destination_server_id, destination_event_id))
        if self.fail_delete:
            raise RemoteCallFailure("boom", platform=self.name, operation="delete_mirror")
        self.mirrors.get(destination_server_id, {}).pop(destination_event_id, None)


class FakeAgendaChannel(AgendaChannel):
    """In-memory channel descriptions."""

    name = "fake-agenda"

    def __init__(self, text: str = ""):
        self.texts: dict[str, str] = {"1": text}
        self.writes: list[tuple[str, str]] = []
        self.fail_read = False

    async def read_text(self, channel_id: str) -> str:
        if self.fail_read:
            raise RemoteCallFailure("boom", platform=self.name, operation="read_text")
        return self.texts.get(channel_id, "")

    async def write_text(self, channel_id: str, text: str) -> None:
        self.texts[channel_id] = text
        self.writes.append((channel_id, text))


class FakeKeyIssuer(PrivilegeKeyIssuer):
    """Mints predictable privilege keys."""

    name = "fake-issuer"

    def __init__(self):
        self.issued: list[tuple[str, str]] = []
        self.fail = False

    async def issue_privilege_key(self, group_id: str, description: str) -> str:
        if self.fail:
            raise RemoteCallFailure("boom", platform=self.name, operation="issue")
        self.issued.append((group_id, description))
        return f"key-{len(self.issued)}-group-{group_id}"


# =============================================================================
# Test Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset settings cache before each test to ensure clean state."""
    from event_relay.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def database(tmp_path):
    """Fresh SQLite database file with all tables created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'events.sqlite'}")
    await db.create_tables()
    yield db
    await db.dispose()


@pytest.fixture
def event_store(database) -> EventStore:
    return EventStore(database)


@pytest.fixture
def token_store(database) -> TokenStore:
    return TokenStore(database)


@pytest.fixture
def fake_source() -> FakeEventSource:
    return FakeEventSource()


@pytest.fixture
def fake_agenda() -> FakeAgendaChannel:
    return FakeAgendaChannel()


@pytest.fixture
def fake_issuer() -> FakeKeyIssuer:
    return FakeKeyIssuer()


# =============================================================================
# Sample Data
# =============================================================================


def make_event(
    event_id: str,
    start: datetime | None,
    name: str | None = None,
    description: str | None = None,
) -> SourceEvent:
    """Build a source event with a valid signup link unless told otherwise."""
    return SourceEvent(
        id=event_id,
        name=name or f"Event {event_id}",
        start_time=start,
        description=SIGNUP.format(id=event_id) if description is None else description,
    )


@pytest.fixture
def sample_events() -> list[SourceEvent]:
    """Three events over two Pacific days (summer time, UTC-7)."""
    return [
        # 6/15 2:00 PM PDT
        make_event("E2", datetime(2024, 6, 15, 21, 0, tzinfo=timezone.utc), "Fleet Op"),
        # 6/15 10:00 AM PDT
        make_event("E1", datetime(2024, 6, 15, 17, 0, tzinfo=timezone.utc), "Mining"),
        # 6/16 7:30 PM PDT
        make_event("E3", datetime(2024, 6, 17, 2, 30, tzinfo=timezone.utc), "Town Hall"),
    ]
