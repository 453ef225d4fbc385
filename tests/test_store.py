"""Tests for the mirror link and token stores."""

import pytest

from event_relay.database.store import StoreFailure
from event_relay.models.event import MirrorLink


class TestEventStore:
    """Tests for mirror link persistence."""

    @pytest.mark.asyncio
    async def test_insert_and_find(self, event_store):
        await event_store.insert_link("M1", "S1", "E1")

        link = await event_store.find_link("E1", "S1")
        assert link == MirrorLink(
            destination_event_id="M1",
            destination_server_id="S1",
            source_event_id="E1",
        )

    @pytest.mark.asyncio
    async def test_find_is_scoped_to_server(self, event_store):
        await event_store.insert_link("M1", "S1", "E1")
        assert await event_store.find_link("E1", "S2") is None

    @pytest.mark.asyncio
    async def test_one_link_per_pair(self, event_store):
        await event_store.insert_link("M1", "S1", "E1")
        with pytest.raises(StoreFailure) as exc_info:
            await event_store.insert_link("M2", "S1", "E1")
        assert exc_info.value.operation == "insert_link"
        assert len(await event_store.all_links()) == 1

    @pytest.mark.asyncio
    async def test_same_event_on_two_servers(self, event_store):
        await event_store.insert_link("M1", "S1", "E1")
        await event_store.insert_link("M2", "S2", "E1")
        links = await event_store.all_links()
        assert {link.destination_server_id for link in links} == {"S1", "S2"}

    @pytest.mark.asyncio
    async def test_delete_link(self, event_store):
        await event_store.insert_link("M1", "S1", "E1")
        await event_store.delete_link("M1")
        assert await event_store.all_links() == []

    @pytest.mark.asyncio
    async def test_delete_unknown_link_is_noop(self, event_store):
        await event_store.delete_link("missing")
        assert await event_store.all_links() == []

    @pytest.mark.asyncio
    async def test_failure_after_dispose(self, database, event_store):
        await database.dispose()
        with pytest.raises(RuntimeError):
            await event_store.all_links()


class TestTokenStore:
    """Tests for privilege key persistence."""

    @pytest.mark.asyncio
    async def test_missing_member(self, token_store):
        assert await token_store.get_token("u1") is None

    @pytest.mark.asyncio
    async def test_insert_and_get(self, token_store):
        await token_store.insert_token("u1", "tok-1")
        grant = await token_store.get_token("u1")
        assert grant.token == "tok-1"
        assert grant.used is False

    @pytest.mark.asyncio
    async def test_mark_used(self, token_store):
        await token_store.insert_token("u1", "tok-1")
        assert await token_store.mark_token_used("tok-1", "client-uid") is True
        grant = await token_store.get_token("u1")
        assert grant.used is True

    @pytest.mark.asyncio
    async def test_mark_unknown_token(self, token_store):
        assert await token_store.mark_token_used("nope", "client-uid") is False

    @pytest.mark.asyncio
    async def test_duplicate_member(self, token_store):
        await token_store.insert_token("u1", "tok-1")
        with pytest.raises(StoreFailure):
            await token_store.insert_token("u1", "tok-2")
