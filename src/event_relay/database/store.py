"""Persistent stores for mirror links and privilege keys.

Each call opens its own session and commits on its own; nothing spans
calls. The reconciler tolerates partial completion because the next tick
re-derives state from the fetched events plus whatever is stored here.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from event_relay.database.connection import Database
from event_relay.database.models import LinkedEvent, TeamspeakToken
from event_relay.models.event import MirrorLink, TokenGrant

logger = logging.getLogger(__name__)


class StoreFailure(Exception):
    """Raised when a store read or write fails."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


def _to_link(row: LinkedEvent) -> MirrorLink:
    return MirrorLink(
        destination_event_id=row.id,
        destination_server_id=row.server,
        source_event_id=row.parentid,
    )


class EventStore:
    """Maps (source event, destination guild) pairs to mirror event IDs."""

    def __init__(self, database: Database):
        self.database = database

    async def find_link(
        self,
        source_event_id: str,
        destination_server_id: str,
    ) -> MirrorLink | None:
        """Find the mirror of a source event on one destination guild."""
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(LinkedEvent).where(
                        LinkedEvent.parentid == source_event_id,
                        LinkedEvent.server == destination_server_id,
                    )
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreFailure("find_link", str(e)) from e

        return _to_link(row) if row else None

    async def insert_link(
        self,
        destination_event_id: str,
        destination_server_id: str,
        source_event_id: str,
    ) -> None:
        """Record a newly created mirror.

        Raises:
            StoreFailure: If the write fails, including when the pair is
                already linked
        """
        try:
            async with self.database.session() as session:
                session.add(
                    LinkedEvent(
                        id=destination_event_id,
                        server=destination_server_id,
                        parentid=source_event_id,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreFailure("insert_link", str(e)) from e

        logger.debug(
            f"Linked {source_event_id} -> {destination_server_id}/{destination_event_id}"
        )

    async def delete_link(self, destination_event_id: str) -> None:
        """Forget a mirror. Deleting an unknown link is a no-op."""
        try:
            async with self.database.session() as session:
                await session.execute(
                    delete(LinkedEvent).where(LinkedEvent.id == destination_event_id)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreFailure("delete_link", str(e)) from e

    async def all_links(self) -> list[MirrorLink]:
        """Get every stored mirror link."""
        try:
            async with self.database.session() as session:
                result = await session.execute(select(LinkedEvent))
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise StoreFailure("all_links", str(e)) from e

        return [_to_link(row) for row in rows]


class TokenStore:
    """Privilege keys issued to community members."""

    def __init__(self, database: Database):
        self.database = database

    async def get_token(self, member_id: str) -> TokenGrant | None:
        """Get the key previously issued to a member, if any."""
        try:
            async with self.database.session() as session:
                row = await session.get(TeamspeakToken, member_id)
        except SQLAlchemyError as e:
            raise StoreFailure("get_token", str(e)) from e

        if row is None:
            return None
        return TokenGrant(token=row.token, used=row.used)

    async def insert_token(self, member_id: str, token: str) -> None:
        """Record a key issued to a member."""
        try:
            async with self.database.session() as session:
                session.add(TeamspeakToken(id=member_id, token=token, used=False))
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreFailure("insert_token", str(e)) from e

    async def mark_token_used(self, token: str, used_by: str) -> bool:
        """Mark a key as redeemed.

        Returns:
            True if a stored key matched
        """
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    update(TeamspeakToken)
                    .where(TeamspeakToken.token == token)
                    .values(used=True, usedby=used_by)
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise StoreFailure("mark_token_used", str(e)) from e

        return result.rowcount > 0
