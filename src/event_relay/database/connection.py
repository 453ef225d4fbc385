"""Database connection management.

Provides async database access using SQLAlchemy. SQLite through aiosqlite is
the default backend; any async SQLAlchemy URL works.

## Configuration

- DATABASE_URL: Full connection string (default: sqlite+aiosqlite:///events.sqlite)
- DATABASE_ECHO: Log SQL statements (default: false)

## Usage

```python
from event_relay.database import Database

database = Database(settings.database_url)
await database.create_tables()

async with database.session() as session:
    link = await session.get(LinkedEvent, event_id)

await database.dispose()
```
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from event_relay.database.models import Base

logger = logging.getLogger(__name__)


class Database:
    """Owns the async engine and session factory.

    One instance is created at startup and handed to the stores that need it.
    """

    def __init__(self, url: str, echo: bool = False):
        logger.info("Initializing database connection")

        self.url = url
        self._engine: AsyncEngine | None = create_async_engine(
            url,
            pool_pre_ping=True,  # Verify connections before use
            echo=echo,
        )
        self._session_factory: async_sessionmaker[AsyncSession] | None = (
            async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        )

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database has been disposed.")
        return self._engine

    async def create_tables(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("Database tables ready")

    async def dispose(self) -> None:
        """Close the database connection.

        Should be called on shutdown.
        """
        if self._engine:
            logger.info("Closing database connection")
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session.

        The session is closed when the context exits. Transactions are not
        committed automatically; call commit() explicitly.
        """
        if self._session_factory is None:
            raise RuntimeError("Database has been disposed.")

        session = self._session_factory()
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
