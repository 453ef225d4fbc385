"""Database models for event relay.

## Schema Overview

```
linked_events       - one row per mirrored copy of a source event
    id              destination (mirror) event ID
    server          destination guild ID
    parentid        source event ID

teamspeak_tokens    - one privilege key per community member
    id              Discord member ID
    token           TeamSpeak privilege key
    used            set once the key is redeemed on the voice server
    usedby          unique identifier of the redeeming TeamSpeak client
```

Discord snowflakes are stored as strings so that every backend keeps the
full 64-bit value.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""


class LinkedEvent(Base):
    """A mirrored event on a destination guild.

    At most one row exists per (server, parentid) pair.
    """

    __tablename__ = "linked_events"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    server: Mapped[str] = mapped_column(String(32), nullable=False)
    parentid: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (
        UniqueConstraint("server", "parentid", name="uq_linked_event_parent"),
        Index("ix_linked_events_parent", "parentid"),
    )

    def __repr__(self) -> str:
        return f"<LinkedEvent {self.parentid} -> {self.server}/{self.id}>"


class TeamspeakToken(Base):
    """A TeamSpeak privilege key issued to a Discord member."""

    __tablename__ = "teamspeak_tokens"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    token: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    usedby: Mapped[str | None] = mapped_column(String(64))

    def __repr__(self) -> str:
        return f"<TeamspeakToken member={self.id} used={self.used}>"
