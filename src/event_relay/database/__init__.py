"""Database module for event relay.

This module provides:
- SQLAlchemy async database connection
- Mirror link and privilege key tables
- Stores wrapping those tables behind narrow async operations
"""

from event_relay.database.connection import Database
from event_relay.database.models import Base, LinkedEvent, TeamspeakToken
from event_relay.database.store import EventStore, StoreFailure, TokenStore

__all__ = [
    # Connection
    "Database",
    # Models
    "Base",
    "LinkedEvent",
    "TeamspeakToken",
    # Stores
    "EventStore",
    "TokenStore",
    "StoreFailure",
]
