"""Interfaces for the remote platforms the relay talks to.

The reconciler and the credential service only depend on these abstract
classes, so tests can substitute in-memory fakes and the Discord and
TeamSpeak adapters stay swappable.

## Collaborators

### EventSource (Discord)
- `list_events`: scheduled events of the community guild
- `create_mirror` / `edit_mirror` / `delete_mirror`: copies on destination guilds

### AgendaChannel (TeamSpeak)
- `read_text` / `write_text`: the channel description that shows the agenda

### PrivilegeKeyIssuer (TeamSpeak)
- `issue_privilege_key`: one-time key granting a server group

## Errors

Adapters translate every library or network error into `RemoteCallFailure`.
Callers decide whether to swallow it; adapters never do.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from event_relay.models.event import SourceEvent


class RemoteCallFailure(Exception):
    """Raised when a call to a remote platform fails."""

    def __init__(
        self,
        message: str,
        platform: str,
        operation: str,
    ):
        super().__init__(message)
        self.platform = platform
        self.operation = operation

    def __str__(self) -> str:
        return f"{self.platform}.{self.operation}: {self.args[0]}"


class EventSource(ABC):
    """Source of scheduled events and writer of their mirrors."""

    name: str

    @abstractmethod
    async def list_events(self, community_id: str) -> list[SourceEvent]:
        """Get the current scheduled events of a community.

        Raises:
            RemoteCallFailure: If the events cannot be fetched
        """
        pass

    @abstractmethod
    async def create_mirror(
        self,
        destination_server_id: str,
        event: SourceEvent,
    ) -> str:
        """Create a copy of an event on a destination guild.

        Returns:
            ID of the created mirror event
        """
        pass

    @abstractmethod
    async def edit_mirror(
        self,
        destination_server_id: str,
        destination_event_id: str,
        event: SourceEvent,
    ) -> None:
        """Overwrite a mirror with the latest source fields."""
        pass

    @abstractmethod
    async def delete_mirror(
        self,
        destination_server_id: str,
        destination_event_id: str,
    ) -> None:
        """Delete a mirror. A mirror that is already gone counts as deleted."""
        pass


class AgendaChannel(ABC):
    """Remote text field that displays the agenda."""

    name: str

    @abstractmethod
    async def read_text(self, channel_id: str) -> str:
        pass

    @abstractmethod
    async def write_text(self, channel_id: str, text: str) -> None:
        pass


class PrivilegeKeyIssuer(ABC):
    """Mints one-time keys that grant a voice server group."""

    name: str

    @abstractmethod
    async def issue_privilege_key(self, group_id: str, description: str) -> str:
        """Create a privilege key for a server group.

        Returns:
            The key to hand to the member
        """
        pass
