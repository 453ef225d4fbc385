"""TeamSpeak privilege keys for community members.

A member's Discord roles decide which TeamSpeak server group they may join.
Each member gets one key; asking again returns the same key together with
whether it has already been redeemed.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping

from event_relay.database.store import StoreFailure, TokenStore
from event_relay.models.event import TokenGrant
from event_relay.platforms.base import PrivilegeKeyIssuer

logger = logging.getLogger(__name__)


class PermissionDenied(Exception):
    """Raised when a member holds none of the mapped roles."""

    def __init__(self, member_id: str):
        super().__init__(f"Member {member_id} holds no mapped role")
        self.member_id = member_id


class CredentialService:
    """Looks up or mints privilege keys.

    Example:
        ```python
        service = CredentialService(TokenStore(database), teamspeak, {"1171070187810861086": "27"})
        grant = await service.issue("1234", "alice", ["1171070187810861086"])
        ```
    """

    def __init__(
        self,
        store: TokenStore,
        issuer: PrivilegeKeyIssuer,
        role_groups: Mapping[str, str],
    ):
        """Initialize the service.

        Args:
            store: Key store
            issuer: Voice server that mints keys
            role_groups: Discord role ID -> server group ID, highest priority first
        """
        self.store = store
        self.issuer = issuer
        self.role_groups = {str(k): str(v) for k, v in role_groups.items()}

    def resolve_group(self, role_ids: Iterable[str]) -> str | None:
        """Pick the server group for the highest priority role a member holds."""
        held = {str(role_id) for role_id in role_ids}
        for role_id, group_id in self.role_groups.items():
            if role_id in held:
                return group_id
        return None

    async def issue(
        self,
        member_id: str,
        username: str,
        role_ids: Iterable[str],
    ) -> TokenGrant:
        """Get a member's privilege key, minting one if needed.

        Raises:
            PermissionDenied: If the member holds no mapped role
            StoreFailure: If the existing key cannot be looked up
            RemoteCallFailure: If the voice server cannot mint a key
        """
        group_id = self.resolve_group(role_ids)
        if group_id is None:
            raise PermissionDenied(member_id)

        existing = await self.store.get_token(member_id)
        if existing is not None:
            return existing

        token = await self.issuer.issue_privilege_key(
            group_id,
            f"Auto-Generated token for {username} ({member_id})",
        )
        logger.info(f"Generated token for {username} ({member_id}) in group {group_id}")

        try:
            await self.store.insert_token(member_id, token)
        except StoreFailure as e:
            # The key is valid on the server even if we failed to record it
            logger.warning(f"Could not store token for {member_id}: {e}")

        return TokenGrant(token=token, used=False, created=True)

    async def redeem(self, token: str, used_by: str) -> bool:
        """Mark a key as redeemed by a TeamSpeak client."""
        matched = await self.store.mark_token_used(token, used_by)
        if not matched:
            logger.info(f"Redeemed token {token} was not issued by this bot")
        return matched
