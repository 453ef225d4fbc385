"""Credential issuance for the voice server.

Community members run /authenticate on Discord and receive a TeamSpeak
privilege key for the server group that matches their role.
"""

from event_relay.credentials.tokens import CredentialService, PermissionDenied

__all__ = [
    "CredentialService",
    "PermissionDenied",
]
