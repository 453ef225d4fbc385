"""TeamSpeak 3 ServerQuery adapter.

Uses py-ts3 over the raw (telnet) query interface.

## Commands Used

- `login` / `use` / `clientupdate`: session setup
- `channelinfo` / `channeledit`: read and write the agenda channel description
- `privilegekeyadd`: mint a privilege key for a server group (tokentype 0)
- `servernotifyregister event=server`: receive `notifytokenused`

## Threading

py-ts3 is blocking. Every call runs in a worker thread through
`asyncio.to_thread`, and calls on one connection are serialized with an
`asyncio.Lock` because the query protocol is strictly request/response.

## Reconnects

Opening a connection is retried with exponential backoff. A transport error
drops the connection; the next call opens a new one. Query errors (bad
command, permission denied) leave the connection in place.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import ts3.common
import ts3.query
from tenacity import (
    retry,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from event_relay.platforms.base import (
    AgendaChannel,
    PrivilegeKeyIssuer,
    RemoteCallFailure,
)

logger = logging.getLogger(__name__)

# Errors after which the connection cannot be trusted anymore
TRANSPORT_ERRORS = (ts3.common.TS3Error, OSError, EOFError)

# tokentype 0 = server group, 1 = channel group
SERVER_GROUP_TOKEN = 0


@dataclass(frozen=True)
class QueryLogin:
    """Connection parameters for one ServerQuery session."""

    host: str
    query_port: int = 10011
    server_port: int = 9987
    username: str = "serveradmin"
    password: str | None = None
    nickname: str | None = None

    @property
    def uri(self) -> str:
        return f"telnet://{self.host}:{self.query_port}"


@retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    retry=(
        retry_if_exception_type(TRANSPORT_ERRORS)
        & retry_if_not_exception_type(ts3.query.TS3QueryError)
    ),
    reraise=True,
)
def open_connection(login: QueryLogin) -> ts3.query.TS3ServerConnection:
    """Open, authenticate and select the virtual server.

    Raises:
        ts3.common.TS3Error: If the server rejects the session
        OSError: If the host cannot be reached after retries
    """
    logger.info(f"Connecting to TeamSpeak query at {login.host}:{login.query_port}")
    conn = ts3.query.TS3ServerConnection(login.uri)
    try:
        if login.password:
            conn.exec_(
                "login",
                client_login_name=login.username,
                client_login_password=login.password,
            )
        conn.exec_("use", port=login.server_port)
    except Exception:
        conn.close()
        raise

    if login.nickname:
        try:
            conn.exec_("clientupdate", client_nickname=login.nickname)
        except ts3.query.TS3QueryError as e:
            # Nickname in use by another query client
            logger.warning(f"Could not set query nickname: {e}")

    return conn


class TeamSpeakQuery(AgendaChannel, PrivilegeKeyIssuer):
    """Agenda channel and privilege key issuer on one TeamSpeak server.

    Example:
        ```python
        teamspeak = TeamSpeakQuery(QueryLogin(host="ts.example.org", password="..."))
        text = await teamspeak.read_text("1")
        await teamspeak.write_text("1", text + "\\nmore")
        await teamspeak.close()
        ```
    """

    name = "teamspeak"

    def __init__(self, login: QueryLogin):
        self.login = login
        self._conn: ts3.query.TS3ServerConnection | None = None
        self._lock = asyncio.Lock()

    def _exec(self, command: str, **params: Any) -> list[dict[str, str]]:
        if self._conn is None:
            self._conn = open_connection(self.login)

        try:
            return self._conn.exec_(command, **params).parsed
        except ts3.query.TS3QueryError:
            raise
        except TRANSPORT_ERRORS:
            logger.warning("TeamSpeak connection lost, will reconnect on next call")
            self._drop()
            raise

    def _drop(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            except TRANSPORT_ERRORS:
                pass
            self._conn = None

    async def _call(
        self,
        operation: str,
        command: str,
        **params: Any,
    ) -> list[dict[str, str]]:
        async with self._lock:
            try:
                return await asyncio.to_thread(self._exec, command, **params)
            except TRANSPORT_ERRORS as e:
                raise RemoteCallFailure(
                    str(e), platform=self.name, operation=operation
                ) from e

    async def read_text(self, channel_id: str) -> str:
        parsed = await self._call("read_text", "channelinfo", cid=channel_id)
        return parsed[0].get("channel_description", "")

    async def write_text(self, channel_id: str, text: str) -> None:
        await self._call(
            "write_text", "channeledit", cid=channel_id, channel_description=text
        )

    async def issue_privilege_key(self, group_id: str, description: str) -> str:
        parsed = await self._call(
            "issue_privilege_key",
            "privilegekeyadd",
            tokentype=SERVER_GROUP_TOKEN,
            tokenid1=group_id,
            tokenid2=0,
            tokendescription=description,
        )
        return parsed[0]["token"]

    async def close(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._drop)


RedemptionCallback = Callable[[str, str], Awaitable[Any]]


class TokenRedemptionListener:
    """Watches a TeamSpeak server for redeemed privilege keys.

    Uses its own query connection, since waiting for notifications would
    otherwise block the request/response connection.
    """

    RECONNECT_DELAY = 5.0

    def __init__(
        self,
        login: QueryLogin,
        on_redeemed: RedemptionCallback,
        poll_timeout: float = 60.0,
    ):
        """Initialize the listener.

        Args:
            login: Connection parameters
            on_redeemed: Awaited with (token, client unique identifier)
            poll_timeout: Seconds to wait for an event before sending a keepalive
        """
        self.login = login
        self.on_redeemed = on_redeemed
        self.poll_timeout = poll_timeout
        self._conn: ts3.query.TS3ServerConnection | None = None
        self._running = False

    def _next_event(self) -> dict[str, str] | None:
        if self._conn is None:
            self._conn = open_connection(self.login)
            self._conn.exec_("servernotifyregister", event="server")

        try:
            event = self._conn.wait_for_event(timeout=self.poll_timeout)
        except ts3.query.TS3TimeoutError:
            self._conn.send_keepalive()
            return None

        return {"event": event.event, **event.parsed[0]}

    def _drop(self) -> None:
        if self._conn is not None:
            try:
                self._conn.close()
            except TRANSPORT_ERRORS:
                pass
            self._conn = None

    async def handle(self, event: dict[str, str]) -> None:
        """Dispatch one notification."""
        if event.get("event") != "notifytokenused":
            return

        token = event.get("token", "")
        used_by = event.get("cluid", "")
        logger.info(f"Client {used_by} redeemed token {token}")
        try:
            await self.on_redeemed(token, used_by)
        except Exception as e:
            logger.exception(f"Error recording redeemed token: {e}")

    async def run(self) -> None:
        """Listen until stop() is called."""
        self._running = True
        while self._running:
            try:
                event = await asyncio.to_thread(self._next_event)
            except TRANSPORT_ERRORS as e:
                logger.warning(f"TeamSpeak notification connection failed: {e}")
                await asyncio.to_thread(self._drop)
                await asyncio.sleep(self.RECONNECT_DELAY)
                continue

            if event is not None:
                await self.handle(event)

        await asyncio.to_thread(self._drop)

    def stop(self) -> None:
        self._running = False
