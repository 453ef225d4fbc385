"""Discord client wiring.

Creates the bot with all collaborators passed in explicitly:

- the reconciler and its scheduler, started once the gateway is ready
- the /authenticate command and the token redemption listener, when
  credentials are enabled and TeamSpeak is configured

## Usage

```python
from event_relay.bot import create_bot
from event_relay.config import get_settings

settings = get_settings()
bot = create_bot(settings)
bot.run(settings.discord_token, log_handler=None)
```
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

import discord
from discord import app_commands

from event_relay.config import Settings
from event_relay.credentials.tokens import CredentialService, PermissionDenied
from event_relay.database.connection import Database
from event_relay.database.store import EventStore, StoreFailure, TokenStore
from event_relay.models.event import TokenGrant
from event_relay.platforms.base import RemoteCallFailure
from event_relay.platforms.discord_events import DiscordEventSource
from event_relay.platforms.teamspeak import (
    QueryLogin,
    TeamSpeakQuery,
    TokenRedemptionListener,
)
from event_relay.sync.reconciler import Reconciler
from event_relay.sync.scheduler import TickScheduler

logger = logging.getLogger(__name__)


def query_login(settings: Settings) -> QueryLogin:
    """Build ServerQuery connection parameters from settings."""
    if not settings.teamspeak_host:
        raise ValueError("TEAMSPEAK_HOST is not configured")
    return QueryLogin(
        host=settings.teamspeak_host,
        query_port=settings.teamspeak_query_port,
        server_port=settings.teamspeak_server_port,
        username=settings.teamspeak_username,
        password=settings.teamspeak_password,
        nickname=settings.teamspeak_nickname,
    )


def denied_embed() -> discord.Embed:
    return discord.Embed(
        title="PERMISSION DENIED",
        description="This command is only valid for community members",
    )


def failure_embed() -> discord.Embed:
    return discord.Embed(
        title="Something went wrong",
        description="Could not get a token right now, please try again later",
    )


def credential_embed(grant: TokenGrant, settings: Settings) -> discord.Embed:
    """Build the reply that hands a privilege key to a member."""
    status = (
        "**This Code has Already been Claimed!**"
        if grant.used
        else "This code has **NOT** been used!"
    )
    lines = [
        "**Authenticated Successfully**",
        "Your Privilege token is:",
        f"```\n{grant.token}```",
        status,
        "",
        "In TeamSpeak 3, click Connections and press Connect (Shortcut CTRL+S) "
        "and enter the following info:",
    ]
    if settings.teamspeak_public_address:
        lines.append(f"**Server Address:** `{settings.teamspeak_public_address}`")
    if settings.teamspeak_public_password:
        lines.append(f"**Password:** `{settings.teamspeak_public_password}`")
    lines.append("**Nickname:** Up to you")
    lines.append("")
    lines.append(
        "Once connected, go to `Permissions -> Use Privilege Key` and enter the "
        "token to receive roles and permissions."
    )
    return discord.Embed(
        title=settings.teamspeak_display_name,
        description="\n".join(lines),
    )


async def handle_authenticate(
    interaction: discord.Interaction,
    service: CredentialService,
    settings: Settings,
) -> None:
    """Reply to /authenticate with the member's privilege key."""
    await interaction.response.defer(ephemeral=True, thinking=True)

    user = interaction.user
    role_ids = [str(role.id) for role in getattr(user, "roles", [])]

    try:
        grant = await service.issue(str(user.id), user.name, role_ids)
    except PermissionDenied:
        logger.info(f"Denied token for {user.name} ({user.id})")
        await interaction.edit_original_response(embed=denied_embed())
        return
    except (StoreFailure, RemoteCallFailure) as e:
        logger.warning(f"Could not issue token for {user.id}: {e}")
        await interaction.edit_original_response(embed=failure_embed())
        return

    await interaction.edit_original_response(embed=credential_embed(grant, settings))


def build_authenticate_command(
    service: CredentialService,
    settings: Settings,
) -> app_commands.Command:
    @app_commands.command(
        name="authenticate",
        description="Get a TeamSpeak privilege token",
    )
    async def authenticate(interaction: discord.Interaction) -> None:
        await handle_authenticate(interaction, service, settings)

    return authenticate


class RelayBot(discord.Client):
    """Discord client running event reconciliation and credential issuance."""

    def __init__(
        self,
        settings: Settings,
        database: Database,
        teamspeak: TeamSpeakQuery | None = None,
    ):
        super().__init__(intents=discord.Intents.default())
        self.settings = settings
        self.database = database
        self.teamspeak = teamspeak
        self.tree = app_commands.CommandTree(self)

        self.reconciler = Reconciler(
            DiscordEventSource(self),
            EventStore(database),
            teamspeak,
            community_id=str(settings.community_id),
            destination_server_ids=[str(s) for s in settings.destination_server_ids],
            agenda_channel_id=str(settings.agenda_channel_id),
            display_timezone=settings.tzinfo,
            timezone_label=settings.timezone_label,
        )
        self.scheduler = TickScheduler(
            self.reconciler.tick, settings.sync_interval_seconds
        )

        self.credentials: CredentialService | None = None
        self.listener: TokenRedemptionListener | None = None
        if settings.credentials_enabled:
            if teamspeak is None:
                logger.warning("Credentials enabled but TeamSpeak is not configured")
            else:
                self.credentials = CredentialService(
                    TokenStore(database),
                    teamspeak,
                    {str(k): str(v) for k, v in settings.role_group_map.items()},
                )
                self.listener = TokenRedemptionListener(
                    teamspeak.login, self.credentials.redeem
                )

        self._scheduler_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()

    def _start(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def setup_hook(self) -> None:
        await self.database.create_tables()

        if self.credentials is None:
            return

        guild = discord.Object(id=self.settings.community_id)
        self.tree.add_command(
            build_authenticate_command(self.credentials, self.settings), guild=guild
        )
        try:
            await self.tree.sync(guild=guild)
            logger.info("Registered application commands")
        except discord.HTTPException as e:
            logger.error(f"Could not register application commands: {e}")

        if self.listener is not None:
            self._start(self.listener.run())

    async def on_ready(self) -> None:
        logger.info(f"Logged in as {self.user}")
        # on_ready fires again after every gateway reconnect
        if self._scheduler_task is None:
            self._scheduler_task = self._start(self.scheduler.run())

    async def close(self) -> None:
        logger.info("Shutting down")
        self.scheduler.stop()
        if self.listener is not None:
            self.listener.stop()
        for task in list(self._background):
            task.cancel()
        # Store and TeamSpeak must outlive the last tick
        await self.scheduler.wait_idle()
        if self.teamspeak is not None:
            await self.teamspeak.close()
        await self.database.dispose()
        await super().close()


def create_bot(settings: Settings) -> RelayBot:
    """Create the bot and its collaborators from settings."""
    database = Database(settings.database_url, echo=settings.database_echo)
    teamspeak = (
        TeamSpeakQuery(query_login(settings)) if settings.teamspeak_configured else None
    )
    return RelayBot(settings, database, teamspeak)
