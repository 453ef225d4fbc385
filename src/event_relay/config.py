"""Application configuration.

Configuration is loaded from environment variables using pydantic-settings.
Secrets (bot token, ServerQuery password) should be provided via environment
variables, not config files.

## Required Environment Variables

- DISCORD_TOKEN: Bot token used to connect to Discord
- COMMUNITY_ID: ID of the guild whose scheduled events are the source of truth

## Optional Environment Variables

- DESTINATION_SERVER_IDS: JSON list of guild IDs that receive mirrored events
- CREDENTIALS_ENABLED: Enable the /authenticate command (default: false)
- ROLE_GROUP_MAP: JSON object mapping Discord role IDs to TeamSpeak server
  group IDs, highest priority first
- TEAMSPEAK_HOST: ServerQuery host; leave unset to disable TeamSpeak entirely
- DATABASE_URL: Async SQLAlchemy URL (default: local SQLite file)

## Example .env file

```
DISCORD_TOKEN=your-bot-token
COMMUNITY_ID=662951803469692928
DESTINATION_SERVER_IDS=[1127384155244728400]
CREDENTIALS_ENABLED=true
ROLE_GROUP_MAP={"1171070187810861086": 27, "1171076676160081930": 28}
TEAMSPEAK_HOST=ts.example.org
TEAMSPEAK_PASSWORD=serverquery-password
```
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

VERSION = "0.1.0"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Event Relay"
    app_version: str = VERSION
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Discord
    discord_token: str = Field(..., min_length=1, description="Discord bot token")
    community_id: int = Field(..., description="Source guild ID")
    destination_server_ids: list[int] = Field(
        default_factory=list,
        description="Guilds that receive mirrored events",
    )

    # Reconciliation
    sync_interval_seconds: int = Field(default=60, ge=10, le=3600)

    # Credentials
    credentials_enabled: bool = False
    role_group_map: dict[int, int] = Field(
        default_factory=dict,
        description="Discord role ID -> TeamSpeak server group ID, by priority",
    )

    # TeamSpeak ServerQuery
    teamspeak_host: str | None = None
    teamspeak_query_port: int = 10011
    teamspeak_server_port: int = 9987
    teamspeak_username: str = "serveradmin"
    teamspeak_password: str | None = None
    teamspeak_nickname: str = "Event Relay Bot"
    teamspeak_display_name: str = "TeamSpeak"
    teamspeak_public_address: str | None = None
    teamspeak_public_password: str | None = None

    # Agenda
    agenda_channel_id: int = 1
    display_timezone: str = "America/Los_Angeles"
    timezone_label: str = "PST"

    # Database
    database_url: str = "sqlite+aiosqlite:///events.sqlite"
    database_echo: bool = False  # Log SQL queries

    @field_validator("database_url", mode="before")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Ensure SQLite URLs use the aiosqlite driver."""
        if v.startswith("sqlite:///"):
            return v.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
        return v

    @field_validator("display_timezone")
    @classmethod
    def validate_display_timezone(cls, v: str) -> str:
        """Reject timezone names the zoneinfo database does not know."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @property
    def tzinfo(self) -> ZoneInfo:
        """Display timezone as a tzinfo object."""
        return ZoneInfo(self.display_timezone)

    @property
    def teamspeak_configured(self) -> bool:
        """Check if a TeamSpeak ServerQuery connection is configured."""
        return bool(self.teamspeak_host)

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are loaded once and cached. To reload, clear the cache:
    ```python
    get_settings.cache_clear()
    ```
    """
    return Settings()
