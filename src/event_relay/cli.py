"""Command-line interface for event relay."""

import argparse
import asyncio
import logging
import sys

from event_relay.config import VERSION, Settings, get_settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """Send all application and library logs through one root handler."""
    logging.basicConfig(level=settings.effective_log_level, format=LOG_FORMAT)
    if not settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def run_bot(settings: Settings) -> int:
    from event_relay.bot import create_bot

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    bot = create_bot(settings)
    # log_handler=None keeps discord.py on our root handler
    bot.run(settings.discord_token, log_handler=None)
    return 0


async def _init_db(settings: Settings) -> None:
    from event_relay.database.connection import Database

    database = Database(settings.database_url, echo=settings.database_echo)
    try:
        await database.create_tables()
    finally:
        await database.dispose()


async def _print_links(settings: Settings) -> None:
    from event_relay.database.connection import Database
    from event_relay.database.store import EventStore

    database = Database(settings.database_url, echo=settings.database_echo)
    try:
        await database.create_tables()
        links = await EventStore(database).all_links()
    finally:
        await database.dispose()

    if not links:
        print("No linked events.")
    for link in links:
        print(
            f"{link.source_event_id} -> "
            f"{link.destination_server_id}/{link.destination_event_id}"
        )


async def _print_agenda(settings: Settings) -> int:
    from event_relay.bot import query_login
    from event_relay.platforms.base import RemoteCallFailure
    from event_relay.platforms.teamspeak import TeamSpeakQuery

    if not settings.teamspeak_configured:
        print("TeamSpeak is not configured (set TEAMSPEAK_HOST).", file=sys.stderr)
        return 1

    teamspeak = TeamSpeakQuery(query_login(settings))
    try:
        print(await teamspeak.read_text(str(settings.agenda_channel_id)))
    except RemoteCallFailure as e:
        print(f"Could not read agenda: {e}", file=sys.stderr)
        return 1
    finally:
        await teamspeak.close()
    return 0


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Event Relay - Mirror Discord scheduled events and publish a TeamSpeak agenda"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {VERSION}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("run", help="Connect to Discord and start reconciling")
    subparsers.add_parser("init-db", help="Create database tables and exit")
    subparsers.add_parser("links", help="List stored mirror links")
    subparsers.add_parser(
        "agenda", help="Print the agenda currently published on TeamSpeak"
    )

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    settings = get_settings()
    configure_logging(settings)

    if args.command == "run":
        return run_bot(settings)
    if args.command == "init-db":
        asyncio.run(_init_db(settings))
        print("Database tables created.")
        return 0
    if args.command == "links":
        asyncio.run(_print_links(settings))
        return 0
    if args.command == "agenda":
        return asyncio.run(_print_agenda(settings))

    return 0


if __name__ == "__main__":
    sys.exit(main())
