"""
Discord Moderation Bot
======================

A rule-based Discord moderation bot: detects abusive language, disallowed
links, mass mentions and spam, and escalates repeat offenders from a warning
to a mute to a ban. Administrators can lift bans with ``/unban``, which also
resets the user's violation history.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. MODSHIELD_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("MODSHIELD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
from dataclasses import dataclass

import discord
from dotenv import load_dotenv

from modshield.configuration.app_configuration import CONFIG_PATH, AppConfig
from modshield.configuration.moderation_settings import ModerationSettings, load_moderation_settings
from modshield.database.db_connection import DB_PATH, db_connection
from modshield.database.db_schema import SchemaManager
from modshield.exceptions import ConfigurationError
from modshield.moderation.classifier import ViolationClassifier
from modshield.moderation.escalation_store import EscalationStore
from modshield.moderation.escalator import PunishmentEscalator
from modshield.moderation.lexicon import LexiconMatcher
from modshield.moderation.link_extractor import LinkExtractor
from modshield.moderation.moderation_engine import ModerationEngine
from modshield.moderation.spam_tracker import SpamRateTracker
from modshield.util.discord_utils import DiscordActionSink
from modshield.util.logger import get_logger, handle_exception


logger = get_logger("main")


@dataclass
class Runtime:
    """Everything wired together for one bot session."""
    bot: discord.Bot
    settings: ModerationSettings
    lexicon: LexiconMatcher
    engine: ModerationEngine


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for guild, message content, and member join events."""
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.members = True
    return intents


def load_configuration() -> tuple[ModerationSettings, LexiconMatcher]:
    """Read and validate the YAML configuration and the abusive word list.

    Raises
    ------
    ConfigurationError
        If either is unusable.
    """
    settings = load_moderation_settings(AppConfig(CONFIG_PATH))
    lexicon = LexiconMatcher.from_file(settings.lexicon_path)
    return settings, lexicon


def build_runtime(settings: ModerationSettings, lexicon: LexiconMatcher) -> Runtime:
    """Instantiate the bot and the moderation core around it."""
    bot = discord.Bot(intents=build_intents())

    spam_tracker = SpamRateTracker(settings.spam_threshold, settings.spam_window_ms)
    classifier = ViolationClassifier(
        settings, lexicon, LinkExtractor(settings.allowed_domains), spam_tracker
    )
    store = EscalationStore(db_connection)
    sink = DiscordActionSink(bot, settings.guild_id, settings.platform_timeout_seconds)
    escalator = PunishmentEscalator(settings, store, sink, spam_tracker)
    engine = ModerationEngine(settings, classifier, store, escalator, sink, spam_tracker)

    runtime = Runtime(bot=bot, settings=settings, lexicon=lexicon, engine=engine)
    load_cogs(runtime)
    return runtime


def load_cogs(runtime: Runtime) -> None:
    """Register all operational cogs with the runtime's bot."""
    from modshield.cog.commands import moderation_cmds
    from modshield.cog.listener import events_listener, message_listener

    events_listener.setup(runtime.bot, runtime.engine, runtime.settings, runtime.lexicon)
    message_listener.setup(runtime.bot, runtime.engine)
    moderation_cmds.setup(runtime.bot, runtime.engine)

    logger.info("All cogs loaded successfully.")


async def initialize_database() -> None:
    await db_connection.open(DB_PATH)
    async with db_connection.transaction() as db:
        await SchemaManager.initialize_schema(db)


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and log around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(bot: discord.Bot | None = None) -> None:
    """Close the Discord connection and the database."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Error while closing Discord bot: %s", exc)

    await db_connection.close()
    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap configuration, database, and bot, returning an exit code."""
    token = load_environment()

    try:
        settings, lexicon = load_configuration()
    except ConfigurationError as exc:
        logger.critical("Invalid configuration: %s", exc)
        return 1

    try:
        logger.info("Initializing database…")
        await initialize_database()
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        await db_connection.close()
        return 1

    try:
        runtime = build_runtime(settings, lexicon)
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await shutdown_runtime()
        return 1

    exit_code = 0
    try:
        await start_bot(runtime.bot, token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(runtime.bot)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process exit code."""
    sys.excepthook = handle_exception
    logger.info("Starting Discord Moderation Bot…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        return 1 if code is None else 0
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
