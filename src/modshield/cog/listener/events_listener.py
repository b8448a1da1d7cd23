"""Event listener Cog for Modshield.

This cog handles bot lifecycle events (on_ready) and member joins, which
are forwarded to the moderation engine for username screening.
"""

from typing import List

import discord
from discord.ext import commands

from modshield.configuration.moderation_settings import ModerationSettings
from modshield.moderation.lexicon import LexiconMatcher
from modshield.moderation.moderation_engine import ModerationEngine
from modshield.util import discord_utils
from modshield.util.logger import get_logger

logger = get_logger("events_listener")

REQUIRED_PERMISSIONS = ("manage_messages", "moderate_members", "ban_members", "kick_members")


def missing_permissions(permissions: discord.Permissions) -> List[str]:
    """Return the names of required permissions the bot lacks."""
    return [name for name in REQUIRED_PERMISSIONS if not getattr(permissions, name, False)]


class EventsListenerCog(commands.Cog):
    """Handles Discord bot lifecycle and member events."""

    def __init__(
        self,
        bot: discord.Bot,
        engine: ModerationEngine,
        settings: ModerationSettings,
        lexicon: LexiconMatcher,
    ) -> None:
        self.bot = bot
        self._engine = engine
        self._settings = settings
        self._lexicon = lexicon
        logger.info("[EVENTS LISTENER] Events listener cog loaded")

    # ------------------------------------------------------------------
    # Lifecycle events
    # ------------------------------------------------------------------

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self) -> None:
        """Set bot presence and verify moderation permissions."""
        if not self.bot.user:
            logger.warning(
                "[EVENTS LISTENER] Bot partially connected: user info not yet available."
            )
            return

        await self.bot.change_presence(
            status=discord.Status.online,
            activity=discord.Activity(
                type=discord.ActivityType.watching,
                name="for rule breakers",
            ),
        )
        logger.info("🛡️ Moderation bot online as %s (ID: %s)", self.bot.user, self.bot.user.id)
        logger.info("Loaded %d abusive words from dataset", len(self._lexicon))
        self._check_permissions()

    def _check_permissions(self) -> None:
        guild_id = self._settings.guild_id
        guild = self.bot.get_guild(guild_id.to_int()) if guild_id is not None else None
        if guild is None:
            if guild_id is not None:
                logger.warning("[EVENTS LISTENER] Configured guild %s is not available", guild_id)
            return

        missing = missing_permissions(guild.me.guild_permissions)
        if missing:
            logger.error("❌ Missing critical permissions in %s: %s", guild.name, ", ".join(missing))

    # ------------------------------------------------------------------
    # Member events
    # ------------------------------------------------------------------

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member) -> None:
        """Screen the new member's username."""
        logger.debug("[EVENTS LISTENER] Member joined: %s (ID: %s)", member, member.id)
        await self._engine.handle_member_join(discord_utils.member_to_event(member))


def setup(
    bot: discord.Bot,
    engine: ModerationEngine,
    settings: ModerationSettings,
    lexicon: LexiconMatcher,
) -> None:
    """Register the EventsListenerCog with the bot."""
    bot.add_cog(EventsListenerCog(bot, engine, settings, lexicon))
