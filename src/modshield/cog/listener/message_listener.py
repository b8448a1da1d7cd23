"""Message listener Cog for Modshield.

This cog has exactly ONE responsibility: listen to Discord message events and
hand qualifying messages to the ModerationEngine.

Classification, counting, and punishment live in the engine, NOT here.
"""

import discord
from discord.ext import commands

from modshield.moderation.moderation_engine import ModerationEngine
from modshield.util import discord_utils
from modshield.util.logger import get_logger

logger = get_logger("message_listener_cog")


class MessageListenerCog(commands.Cog):
    """
    Thin event listener that forwards messages to the moderation engine.

    Parameters
    ----------
    bot:
        Discord bot instance.
    engine:
        Moderates each converted message.
    """

    def __init__(self, bot: discord.Bot, engine: ModerationEngine) -> None:
        self.bot = bot
        self._engine = engine
        logger.info("[MESSAGE LISTENER] Message listener cog loaded")

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message) -> None:
        """Drop bot and DM traffic, then moderate."""
        if message.guild is None or discord_utils.is_ignored_author(message.author):
            return

        logger.debug(
            "Received message from %s: %s",
            message.author,
            (message.clean_content or "[no text]")[:80],
        )
        await self._engine.handle_message(discord_utils.message_to_event(message))


def setup(bot: discord.Bot, engine: ModerationEngine) -> None:
    """Register the MessageListenerCog with the bot."""
    bot.add_cog(MessageListenerCog(bot, engine))
