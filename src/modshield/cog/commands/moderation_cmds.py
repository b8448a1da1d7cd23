"""
Moderation command cog: administrative overrides for automatic punishments.

``/unban`` lifts a ban issued by the escalation ladder and gives the user a
fresh start, writing a zero violation record for every category. The user may
be given as a raw ID or as a mention (``<@123>`` / ``<@!123>``).

Permissions
- The invoker must hold ``ban_members``. If the check fails the command
  replies ephemerally to the invoking user.
"""

import discord
from discord import Option
from discord.ext import commands

from modshield.datatypes.discord_datatypes import UserID
from modshield.datatypes.moderation_datatypes import UnbanResult
from modshield.moderation.moderation_engine import ModerationEngine
from modshield.util.discord_utils import has_permissions
from modshield.util.logger import get_logger

logger = get_logger("moderation_cog")


def build_unban_embed(result: UnbanResult) -> discord.Embed:
    """Green embed on success, red with the failure reason otherwise."""
    if result.success:
        embed = discord.Embed(description=f"✅ {result.message}", color=discord.Color.green())
        for warning in result.warnings:
            embed.add_field(name="Warning", value=warning, inline=False)
        return embed
    return discord.Embed(description=f"❌ {result.message}", color=discord.Color.red())


class ModerationCommandsCog(commands.Cog):
    """Cog containing the administrative moderation slash commands."""

    def __init__(self, bot: discord.Bot, engine: ModerationEngine) -> None:
        self.bot = bot
        self._engine = engine
        logger.info("Moderation commands cog loaded")

    @commands.slash_command(name="unban", description="Unban a user and reset their violations.")
    async def unban(
        self,
        ctx: discord.ApplicationContext,
        user_id: Option(str, "ID or mention of the banned user.", required=True),  # type: ignore
    ) -> None:
        """Unban a user with a fresh start."""
        await ctx.defer()

        if not has_permissions(ctx, ban_members=True):
            await ctx.send_followup("You do not have permission to use this command.", ephemeral=True)
            return

        try:
            target = UserID.parse_mention(user_id)
        except ValueError:
            await ctx.send_followup(
                embed=discord.Embed(
                    description="❌ Please provide a user ID: `/unban user_id`",
                    color=discord.Color.red(),
                )
            )
            return

        result = await self._engine.unban(target)
        logger.info("Unban of %s requested by %s: %s", target, ctx.author, result.outcome.value)
        await ctx.send_followup(embed=build_unban_embed(result))


def setup(bot: discord.Bot, engine: ModerationEngine) -> None:
    """Register the ModerationCommandsCog with the bot."""
    bot.add_cog(ModerationCommandsCog(bot, engine))
