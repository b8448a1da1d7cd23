"""
discord_utils.py
================

Discord side of the moderation core.

:class:`DiscordActionSink` implements the :class:`ActionSink` contract on top of
py-cord: every platform call is bounded by a timeout and every Discord error is
mapped to :class:`PlatformActionError`. The module-level helpers turn py-cord
objects into the platform-neutral events the engine consumes.
"""

import asyncio
import datetime
from typing import Awaitable, TypeVar, Union

import discord

from modshield.datatypes.action_datatypes import LogSeverity, ModerationLogEntry
from modshield.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID
from modshield.datatypes.moderation_datatypes import MemberJoined, MessageReceived
from modshield.exceptions import NotFoundError, PlatformActionError
from modshield.util.logger import get_logger

logger = get_logger("discord_utils")

T = TypeVar("T")

BAN_DELETE_MESSAGE_SECONDS = 24 * 60 * 60

SEVERITY_COLORS = {
    LogSeverity.INFO: discord.Color.blue(),
    LogSeverity.WARNING: discord.Color.orange(),
    LogSeverity.SEVERE: discord.Color.red(),
    LogSeverity.ERROR: discord.Color.red(),
    LogSeverity.SUCCESS: discord.Color.green(),
}


# ==========================================
# Event conversion helpers
# ==========================================

def is_ignored_author(author: Union[discord.User, discord.Member]) -> bool:
    """
    Check if an author should be ignored by moderation handlers (bots or non-members).

    Args:
        author (discord.User | discord.Member): The user or member to check.

    Returns:
        bool: True if the author is a bot or not a member, False otherwise.
    """
    return author.bot or not isinstance(author, discord.Member)


def has_admin(member: Union[discord.User, discord.Member]) -> bool:
    """Return True if *member* holds the administrator permission in its guild."""
    if not isinstance(member, discord.Member):
        return False
    return bool(getattr(member.guild_permissions, "administrator", False))


def has_permissions(application_context: discord.ApplicationContext, **required_permissions) -> bool:
    """
    Check if the command issuer has all specified permissions in the guild.

    Args:
        application_context (discord.ApplicationContext): The command context.
        **required_permissions: Permission flags to check.

    Returns:
        bool: True if all permissions are present, False otherwise.
    """
    if not isinstance(application_context.author, discord.Member):
        return False
    return all(
        getattr(application_context.author.guild_permissions, permission_name, False)
        for permission_name in required_permissions
    )


def message_to_event(message: discord.Message) -> MessageReceived:
    """Convert a py-cord message into a :class:`MessageReceived` event."""
    author = message.author
    return MessageReceived(
        user_id=UserID.from_user(author),
        guild_id=GuildID.from_guild(message.guild) if message.guild else None,
        channel_id=ChannelID(message.channel.id),
        message_id=MessageID(message.id),
        display_name=author.display_name,
        content=message.content or "",
        mentioned_user_ids=frozenset(UserID(user.id) for user in message.mentions),
        is_bot=author.bot,
        author_is_admin=has_admin(author),
    )


def member_to_event(member: discord.Member) -> MemberJoined:
    """Convert a joining py-cord member into a :class:`MemberJoined` event."""
    return MemberJoined(
        user_id=UserID.from_user(member),
        username=member.name,
        guild_id=GuildID.from_guild(member.guild) if member.guild else None,
        is_bot=member.bot,
        is_admin=has_admin(member),
    )


def build_log_embed(entry: ModerationLogEntry) -> discord.Embed:
    """
    Render a moderation log entry as an embed.

    Args:
        entry (ModerationLogEntry): The entry to render.

    Returns:
        discord.Embed: Embed colored by the entry's severity.
    """
    embed = discord.Embed(
        title=entry.title,
        description=entry.description,
        color=SEVERITY_COLORS.get(entry.severity, discord.Color.light_grey()),
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    for name, value in entry.fields:
        embed.add_field(name=name, value=value or "-", inline=False)
    return embed


# ==========================================
# Action sink
# ==========================================

class DiscordActionSink:
    """
    ActionSink backed by a py-cord bot.

    Parameters
    ----------
    bot:
        Connected bot used to resolve guilds, channels, and users.
    guild_id:
        The guild punishments apply to. When None, the first guild the bot is
        in is used.
    timeout_seconds:
        Upper bound on every Discord API call.
    """

    def __init__(self, bot: discord.Bot, guild_id: GuildID | None, timeout_seconds: float = 10.0) -> None:
        self.bot = bot
        self.guild_id = guild_id
        self.timeout_seconds = timeout_seconds

    async def _call(self, action: str, awaitable: Awaitable[T]) -> T:
        """Await a Discord call under the timeout, mapping failures to PlatformActionError."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise PlatformActionError(action, f"timed out after {self.timeout_seconds:g}s") from exc
        except discord.NotFound as exc:
            raise NotFoundError(action, exc.text or "not found") from exc
        except discord.Forbidden as exc:
            raise PlatformActionError(action, exc.text or "missing permissions") from exc
        except discord.HTTPException as exc:
            raise PlatformActionError(action, exc) from exc

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _guild(self, action: str) -> discord.Guild:
        if self.guild_id is not None:
            guild = self.bot.get_guild(self.guild_id.to_int())
        else:
            guild = self.bot.guilds[0] if self.bot.guilds else None
        if guild is None:
            raise PlatformActionError(action, "guild not available")
        return guild

    async def _channel(self, action: str, channel_id: ChannelID) -> discord.abc.Messageable:
        channel = self.bot.get_channel(channel_id.to_int())
        if channel is None:
            channel = await self._call(action, self.bot.fetch_channel(channel_id.to_int()))
        return channel

    async def _member(self, action: str, user_id: UserID) -> discord.Member:
        guild = self._guild(action)
        member = guild.get_member(user_id.to_int())
        if member is None:
            member = await self._call(action, guild.fetch_member(user_id.to_int()))
        return member

    # ------------------------------------------------------------------
    # ActionSink
    # ------------------------------------------------------------------

    async def delete_message(self, channel_id: ChannelID, message_id: MessageID) -> bool:
        channel = await self._channel("delete message", channel_id)
        try:
            await self._call("delete message", channel.get_partial_message(message_id.to_int()).delete())
        except NotFoundError:
            return False
        return True

    async def send_direct_message(self, user_id: UserID, content: str) -> bool:
        try:
            user = self.bot.get_user(user_id.to_int())
            if user is None:
                user = await self._call("send DM", self.bot.fetch_user(user_id.to_int()))
            await self._call("send DM", user.send(content))
        except PlatformActionError as exc:
            logger.debug("[DISCORD SINK] Could not DM %s: %s", user_id, exc)
            return False
        return True

    async def send_channel_message(self, channel_id: ChannelID, content: str) -> None:
        channel = await self._channel("send message", channel_id)
        await self._call("send message", channel.send(content))

    async def send_log_entry(self, channel_id: ChannelID, entry: ModerationLogEntry) -> None:
        channel = await self._channel("send log entry", channel_id)
        await self._call(
            "send log entry",
            channel.send(embed=build_log_embed(entry), allowed_mentions=discord.AllowedMentions(users=[])),
        )

    async def timeout_member(self, user_id: UserID, duration_ms: int, reason: str) -> None:
        member = await self._member("mute", user_id)
        until = discord.utils.utcnow() + datetime.timedelta(milliseconds=duration_ms)
        await self._call("mute", member.timeout(until, reason=reason))
        logger.info("[DISCORD SINK] Timed out %s until %s", user_id, until.isoformat())

    async def ban_member(self, user_id: UserID, reason: str) -> None:
        guild = self._guild("ban")
        await self._call(
            "ban",
            guild.ban(
                discord.Object(id=user_id.to_int()),
                reason=reason,
                delete_message_seconds=BAN_DELETE_MESSAGE_SECONDS,
            ),
        )
        logger.info("[DISCORD SINK] Banned %s from %s", user_id, guild.name)

    async def kick_member(self, user_id: UserID, reason: str) -> None:
        member = await self._member("kick", user_id)
        await self._call("kick", member.kick(reason=reason))
        logger.info("[DISCORD SINK] Kicked %s", user_id)

    async def fetch_ban_status(self, user_id: UserID) -> bool:
        guild = self._guild("fetch ban")
        try:
            await self._call("fetch ban", guild.fetch_ban(discord.Object(id=user_id.to_int())))
        except NotFoundError:
            return False
        return True

    async def unban_member(self, user_id: UserID) -> None:
        guild = self._guild("unban")
        await self._call("unban", guild.unban(discord.Object(id=user_id.to_int())))
        logger.info("[DISCORD SINK] Unbanned %s from %s", user_id, guild.name)
