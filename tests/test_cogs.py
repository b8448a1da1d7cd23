"""Tests for the listener and command cogs."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from modshield.cog.commands import moderation_cmds
from modshield.cog.listener import events_listener, message_listener
from modshield.datatypes.discord_datatypes import GuildID, UserID
from modshield.datatypes.moderation_datatypes import UnbanOutcome, UnbanResult
from modshield.moderation.lexicon import LexiconMatcher


def fake_member(*, member_id=42, bot=False, administrator=False, ban_members=False):
    member = MagicMock(spec=discord.Member)
    member.id = member_id
    member.bot = bot
    member.name = "bob"
    member.display_name = "Bob"
    member.guild = SimpleNamespace(id=1000)
    member.guild_permissions = SimpleNamespace(administrator=administrator, ban_members=ban_members)
    return member


def fake_message(author, *, guild=SimpleNamespace(id=1000)):
    return SimpleNamespace(
        author=author,
        guild=guild,
        channel=SimpleNamespace(id=2000),
        id=3000,
        content="hello",
        clean_content="hello",
        mentions=[],
    )


@pytest.fixture
def engine():
    return SimpleNamespace(
        handle_message=AsyncMock(),
        handle_member_join=AsyncMock(),
        unban=AsyncMock(),
    )


def test_setup_functions_register_cogs(engine, settings):
    added = []
    fake_bot = SimpleNamespace(add_cog=added.append)

    message_listener.setup(fake_bot, engine)
    events_listener.setup(fake_bot, engine, settings, LexiconMatcher(["x"]))
    moderation_cmds.setup(fake_bot, engine)

    assert [type(cog) for cog in added] == [
        message_listener.MessageListenerCog,
        events_listener.EventsListenerCog,
        moderation_cmds.ModerationCommandsCog,
    ]


# ---------------------------------------------------------------------------
# Message listener
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_on_message_forwards_member_messages(engine):
    cog = message_listener.MessageListenerCog(SimpleNamespace(), engine)

    await cog.on_message(fake_message(fake_member()))

    event = engine.handle_message.await_args.args[0]
    assert event.user_id == UserID(42)
    assert event.guild_id == GuildID(1000)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "message",
    [
        fake_message(SimpleNamespace(bot=True)),
        fake_message(SimpleNamespace(bot=False)),
        fake_message(None, guild=None),
    ],
)
async def test_on_message_skips_bots_dms_and_non_members(engine, message):
    cog = message_listener.MessageListenerCog(SimpleNamespace(), engine)

    await cog.on_message(message)

    engine.handle_message.assert_not_awaited()


# ---------------------------------------------------------------------------
# Events listener
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_on_ready_sets_presence(engine, settings):
    guild = SimpleNamespace(
        name="Test Guild",
        me=SimpleNamespace(guild_permissions=SimpleNamespace(manage_messages=True)),
    )
    bot = SimpleNamespace(
        user=SimpleNamespace(id=999),
        change_presence=AsyncMock(),
        get_guild=MagicMock(return_value=guild),
    )
    cog = events_listener.EventsListenerCog(bot, engine, settings, LexiconMatcher(["x"]))

    await cog.on_ready()

    bot.change_presence.assert_awaited_once()
    bot.get_guild.assert_called_once_with(1000)


@pytest.mark.asyncio
async def test_on_ready_without_user_does_nothing(engine, settings):
    bot = SimpleNamespace(user=None, change_presence=AsyncMock())
    cog = events_listener.EventsListenerCog(bot, engine, settings, LexiconMatcher([]))

    await cog.on_ready()

    bot.change_presence.assert_not_awaited()


def test_missing_permissions_lists_absent_flags():
    perms = SimpleNamespace(manage_messages=True, moderate_members=False, ban_members=True)

    assert events_listener.missing_permissions(perms) == ["moderate_members", "kick_members"]  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_on_member_join_forwards_event(engine, settings):
    cog = events_listener.EventsListenerCog(SimpleNamespace(), engine, settings, LexiconMatcher([]))

    await cog.on_member_join(fake_member(member_id=77))

    event = engine.handle_member_join.await_args.args[0]
    assert event.user_id == UserID(77)
    assert event.username == "bob"


# ---------------------------------------------------------------------------
# /unban
# ---------------------------------------------------------------------------

def make_ctx(*, ban_members=True):
    return SimpleNamespace(
        author=fake_member(member_id=1, ban_members=ban_members),
        defer=AsyncMock(),
        send_followup=AsyncMock(),
    )


@pytest.mark.asyncio
async def test_unban_command_success_embed(engine):
    engine.unban.return_value = UnbanResult(
        UserID(42), UnbanOutcome.UNBANNED, "Successfully unbanned <@42> with fresh start (violations reset to 0)"
    )
    cog = moderation_cmds.ModerationCommandsCog(SimpleNamespace(), engine)
    ctx = make_ctx()

    await moderation_cmds.ModerationCommandsCog.unban.callback(cog, ctx, "<@!42>")

    engine.unban.assert_awaited_once_with(UserID(42))
    embed = ctx.send_followup.await_args.kwargs["embed"]
    assert embed.color == discord.Color.green()
    assert embed.description.startswith("✅ Successfully unbanned <@42>")


@pytest.mark.asyncio
async def test_unban_command_not_banned_embed(engine):
    engine.unban.return_value = UnbanResult(UserID(42), UnbanOutcome.NOT_BANNED, "User is not banned")
    cog = moderation_cmds.ModerationCommandsCog(SimpleNamespace(), engine)
    ctx = make_ctx()

    await moderation_cmds.ModerationCommandsCog.unban.callback(cog, ctx, "42")

    embed = ctx.send_followup.await_args.kwargs["embed"]
    assert embed.color == discord.Color.red()
    assert embed.description == "❌ User is not banned"


@pytest.mark.asyncio
async def test_unban_command_requires_ban_members(engine):
    cog = moderation_cmds.ModerationCommandsCog(SimpleNamespace(), engine)
    ctx = make_ctx(ban_members=False)

    await moderation_cmds.ModerationCommandsCog.unban.callback(cog, ctx, "42")

    engine.unban.assert_not_awaited()
    assert "permission" in ctx.send_followup.await_args.args[0]


@pytest.mark.asyncio
async def test_unban_command_rejects_invalid_id(engine):
    cog = moderation_cmds.ModerationCommandsCog(SimpleNamespace(), engine)
    ctx = make_ctx()

    await moderation_cmds.ModerationCommandsCog.unban.callback(cog, ctx, "someone")

    engine.unban.assert_not_awaited()
    assert ctx.send_followup.await_args.kwargs["embed"].color == discord.Color.red()
