"""
Pytest configuration and shared fixtures for Modshield tests.
"""

import sys
from pathlib import Path
from dataclasses import replace

import pytest
import pytest_asyncio

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from modshield.configuration.moderation_settings import ModerationSettings  # noqa: E402
from modshield.database.db_connection import ConnectionManager  # noqa: E402
from modshield.database.db_schema import SchemaManager  # noqa: E402
from modshield.datatypes.action_datatypes import ModerationLogEntry  # noqa: E402
from modshield.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID  # noqa: E402
from modshield.datatypes.moderation_datatypes import MemberJoined, MessageReceived  # noqa: E402
from modshield.exceptions import NotFoundError  # noqa: E402


GUILD = GuildID(1000)
CHANNEL = ChannelID(2000)
LOG_CHANNEL = ChannelID(3000)


class FakeSink:
    """In-memory ActionSink that records every call.

    ``fail`` maps a method name to the exception that method should raise.
    """

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail: dict[str, Exception] = {}
        self.dm_ok = True
        self.banned: set = set()

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail:
            raise self.fail[name]

    def called(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]

    async def delete_message(self, channel_id, message_id) -> bool:
        self._record("delete_message", channel_id, message_id)
        return True

    async def send_direct_message(self, user_id, content) -> bool:
        self.calls.append(("send_direct_message", user_id, content))
        return self.dm_ok

    async def send_channel_message(self, channel_id, content) -> None:
        self._record("send_channel_message", channel_id, content)

    async def send_log_entry(self, channel_id, entry: ModerationLogEntry) -> None:
        self._record("send_log_entry", channel_id, entry)

    async def timeout_member(self, user_id, duration_ms, reason) -> None:
        self._record("timeout_member", user_id, duration_ms, reason)

    async def ban_member(self, user_id, reason) -> None:
        self._record("ban_member", user_id, reason)
        self.banned.add(user_id)

    async def kick_member(self, user_id, reason) -> None:
        self._record("kick_member", user_id, reason)

    async def fetch_ban_status(self, user_id) -> bool:
        self._record("fetch_ban_status", user_id)
        return user_id in self.banned

    async def unban_member(self, user_id) -> None:
        self._record("unban_member", user_id)
        if user_id not in self.banned:
            raise NotFoundError("unban", "Unknown Ban")
        self.banned.discard(user_id)


def make_message(
    content: str = "hello",
    *,
    user_id: int = 42,
    message_id: int = 1,
    mentions=(),
    guild_id: int | None = 1000,
    is_bot: bool = False,
    is_admin: bool = False,
    display_name: str = "tester",
) -> MessageReceived:
    return MessageReceived(
        user_id=UserID(user_id),
        guild_id=GuildID(guild_id) if guild_id is not None else None,
        channel_id=CHANNEL,
        message_id=MessageID(message_id),
        display_name=display_name,
        content=content,
        mentioned_user_ids=frozenset(UserID(m) for m in mentions),
        is_bot=is_bot,
        author_is_admin=is_admin,
    )


def make_member(username: str = "newcomer", *, user_id: int = 77, is_bot: bool = False, is_admin: bool = False) -> MemberJoined:
    return MemberJoined(
        user_id=UserID(user_id),
        username=username,
        guild_id=GUILD,
        is_bot=is_bot,
        is_admin=is_admin,
    )


@pytest.fixture
def settings() -> ModerationSettings:
    """Default rules scoped to the test guild with a moderation log channel."""
    return replace(ModerationSettings.default(), guild_id=GUILD, mod_log_channel_id=LOG_CHANNEL)


@pytest.fixture
def fake_sink() -> FakeSink:
    return FakeSink()


@pytest_asyncio.fixture
async def connection(tmp_path: Path):
    """Fresh schema-initialised database per test."""
    manager = ConnectionManager()
    await manager.open(tmp_path / "test.db")
    async with manager.transaction() as db:
        await SchemaManager.initialize_schema(db)
    yield manager
    await manager.close()
