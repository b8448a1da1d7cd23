"""Tests for punishment planning and execution."""

from unittest.mock import MagicMock

import pytest

from conftest import CHANNEL
from modshield.configuration.moderation_settings import FIVE_MINUTES_MS
from modshield.datatypes.action_datatypes import BanAction, LogSeverity, MuteAction, WarnAction
from modshield.datatypes.discord_datatypes import UserID
from modshield.datatypes.moderation_datatypes import NotificationResult, ViolationCategory, ViolationMetadata
from modshield.exceptions import PlatformActionError
from modshield.moderation.escalation_store import EscalationStore
from modshield.moderation.escalator import PunishmentEscalator
from modshield.moderation.spam_tracker import SpamRateTracker

USER = UserID(42)


@pytest.fixture
def tracker() -> SpamRateTracker:
    return SpamRateTracker(threshold=1, window_ms=10_000)


@pytest.fixture
def store(connection) -> EscalationStore:
    return EscalationStore(connection)


@pytest.fixture
def escalator(settings, store, fake_sink, tracker) -> PunishmentEscalator:
    return PunishmentEscalator(settings, store, fake_sink, tracker)


@pytest.fixture
def planner(settings, fake_sink, tracker) -> PunishmentEscalator:
    return PunishmentEscalator(settings, MagicMock(), fake_sink, tracker)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "count, tier, action_type",
    [(1, 1, WarnAction), (2, 2, MuteAction), (3, 3, BanAction), (5, 3, BanAction)],
)
def test_build_plan_selects_tier(planner, count, tier, action_type):
    plan = planner.build_plan(USER, "bob", ViolationCategory.ABUSIVE_LANGUAGE, count, "detail")

    assert plan.tier == tier
    assert isinstance(plan.action, action_type)
    assert plan.count == count


def test_build_plan_renders_templates(planner):
    plan = planner.build_plan(USER, "bob", ViolationCategory.MASS_MENTION, 1, "Mentioned 3 users")

    assert "(max 2 allowed)" in plan.user_message
    assert plan.channel_message == "bob received a warning for mass mentions (1/3)"


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_warn_notifies_and_logs(escalator, fake_sink):
    plan = escalator.build_plan(USER, "bob", ViolationCategory.SPAM, 1, "5 messages in 10s")

    outcome = await escalator.escalate(plan, CHANNEL)

    assert outcome.notification is NotificationResult.DELIVERED
    assert outcome.action_applied is True
    assert fake_sink.called("send_direct_message")[0][2] == plan.user_message
    assert fake_sink.called("timeout_member") == []
    (_, channel, entry), = fake_sink.called("send_log_entry")
    assert channel == CHANNEL
    assert entry.description == "bob received a warning for spamming (1/3)"
    assert entry.severity is LogSeverity.WARNING
    assert ("Violation Details", "Type: SPAM\nCount: 1/3") in entry.fields
    assert ("Detail", "5 messages in 10s") in entry.fields


@pytest.mark.asyncio
async def test_mute_times_out_member_with_audit_reason(escalator, fake_sink):
    plan = escalator.build_plan(USER, "bob", ViolationCategory.DISALLOWED_LINK, 2, "Sent 1 links: http://x")

    await escalator.escalate(plan, CHANNEL)

    assert fake_sink.called("timeout_member") == [
        ("timeout_member", USER, FIVE_MINUTES_MS, "Automod: 2 violations (DISALLOWED_LINK)")
    ]


@pytest.mark.asyncio
async def test_ban_clears_every_category_and_spam_state(escalator, store, fake_sink, tracker):
    tracker.record_and_check(USER, 0)
    tracker.record_and_check(USER, 1)
    await store.increment_and_get(USER, ViolationCategory.SPAM, ViolationMetadata("bob", "d", "c", 1))
    for _ in range(3):
        await store.increment_and_get(USER, ViolationCategory.ABUSIVE_LANGUAGE, ViolationMetadata("bob", "d", "c"))
    plan = escalator.build_plan(USER, "bob", ViolationCategory.ABUSIVE_LANGUAGE, 3, "Matched abusive words dataset")

    outcome = await escalator.escalate(plan, CHANNEL)

    assert outcome.counters_reset is True
    assert fake_sink.called("ban_member") == [("ban_member", USER, "Automod: 3 violations (ABUSIVE_LANGUAGE)")]
    assert all(record.count == 0 for record in (await store.get_all(USER)).values())
    assert tracker.window_size(USER) == 0
    (_, _, entry), = fake_sink.called("send_log_entry")
    assert entry.severity is LogSeverity.SEVERE


@pytest.mark.asyncio
async def test_dm_is_sent_before_ban(escalator, fake_sink):
    plan = escalator.build_plan(USER, "bob", ViolationCategory.SPAM, 3, "d")

    await escalator.escalate(plan, CHANNEL)

    names = [call[0] for call in fake_sink.calls]
    assert names.index("send_direct_message") < names.index("ban_member")


@pytest.mark.asyncio
async def test_failed_ban_keeps_counters_and_posts_error(escalator, store, fake_sink):
    for _ in range(3):
        await store.increment_and_get(USER, ViolationCategory.SPAM, ViolationMetadata("bob", "d", "c"))
    fake_sink.fail["ban_member"] = PlatformActionError("ban", "Missing Permissions")
    plan = escalator.build_plan(USER, "bob", ViolationCategory.SPAM, 3, "d")

    outcome = await escalator.escalate(plan, CHANNEL)

    assert outcome.action_applied is False
    assert outcome.counters_reset is False
    assert outcome.error == "Missing Permissions"
    assert (await store.get(USER, ViolationCategory.SPAM)).count == 3
    (_, _, entry), = fake_sink.called("send_log_entry")
    assert entry.severity is LogSeverity.ERROR
    assert entry.description == "❌ Failed to ban bob: Missing Permissions"


@pytest.mark.asyncio
async def test_dm_failure_falls_back_to_channel_mention(escalator, fake_sink):
    fake_sink.dm_ok = False
    plan = escalator.build_plan(USER, "bob", ViolationCategory.SPAM, 1, "d")

    outcome = await escalator.escalate(plan, CHANNEL)

    assert outcome.notification is NotificationResult.FALLBACK_POSTED
    assert fake_sink.called("send_channel_message") == [
        ("send_channel_message", CHANNEL, "<@42>, please enable DMs for warnings")
    ]
    assert outcome.action_applied is True


@pytest.mark.asyncio
async def test_undeliverable_notification_does_not_block_punishment(escalator, fake_sink):
    fake_sink.dm_ok = False
    fake_sink.fail["send_channel_message"] = PlatformActionError("send message", "Forbidden")
    plan = escalator.build_plan(USER, "bob", ViolationCategory.SPAM, 2, "d")

    outcome = await escalator.escalate(plan, CHANNEL)

    assert outcome.notification is NotificationResult.UNDELIVERED
    assert len(fake_sink.called("timeout_member")) == 1


@pytest.mark.asyncio
async def test_log_entry_failure_is_contained(escalator, fake_sink):
    fake_sink.fail["send_log_entry"] = PlatformActionError("send log entry", "timed out after 10s")
    plan = escalator.build_plan(USER, "bob", ViolationCategory.SPAM, 1, "d")

    outcome = await escalator.escalate(plan, CHANNEL)

    assert outcome.action_applied is True
