"""
Punishment escalation.

Maps a category's updated violation count onto its ladder and carries out
the resulting plan against the platform:

    Clean(0) → Warned(1) → Muted(2) → Banned(3, clears every category)

Counts above three stay on the ban tier until a reset happens. Platform
failures never undo the counter increment that led here; they are logged and
reported through an error log entry instead.
"""

from __future__ import annotations

from modshield.configuration.moderation_settings import ModerationSettings
from modshield.datatypes.action_datatypes import (
    MAX_TIER,
    ActionSink,
    BanAction,
    LogSeverity,
    ModerationLogEntry,
    MuteAction,
    PunishmentLadder,
    PunishmentOutcome,
    PunishmentPlan,
    render_template,
)
from modshield.datatypes.discord_datatypes import ChannelID, UserID
from modshield.datatypes.moderation_datatypes import NotificationResult, ViolationCategory
from modshield.exceptions import PlatformActionError, StoreError
from modshield.moderation.escalation_store import EscalationStore
from modshield.moderation.spam_tracker import SpamRateTracker
from modshield.util.logger import get_logger

logger = get_logger("escalator")

DM_FALLBACK_MESSAGE = "{mention}, please enable DMs for warnings"


class PunishmentEscalator:
    def __init__(
        self,
        settings: ModerationSettings,
        store: EscalationStore,
        sink: ActionSink,
        spam_tracker: SpamRateTracker,
    ) -> None:
        self.settings = settings
        self.store = store
        self.sink = sink
        self.spam_tracker = spam_tracker

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def build_plan(
        self,
        user_id: UserID,
        display_name: str,
        category: ViolationCategory,
        count: int,
        detail: str,
    ) -> PunishmentPlan:
        """Select the tier for *count* and render its messages. Pure; touches nothing."""
        tier_number = PunishmentLadder.tier_number(count)
        tier = self.settings.ladder(category).tier_for(count)
        params = {
            "user": display_name,
            "limit": self.settings.mention_limit,
            "count": count,
            "detail": detail,
        }
        return PunishmentPlan(
            user_id=user_id,
            display_name=display_name,
            category=category,
            count=count,
            tier=tier_number,
            action=tier.action,
            user_message=render_template(tier.user_message, params),
            channel_message=render_template(tier.channel_message, params),
            detail=detail,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def escalate(self, plan: PunishmentPlan, channel_id: ChannelID) -> PunishmentOutcome:
        """Notify the user, apply the tier's action, and post the public log entry."""
        outcome = PunishmentOutcome(plan=plan)
        outcome.notification = await self.notify_user(plan.user_id, plan.user_message, channel_id)

        try:
            await self.apply_action(plan, outcome)
        except PlatformActionError as exc:
            outcome.error = exc.reason
            logger.error(
                "[ESCALATOR] Punishment failed for %s (%s): %s",
                plan.display_name, plan.category.label, exc,
            )
            await self.post_log_entry(channel_id, ModerationLogEntry(
                description=f"❌ Failed to {plan.kind.value} {plan.display_name}: {exc.reason}",
                severity=LogSeverity.ERROR,
            ))
            return outcome

        entry = ModerationLogEntry(
            description=plan.channel_message,
            severity=LogSeverity.SEVERE if isinstance(plan.action, BanAction) else LogSeverity.WARNING,
        )
        entry.add_field("Violation Details", f"Type: {plan.category.label}\nCount: {plan.count}/{MAX_TIER}")
        entry.add_field("Detail", plan.detail)
        await self.post_log_entry(channel_id, entry)

        logger.info(
            "[ESCALATOR] %s -> %s for %s (%d/%d, notification %s)",
            plan.category.label, plan.kind.value, plan.display_name,
            plan.count, MAX_TIER, outcome.notification.value,
        )
        return outcome

    async def apply_action(self, plan: PunishmentPlan, outcome: PunishmentOutcome) -> None:
        """Carry out the tier's action. Raises PlatformActionError if the platform refuses."""
        match plan.action:
            case MuteAction(duration_ms=duration_ms):
                await self.sink.timeout_member(plan.user_id, duration_ms, plan.audit_reason)
            case BanAction():
                await self.sink.ban_member(plan.user_id, plan.audit_reason)
                outcome.counters_reset = await self.clear_user(plan.user_id, plan.display_name)
            case _:
                pass
        outcome.action_applied = True

    async def clear_user(self, user_id: UserID, display_name: str) -> bool:
        """Reset every category and drop ephemeral spam state after a ban."""
        self.spam_tracker.forget(user_id)
        try:
            await self.store.reset(user_id, None, display_name=display_name, reason="ban")
        except StoreError as exc:
            logger.error("[ESCALATOR] Banned %s but could not clear violations: %s", display_name, exc)
            return False
        logger.info("[ESCALATOR] 🧹 Cleared all violations for %s", display_name)
        return True

    async def notify_user(self, user_id: UserID, message: str, channel_id: ChannelID) -> NotificationResult:
        """Best-effort private notification with a public mention as fallback."""
        if not message:
            return NotificationResult.UNDELIVERED

        if await self.sink.send_direct_message(user_id, message):
            return NotificationResult.DELIVERED

        logger.debug("[ESCALATOR] Could not DM %s; trying channel fallback", user_id)
        try:
            await self.sink.send_channel_message(
                channel_id, DM_FALLBACK_MESSAGE.format(mention=user_id.mention)
            )
        except PlatformActionError as exc:
            logger.debug("[ESCALATOR] DM fallback for %s failed: %s", user_id, exc)
            return NotificationResult.UNDELIVERED
        return NotificationResult.FALLBACK_POSTED

    async def post_log_entry(self, channel_id: ChannelID, entry: ModerationLogEntry) -> bool:
        try:
            await self.sink.send_log_entry(channel_id, entry)
        except PlatformActionError as exc:
            logger.error("[ESCALATOR] Could not post log entry to %s: %s", channel_id, exc)
            return False
        return True
