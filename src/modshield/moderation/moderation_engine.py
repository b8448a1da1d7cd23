"""
Moderation engine: the event dispatcher between Discord and the core.

Responsibilities:

* drop events that must not be moderated (bots, administrators, other guilds)
* serialise events per user so increments for one user never race
* classify → delete → count → escalate for messages
* screen usernames on join
* administrative unban with a fresh-start reset

Every event is handled in isolation: an exception while processing one event
is logged and never reaches the listener that delivered it.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from modshield.configuration.moderation_settings import ModerationSettings
from modshield.datatypes.action_datatypes import (
    ActionSink,
    LogSeverity,
    ModerationLogEntry,
    PunishmentOutcome,
)
from modshield.datatypes.discord_datatypes import UserID
from modshield.datatypes.moderation_datatypes import (
    MemberJoined,
    MessageReceived,
    UnbanOutcome,
    UnbanResult,
    Verdict,
    ViolationMetadata,
)
from modshield.exceptions import NotFoundError, PlatformActionError, StoreError
from modshield.moderation.classifier import ViolationClassifier
from modshield.moderation.escalation_store import EscalationStore
from modshield.moderation.escalator import PunishmentEscalator
from modshield.moderation.spam_tracker import SpamRateTracker
from modshield.util.keyed_lock import KeyedLockPool
from modshield.util.logger import get_logger

logger = get_logger("moderation_engine")

USERNAME_KICK_REASON = "Automatic kick: Username violation"


def monotonic_ms() -> float:
    return time.monotonic() * 1000


class ModerationEngine:
    """Coordinates classification, counting, and escalation for inbound events.

    Parameters
    ----------
    settings:
        Validated moderation settings.
    classifier:
        Produces at most one verdict per message.
    store:
        Durable violation counters.
    escalator:
        Turns updated counts into punishments.
    sink:
        Platform operations (delete, DM, kick, ban, unban).
    spam_tracker:
        Ephemeral spam windows, cleared on unban.
    clock:
        Millisecond clock used for spam windows; monotonic by default.
    """

    def __init__(
        self,
        settings: ModerationSettings,
        classifier: ViolationClassifier,
        store: EscalationStore,
        escalator: PunishmentEscalator,
        sink: ActionSink,
        spam_tracker: SpamRateTracker,
        *,
        clock: Callable[[], float] = monotonic_ms,
    ) -> None:
        self.settings = settings
        self.classifier = classifier
        self.store = store
        self.escalator = escalator
        self.sink = sink
        self.spam_tracker = spam_tracker
        self.clock = clock
        self._user_locks = KeyedLockPool()

    # ------------------------------------------------------------------
    # Ignore filters
    # ------------------------------------------------------------------

    def should_ignore_message(self, event: MessageReceived) -> bool:
        if event.is_bot or event.author_is_admin or event.guild_id is None:
            return True
        return self.settings.guild_id is not None and event.guild_id != self.settings.guild_id

    def should_ignore_member(self, event: MemberJoined) -> bool:
        if event.is_bot or event.is_admin:
            return True
        return (
            self.settings.guild_id is not None
            and event.guild_id is not None
            and event.guild_id != self.settings.guild_id
        )

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def handle_message(self, event: MessageReceived) -> Optional[PunishmentOutcome]:
        """Moderate one message. Returns the punishment outcome, or None if nothing fired."""
        if self.should_ignore_message(event):
            return None

        try:
            async with self._user_locks.hold(event.user_id):
                verdict = self.classifier.classify(event, self.clock())
                if verdict is None:
                    return None
                logger.info(
                    "[MODERATION ENGINE] Violation detected from %s: %s (%s)",
                    event.display_name, verdict.category.label, verdict.detail,
                )
                return await self.process_violation(event, verdict)
        except Exception:
            logger.exception(
                "[MODERATION ENGINE] Message processing error for %s in channel %s",
                event.user_id, event.channel_id,
            )
            return None

    async def process_violation(self, event: MessageReceived, verdict: Verdict) -> PunishmentOutcome:
        """Delete the message, commit the counter, then escalate."""
        await self.delete_offending_message(event)

        try:
            count = await self.store.increment_and_get(
                event.user_id, verdict.category, ViolationMetadata.from_verdict(verdict, event)
            )
        except StoreError as exc:
            count = verdict.explicit_count or 1
            logger.error(
                "[MODERATION ENGINE] Could not persist violation for %s, escalating with count %d: %s",
                event.user_id, count, exc,
            )

        plan = self.escalator.build_plan(
            event.user_id, event.display_name, verdict.category, count, verdict.detail
        )
        return await self.escalator.escalate(plan, event.channel_id)

    async def delete_offending_message(self, event: MessageReceived) -> bool:
        try:
            return await self.sink.delete_message(event.channel_id, event.message_id)
        except PlatformActionError as exc:
            logger.warning("[MODERATION ENGINE] Could not delete message %s: %s", event.message_id, exc)
            return False

    # ------------------------------------------------------------------
    # Member joins
    # ------------------------------------------------------------------

    async def handle_member_join(self, event: MemberJoined) -> bool:
        """Screen a joining member's username. Returns True if it was flagged."""
        if self.should_ignore_member(event):
            return False

        try:
            if not self.classifier.classify_username(event):
                return False
            await self.handle_disallowed_username(event)
            return True
        except Exception:
            logger.exception("[MODERATION ENGINE] Username check error for %s", event.user_id)
            return False

    async def handle_disallowed_username(self, event: MemberJoined) -> None:
        check = self.settings.username_check
        logger.info("[MODERATION ENGINE] Disallowed username on join: %s (%s)", event.username, event.user_id)

        if not await self.sink.send_direct_message(event.user_id, check.warning_message):
            logger.debug("[MODERATION ENGINE] Could not DM username warning to %s", event.user_id)

        if self.settings.mod_log_channel_id is not None:
            entry = ModerationLogEntry(
                title="Username Violation Detected",
                description="Blocked user with inappropriate username",
                severity=LogSeverity.WARNING,
            )
            entry.add_field("User", f"{event.username} ({event.user_id})")
            entry.add_field("Username", event.username)
            entry.add_field("Action", "Kicked" if check.auto_kick else "Warning Sent")
            await self.escalator.post_log_entry(self.settings.mod_log_channel_id, entry)

        if check.auto_kick:
            try:
                await self.sink.kick_member(event.user_id, USERNAME_KICK_REASON)
            except PlatformActionError as exc:
                logger.error("[MODERATION ENGINE] Failed to kick %s: %s", event.user_id, exc)

    # ------------------------------------------------------------------
    # Administrative unban
    # ------------------------------------------------------------------

    async def unban(self, user_id: UserID) -> UnbanResult:
        """Lift a ban and give the user a fresh start in every category."""
        async with self._user_locks.hold(user_id):
            try:
                if not await self.sink.fetch_ban_status(user_id):
                    return UnbanResult(user_id, UnbanOutcome.NOT_BANNED, "User is not banned")
                await self.sink.unban_member(user_id)
            except NotFoundError:
                return UnbanResult(user_id, UnbanOutcome.NOT_BANNED, "User is not banned")
            except PlatformActionError as exc:
                logger.error("[MODERATION ENGINE] Unban error for %s: %s", user_id, exc)
                return UnbanResult(user_id, UnbanOutcome.FAILED, f"Failed: {exc.reason}")

            warnings: tuple[str, ...] = ()
            try:
                await self.store.reset(
                    user_id,
                    None,
                    fresh_record=True,
                    display_name=f"Previously banned user ({user_id})",
                    reason="unban",
                )
            except StoreError as exc:
                logger.error("[MODERATION ENGINE] Unbanned %s but could not reset violations: %s", user_id, exc)
                warnings = ("Violation history could not be reset",)

            self.spam_tracker.forget(user_id)
            logger.info("[MODERATION ENGINE] Unbanned %s with fresh start", user_id)
            return UnbanResult(
                user_id,
                UnbanOutcome.UNBANNED,
                f"Successfully unbanned {user_id.mention} with fresh start (violations reset to 0)",
                warnings,
            )
