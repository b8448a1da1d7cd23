"""
Core data structures for rule-based moderation.

This module defines the violation categories, the inbound events the engine
reacts to, the Verdict produced by classification, and the durable
ViolationRecord kept per user and category.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from modshield.datatypes.discord_datatypes import ChannelID, GuildID, MessageID, UserID


class ViolationCategory(Enum):
    """Rule families with independent counters and punishment ladders."""

    ABUSIVE_LANGUAGE = "abusive_language"
    DISALLOWED_LINK = "disallowed_link"
    MASS_MENTION = "mass_mention"
    SPAM = "spam"

    def __str__(self) -> str:
        return self.value

    @property
    def label(self) -> str:
        """Upper-case label used in audit reasons and log embeds."""
        return self.name


@dataclass(frozen=True, slots=True)
class MessageReceived:
    """A guild message as seen by the moderation engine.

    Attributes:
        user_id: Author of the message.
        guild_id: Guild the message was posted in (None for DMs).
        channel_id: Channel the message was posted in.
        message_id: ID of the message, used for deletion.
        display_name: Author name used in log entries and records.
        content: Raw message text.
        mentioned_user_ids: Distinct users mentioned by the message.
        is_bot: True if the author is a bot account.
        author_is_admin: True if the author has administrator permission.
    """
    user_id: UserID
    guild_id: Optional[GuildID]
    channel_id: ChannelID
    message_id: MessageID
    display_name: str
    content: str
    mentioned_user_ids: FrozenSet[UserID] = frozenset()
    is_bot: bool = False
    author_is_admin: bool = False


@dataclass(frozen=True, slots=True)
class MemberJoined:
    """A member joining the guild."""
    user_id: UserID
    username: str
    guild_id: Optional[GuildID]
    is_bot: bool = False
    is_admin: bool = False


@dataclass(frozen=True, slots=True)
class Verdict:
    """Outcome of classifying one event.

    ``explicit_count`` is only set by the spam detector, which already knows
    the user's post-trip count. Every other category lets the escalation
    store compute ``count + 1``.
    """
    category: ViolationCategory
    detail: str
    explicit_count: Optional[int] = None
    links: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ViolationMetadata:
    """Details persisted alongside a counter increment."""
    display_name: str
    detail: str
    raw_content: str
    explicit_count: Optional[int] = None

    @classmethod
    def from_verdict(cls, verdict: Verdict, event: MessageReceived) -> "ViolationMetadata":
        return cls(
            display_name=event.display_name,
            detail=verdict.detail,
            raw_content=event.content,
            explicit_count=verdict.explicit_count,
        )


@dataclass(frozen=True, slots=True)
class LastViolation:
    category: ViolationCategory
    detail: str
    raw_content: str
    timestamp: Optional[datetime.datetime]


@dataclass(slots=True)
class ViolationRecord:
    """Durable violation state for one (user, category) pair."""
    user_id: UserID
    category: ViolationCategory
    display_name: str = ""
    count: int = 0
    last_violation: Optional[LastViolation] = None

    @classmethod
    def empty(cls, user_id: UserID, category: ViolationCategory) -> "ViolationRecord":
        return cls(user_id=user_id, category=category)


class NotificationResult(Enum):
    """Delivery state of a best-effort private notification."""

    DELIVERED = "delivered"
    FALLBACK_POSTED = "fallback_posted"
    UNDELIVERED = "undelivered"

    @property
    def delivered(self) -> bool:
        return self is NotificationResult.DELIVERED


class UnbanOutcome(Enum):
    UNBANNED = "unbanned"
    NOT_BANNED = "not_banned"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class UnbanResult:
    """Result of an administrative unban, including a user-facing message."""
    user_id: UserID
    outcome: UnbanOutcome
    message: str
    warnings: Tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return self.outcome is UnbanOutcome.UNBANNED
