"""
Punishment actions, ladders, and the platform action sink contract.

Punishments are a tagged variant (:class:`WarnAction`, :class:`MuteAction`,
:class:`BanAction`) arranged into one three-tier :class:`PunishmentLadder` per
violation category. The :class:`ActionSink` protocol is the only way the
moderation core touches the chat platform.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional, Protocol, Tuple, Union

from modshield.datatypes.discord_datatypes import ChannelID, MessageID, UserID
from modshield.datatypes.moderation_datatypes import NotificationResult, ViolationCategory

MAX_TIER = 3


class PunishmentKind(Enum):
    """Enumeration of supported punishment actions."""

    WARN = "warn"
    MUTE = "mute"
    BAN = "ban"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class WarnAction:
    kind = PunishmentKind.WARN


@dataclass(frozen=True, slots=True)
class MuteAction:
    duration_ms: int
    kind = PunishmentKind.MUTE

    def __post_init__(self) -> None:
        if self.duration_ms <= 0:
            raise ValueError(f"Mute duration must be positive, got {self.duration_ms}")


@dataclass(frozen=True, slots=True)
class BanAction:
    kind = PunishmentKind.BAN


PunishmentAction = Union[WarnAction, MuteAction, BanAction]


@dataclass(frozen=True, slots=True)
class PunishmentTier:
    """One rung of a ladder.

    Attributes:
        action: What happens to the member at this tier.
        user_message: Template sent privately to the offender.
        channel_message: Template posted in the public log entry.
    """
    action: PunishmentAction
    user_message: str
    channel_message: str


@dataclass(frozen=True, slots=True)
class PunishmentLadder:
    """Exactly three tiers (warn, mute, ban by default) for one category."""
    category: ViolationCategory
    tiers: Tuple[PunishmentTier, PunishmentTier, PunishmentTier]

    def __post_init__(self) -> None:
        if len(self.tiers) != MAX_TIER:
            raise ValueError(f"Ladder for {self.category} needs {MAX_TIER} tiers, got {len(self.tiers)}")

    @staticmethod
    def tier_number(count: int) -> int:
        """Clamp a violation count to a tier number in ``1..MAX_TIER``."""
        return max(1, min(count, MAX_TIER))

    def tier_for(self, count: int) -> PunishmentTier:
        return self.tiers[self.tier_number(count) - 1]


@dataclass(frozen=True, slots=True)
class PunishmentPlan:
    """Fully rendered punishment for one violation, ready to execute."""
    user_id: UserID
    display_name: str
    category: ViolationCategory
    count: int
    tier: int
    action: PunishmentAction
    user_message: str
    channel_message: str
    detail: str

    @property
    def kind(self) -> PunishmentKind:
        return self.action.kind

    @property
    def audit_reason(self) -> str:
        return f"Automod: {self.count} violations ({self.category.label})"


@dataclass(slots=True)
class PunishmentOutcome:
    """What actually happened when a plan was executed."""
    plan: PunishmentPlan
    notification: NotificationResult = NotificationResult.UNDELIVERED
    action_applied: bool = False
    error: Optional[str] = None
    counters_reset: bool = False


class LogSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    SEVERE = "severe"
    ERROR = "error"
    SUCCESS = "success"


@dataclass(slots=True)
class ModerationLogEntry:
    """Public log entry rendered by the sink (an embed on Discord)."""
    description: str
    severity: LogSeverity = LogSeverity.WARNING
    title: Optional[str] = None
    fields: List[Tuple[str, str]] = field(default_factory=list)

    def add_field(self, name: str, value: str) -> "ModerationLogEntry":
        self.fields.append((name, value))
        return self


class ActionSink(Protocol):
    """Platform operations consumed by the moderation core.

    Every method except :meth:`send_direct_message` raises
    :class:`~modshield.exceptions.PlatformActionError` on failure.
    """

    async def delete_message(self, channel_id: ChannelID, message_id: MessageID) -> bool: ...

    async def send_direct_message(self, user_id: UserID, content: str) -> bool: ...

    async def send_channel_message(self, channel_id: ChannelID, content: str) -> None: ...

    async def send_log_entry(self, channel_id: ChannelID, entry: ModerationLogEntry) -> None: ...

    async def timeout_member(self, user_id: UserID, duration_ms: int, reason: str) -> None: ...

    async def ban_member(self, user_id: UserID, reason: str) -> None: ...

    async def kick_member(self, user_id: UserID, reason: str) -> None: ...

    async def fetch_ban_status(self, user_id: UserID) -> bool: ...

    async def unban_member(self, user_id: UserID) -> None: ...


def render_template(template: str, params: Mapping[str, object]) -> str:
    """Render ``{name}`` placeholders from *params*, leaving unknown ones untouched."""
    return template.format_map(_KeepMissing(params))


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"
