"""
Validated, immutable moderation settings.

The raw ``moderation`` and ``punishments`` sections of ``app_config.yml`` are
parsed once at startup into :class:`ModerationSettings`. Every value is checked
here so the moderation core never has to probe configuration at use time; any
malformed value raises :class:`~modshield.exceptions.ConfigurationError`.

Example ``app_config.yml``::

    moderation:
      spam_threshold: 5
      spam_window_ms: 10000
      mention_limit: 2
      allowed_domains: [discord.com, discord.gg]
      lexicon_path: data/abusive-words.txt
      username_check:
        enabled: true
        auto_kick: true
    punishments:
      spam:
        1: {type: WARN, dm: "Please stop spamming.", channel_msg: "{user} warned (1/3)"}
        2: {type: MUTE, duration_ms: 300000, dm: "...", channel_msg: "..."}
        3: {type: BAN, dm: "...", channel_msg: "..."}
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, FrozenSet, Mapping, Optional

from modshield.configuration.app_configuration import AppConfig
from modshield.datatypes.action_datatypes import (
    MAX_TIER,
    BanAction,
    MuteAction,
    PunishmentAction,
    PunishmentLadder,
    PunishmentTier,
    WarnAction,
    render_template,
)
from modshield.datatypes.discord_datatypes import ChannelID, GuildID
from modshield.datatypes.moderation_datatypes import ViolationCategory
from modshield.exceptions import ConfigurationError
from modshield.util.logger import get_logger

logger = get_logger("moderation_settings")

FIVE_MINUTES_MS = 5 * 60 * 1000
# Discord rejects timeouts longer than 28 days
MAX_MUTE_MS = 28 * 24 * 60 * 60 * 1000

DEFAULT_ALLOWED_DOMAINS = ("discord.com", "discord.gg")
DEFAULT_LEXICON_PATH = Path("data/abusive-words.txt")
DEFAULT_USERNAME_WARNING = (
    "Your username violates our server rules. "
    "Please change your Discord username and rejoin."
)

# Placeholders every template may use; rendering with these must succeed at load time
TEMPLATE_PARAMS = {"user": "user", "limit": 0, "count": 0, "detail": "detail"}


def _tier(kind: str, dm: str, channel_msg: str, duration_ms: int = FIVE_MINUTES_MS) -> dict[str, Any]:
    tier: dict[str, Any] = {"type": kind, "dm": dm, "channel_msg": channel_msg}
    if kind == "MUTE":
        tier["duration_ms"] = duration_ms
    return tier


DEFAULT_PUNISHMENTS: dict[ViolationCategory, dict[int, dict[str, Any]]] = {
    ViolationCategory.ABUSIVE_LANGUAGE: {
        1: _tier("WARN",
                 "⚠️ **First Warning**\nYour message violated server rules.\nNext offense: 5-minute mute",
                 "{user} received a warning (1/3)"),
        2: _tier("MUTE",
                 "🔇 **You have been muted for 5 minutes**\nReason: Repeated violations",
                 "🔇 {user} muted for 5 minutes (2/3)"),
        3: _tier("BAN",
                 "🚫 **You have been banned**\nReason: Multiple rule violations",
                 "🚫 {user} banned (violations cleared)"),
    },
    ViolationCategory.DISALLOWED_LINK: {
        1: _tier("WARN",
                 "⚠️ **Link Warning**\nSending links is not allowed in this server.\nNext offense: 5-minute mute",
                 "{user} received a warning for sending links (1/3)"),
        2: _tier("MUTE",
                 "🔇 **You have been muted for 5 minutes**\nReason: Repeated link sharing",
                 "🔇 {user} muted for 5 minutes for sending links (2/3)"),
        3: _tier("BAN",
                 "🚫 **You have been banned**\nReason: Multiple link sharing violations",
                 "🚫 {user} banned for repeated link sharing (violations cleared)"),
    },
    ViolationCategory.MASS_MENTION: {
        1: _tier("WARN",
                 "⚠️ **Mention Warning**\nYou mentioned too many users in one message "
                 "(max {limit} allowed).\nNext offense: 5-minute mute",
                 "{user} received a warning for mass mentions (1/3)"),
        2: _tier("MUTE",
                 "🔇 **You have been muted for 5 minutes**\nReason: Repeated mass mentions",
                 "🔇 {user} muted for 5 minutes for mass mentions (2/3)"),
        3: _tier("BAN",
                 "🚫 **You have been banned**\nReason: Multiple mass mention violations",
                 "🚫 {user} banned for repeated mass mentions (violations cleared)"),
    },
    ViolationCategory.SPAM: {
        1: _tier("WARN",
                 "⚠️ **Spam Warning**\nPlease stop spamming messages.\nNext offense: 5-minute mute",
                 "{user} received a warning for spamming (1/3)"),
        2: _tier("MUTE",
                 "🔇 **You have been muted for 5 minutes**\nReason: Repeated spamming",
                 "🔇 {user} muted for 5 minutes for spamming (2/3)"),
        3: _tier("BAN",
                 "🚫 **You have been banned**\nReason: Multiple spamming violations",
                 "🚫 {user} banned for repeated spamming (violations cleared)"),
    },
}


@dataclass(frozen=True, slots=True)
class UsernameCheckSettings:
    enabled: bool = True
    auto_kick: bool = True
    warning_message: str = DEFAULT_USERNAME_WARNING


@dataclass(frozen=True, slots=True)
class ModerationSettings:
    """Immutable moderation configuration shared by every engine component.

    Attributes:
        spam_threshold: Messages already inside the window that trip spam detection.
        spam_window_ms: Length of the sliding spam window in milliseconds.
        mention_limit: Maximum distinct user mentions allowed per message.
        allowed_domains: Hostnames (without ``www.``) that links may point at.
        username_check: Join-time username screening options.
        lexicon_path: File holding one disallowed term per line.
        platform_timeout_seconds: Upper bound for each platform call.
        guild_id: Only events from this guild are moderated (None = any guild).
        mod_log_channel_id: Channel receiving username-violation log entries.
        ladders: One punishment ladder per violation category.
    """
    spam_threshold: int = 5
    spam_window_ms: int = 10_000
    mention_limit: int = 2
    allowed_domains: FrozenSet[str] = frozenset(DEFAULT_ALLOWED_DOMAINS)
    username_check: UsernameCheckSettings = field(default_factory=UsernameCheckSettings)
    lexicon_path: Path = DEFAULT_LEXICON_PATH
    platform_timeout_seconds: float = 10.0
    guild_id: Optional[GuildID] = None
    mod_log_channel_id: Optional[ChannelID] = None
    ladders: Mapping[ViolationCategory, PunishmentLadder] = field(
        default_factory=lambda: build_ladders({})
    )

    @classmethod
    def default(cls) -> "ModerationSettings":
        return cls()

    def ladder(self, category: ViolationCategory) -> PunishmentLadder:
        return self.ladders[category]


# ------------------------------------------------------------------
# Value coercion helpers
# ------------------------------------------------------------------

def _as_int(raw: Any, name: str, *, minimum: int) -> int:
    if isinstance(raw, bool) or not isinstance(raw, (int, str)):
        raise ConfigurationError(f"'{name}' must be an integer, got {raw!r}")
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"'{name}' must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"'{name}' must be >= {minimum}, got {value}")
    return value


def _as_bool(raw: Any, name: str) -> bool:
    if not isinstance(raw, bool):
        raise ConfigurationError(f"'{name}' must be true or false, got {raw!r}")
    return raw


def _as_str(raw: Any, name: str) -> str:
    if not isinstance(raw, str):
        raise ConfigurationError(f"'{name}' must be a string, got {raw!r}")
    return raw


def _normalize_domain(domain: str) -> str:
    domain = domain.strip().lower()
    return domain[4:] if domain.startswith("www.") else domain


def _optional_snowflake(raw: Any, name: str, wrapper: type) -> Any:
    if raw is None or raw == "":
        return None
    try:
        return wrapper(raw)
    except ValueError:
        raise ConfigurationError(f"'{name}' must be a Discord ID, got {raw!r}") from None


def _check_template(template: str, name: str) -> str:
    try:
        render_template(template, TEMPLATE_PARAMS)
    except (ValueError, IndexError, KeyError, AttributeError) as exc:
        raise ConfigurationError(f"Template '{name}' is malformed: {exc}") from None
    return template


# ------------------------------------------------------------------
# Ladders
# ------------------------------------------------------------------

def _build_action(tier: Mapping[str, Any], name: str) -> PunishmentAction:
    kind = str(tier.get("type", "")).strip().upper()
    match kind:
        case "WARN":
            return WarnAction()
        case "MUTE" | "TIMEOUT":
            duration = _as_int(tier.get("duration_ms", FIVE_MINUTES_MS), f"{name}.duration_ms", minimum=1)
            if duration > MAX_MUTE_MS:
                raise ConfigurationError(f"'{name}.duration_ms' exceeds the 28 day platform limit")
            return MuteAction(duration_ms=duration)
        case "BAN":
            return BanAction()
        case _:
            raise ConfigurationError(f"'{name}.type' must be WARN, MUTE or BAN, got {tier.get('type')!r}")


def _build_ladder(category: ViolationCategory, raw: Any) -> PunishmentLadder:
    defaults = DEFAULT_PUNISHMENTS[category]
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"'punishments.{category}' must be a mapping of tiers")

    overrides: dict[int, Mapping[str, Any]] = {}
    for key, value in raw.items():
        tier_number = _as_int(key, f"punishments.{category} tier", minimum=1)
        if tier_number > MAX_TIER:
            raise ConfigurationError(f"'punishments.{category}' defines tier {tier_number}; only 1-{MAX_TIER} exist")
        if not isinstance(value, Mapping):
            raise ConfigurationError(f"'punishments.{category}.{tier_number}' must be a mapping")
        overrides[tier_number] = value

    tiers = []
    for tier_number in range(1, MAX_TIER + 1):
        name = f"punishments.{category}.{tier_number}"
        merged = {**defaults[tier_number], **overrides.get(tier_number, {})}
        if "type" in overrides.get(tier_number, {}) and "duration_ms" not in overrides[tier_number]:
            merged.pop("duration_ms", None)
        tiers.append(PunishmentTier(
            action=_build_action(merged, name),
            user_message=_check_template(_as_str(merged.get("dm", ""), f"{name}.dm"), f"{name}.dm"),
            channel_message=_check_template(
                _as_str(merged.get("channel_msg", ""), f"{name}.channel_msg"), f"{name}.channel_msg"
            ),
        ))
    return PunishmentLadder(category=category, tiers=(tiers[0], tiers[1], tiers[2]))


def build_ladders(raw: Mapping[str, Any]) -> Mapping[ViolationCategory, PunishmentLadder]:
    """Build all four ladders, filling unspecified tiers from the defaults."""
    known = {category.value for category in ViolationCategory}
    unknown = set(raw) - known
    if unknown:
        raise ConfigurationError(f"Unknown punishment categories: {', '.join(sorted(map(str, unknown)))}")
    return MappingProxyType({
        category: _build_ladder(category, raw.get(category.value))
        for category in ViolationCategory
    })


# ------------------------------------------------------------------
# Public loader
# ------------------------------------------------------------------

def parse_moderation_settings(
    moderation: Mapping[str, Any],
    punishments: Mapping[str, Any],
    env: Mapping[str, str] | None = None,
) -> ModerationSettings:
    """Validate raw configuration mappings into :class:`ModerationSettings`.

    ``GUILD_ID`` and ``MOD_LOG_CHANNEL`` from *env* override the values in
    the YAML file.

    Raises:
        ConfigurationError: If any value is missing its expected type or range.
    """
    env = os.environ if env is None else env

    username_raw = moderation.get("username_check", {}) or {}
    if not isinstance(username_raw, Mapping):
        raise ConfigurationError("'moderation.username_check' must be a mapping")
    username_check = UsernameCheckSettings(
        enabled=_as_bool(username_raw.get("enabled", True), "username_check.enabled"),
        auto_kick=_as_bool(username_raw.get("auto_kick", True), "username_check.auto_kick"),
        warning_message=_as_str(
            username_raw.get("warning_message", DEFAULT_USERNAME_WARNING), "username_check.warning_message"
        ),
    )

    domains_raw = moderation.get("allowed_domains", list(DEFAULT_ALLOWED_DOMAINS))
    if not isinstance(domains_raw, (list, tuple)):
        raise ConfigurationError("'moderation.allowed_domains' must be a list of hostnames")
    allowed_domains = frozenset(
        _normalize_domain(_as_str(domain, "allowed_domains[]"))
        for domain in domains_raw
        if str(domain).strip()
    )

    timeout_raw = moderation.get("platform_timeout_seconds", 10.0)
    if isinstance(timeout_raw, bool) or not isinstance(timeout_raw, (int, float)) or timeout_raw <= 0:
        raise ConfigurationError(f"'platform_timeout_seconds' must be a positive number, got {timeout_raw!r}")

    settings = ModerationSettings(
        spam_threshold=_as_int(moderation.get("spam_threshold", 5), "spam_threshold", minimum=1),
        spam_window_ms=_as_int(moderation.get("spam_window_ms", 10_000), "spam_window_ms", minimum=1),
        mention_limit=_as_int(moderation.get("mention_limit", 2), "mention_limit", minimum=0),
        allowed_domains=allowed_domains,
        username_check=username_check,
        lexicon_path=Path(_as_str(moderation.get("lexicon_path", str(DEFAULT_LEXICON_PATH)), "lexicon_path")),
        platform_timeout_seconds=float(timeout_raw),
        guild_id=_optional_snowflake(env.get("GUILD_ID") or moderation.get("guild_id"), "guild_id", GuildID),
        mod_log_channel_id=_optional_snowflake(
            env.get("MOD_LOG_CHANNEL") or moderation.get("mod_log_channel_id"), "mod_log_channel_id", ChannelID
        ),
        ladders=build_ladders(punishments),
    )
    return settings


def load_moderation_settings(config: AppConfig, env: Mapping[str, str] | None = None) -> ModerationSettings:
    """Validate the moderation sections of *config* and log a short summary."""
    settings = parse_moderation_settings(config.moderation, config.punishments, env)
    logger.info(
        "[MODERATION SETTINGS] spam=%d msgs/%dms, mention_limit=%d, allowed_domains=%s, username_check=%s",
        settings.spam_threshold,
        settings.spam_window_ms,
        settings.mention_limit,
        sorted(settings.allowed_domains),
        "on" if settings.username_check.enabled else "off",
    )
    return settings
