"""Exception types raised by the moderation core."""

from __future__ import annotations


class ModshieldError(Exception):
    """Base class for all Modshield errors."""
    pass


class ConfigurationError(ModshieldError):
    """Raised when configuration or the lexicon cannot be loaded at startup."""
    pass


class StoreError(ModshieldError):
    """Raised when the escalation store cannot be read or written."""
    pass


class PlatformActionError(ModshieldError):
    """Raised when a platform call (notify, mute, ban, kick, unban) fails.

    Attributes:
        action: Short name of the attempted action, e.g. ``"ban"``.
        cause: The underlying exception, if any.
    """

    def __init__(self, action: str, cause: BaseException | str | None = None) -> None:
        self.action = action
        self.cause = cause
        detail = str(cause) if cause is not None else "unknown error"
        super().__init__(f"{action} failed: {detail}")

    @property
    def reason(self) -> str:
        """Human-readable cause without the action prefix."""
        return str(self.cause) if self.cause is not None else "unknown error"


class NotFoundError(PlatformActionError):
    """Raised when the target of a platform action does not exist (e.g. no active ban)."""
    pass
