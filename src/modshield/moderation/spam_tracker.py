"""
Sliding-window message-rate tracking.

Each user owns a window of recent message timestamps (milliseconds). A
message trips spam detection when ``threshold`` earlier messages are still
inside the trailing window; the window is then emptied so the very next
message cannot trip again until a fresh burst builds up.

The tracker also keeps the per-user spam trip counter, which the escalation
store receives as an explicit count. Both are ephemeral and are evicted
together once a user goes idle; the store never lets a restarted counter
lower the durable spam count.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict

from modshield.datatypes.discord_datatypes import UserID
from modshield.util.logger import get_logger

logger = get_logger("spam_tracker")


@dataclass(frozen=True, slots=True)
class SpamCheck:
    """Result of recording one message.

    Attributes:
        is_spam: True if this message tripped detection.
        count_in_window: Messages already in the window before this one.
        trip_count: The user's spam trip count after this check.
    """
    is_spam: bool
    count_in_window: int
    trip_count: int = 0


class SpamRateTracker:
    """Owns every user's spam window and trip counter.

    Windows and trip counters are created on a user's first tracked message,
    evicted once idle for longer than the window, and cleared by
    :meth:`forget` on ban or unban.
    """

    def __init__(self, threshold: int = 5, window_ms: int = 10_000) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")
        self.threshold = threshold
        self.window_ms = window_ms
        self._windows: Dict[UserID, Deque[float]] = {}
        self._trip_counts: Dict[UserID, int] = {}
        self._lock = threading.Lock()
        self._last_sweep_ms: float | None = None

    def record_and_check(self, user_id: UserID, now_ms: float) -> SpamCheck:
        with self._lock:
            self._maybe_sweep(now_ms)

            window = self._windows.get(user_id)
            if window is None:
                window = deque()
                self._windows[user_id] = window

            while window and now_ms - window[0] >= self.window_ms:
                window.popleft()

            in_window = len(window)
            if in_window >= self.threshold:
                window.clear()
                trips = self._trip_counts.get(user_id, 0) + 1
                self._trip_counts[user_id] = trips
                logger.debug(
                    "[SPAM TRACKER] User %s tripped spam detection (%d in window, trip #%d)",
                    user_id, in_window, trips,
                )
                return SpamCheck(is_spam=True, count_in_window=in_window, trip_count=trips)

            window.append(now_ms)
            return SpamCheck(is_spam=False, count_in_window=in_window, trip_count=self._trip_counts.get(user_id, 0))

    def forget(self, user_id: UserID) -> None:
        """Drop the user's window and trip counter."""
        with self._lock:
            self._windows.pop(user_id, None)
            self._trip_counts.pop(user_id, None)

    def evict_idle(self, now_ms: float) -> int:
        """Remove users whose newest timestamp fell out of the window. Returns the number evicted."""
        with self._lock:
            return self._evict_idle_locked(now_ms)

    def window_size(self, user_id: UserID) -> int:
        """Messages currently held in the user's window."""
        with self._lock:
            window = self._windows.get(user_id)
            return len(window) if window else 0

    # ------------------------------------------------------------------
    # Internal helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _maybe_sweep(self, now_ms: float) -> None:
        if self._last_sweep_ms is None:
            self._last_sweep_ms = now_ms
            return
        if now_ms - self._last_sweep_ms >= self.window_ms:
            self._evict_idle_locked(now_ms)
            self._last_sweep_ms = now_ms

    def _evict_idle_locked(self, now_ms: float) -> int:
        idle = [
            user_id for user_id, window in self._windows.items()
            if not window or now_ms - window[-1] >= self.window_ms
        ]
        for user_id in idle:
            del self._windows[user_id]
            self._trip_counts.pop(user_id, None)
        if idle:
            logger.debug("[SPAM TRACKER] Evicted %d idle spam windows", len(idle))
        return len(idle)
