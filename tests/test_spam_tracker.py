"""Tests for the sliding-window spam tracker."""

import pytest

from modshield.datatypes.discord_datatypes import UserID
from modshield.moderation.spam_tracker import SpamRateTracker

USER = UserID(1)
OTHER = UserID(2)


def send(tracker: SpamRateTracker, user: UserID, times):
    return [tracker.record_and_check(user, t) for t in times]


def test_trips_when_threshold_messages_already_in_window():
    tracker = SpamRateTracker(threshold=5, window_ms=10_000)

    results = send(tracker, USER, [0, 100, 200, 300, 400, 500])

    assert [r.is_spam for r in results] == [False] * 5 + [True]
    assert results[-1].count_in_window == 5
    assert results[-1].trip_count == 1


def test_window_is_cleared_after_trip():
    tracker = SpamRateTracker(threshold=2, window_ms=10_000)

    results = send(tracker, USER, [0, 1, 2, 3])

    assert [r.is_spam for r in results] == [False, False, True, False]
    assert tracker.window_size(USER) == 1


def test_trip_counter_accumulates_across_bursts():
    tracker = SpamRateTracker(threshold=2, window_ms=1_000)

    send(tracker, USER, [0, 1, 2])
    results = send(tracker, USER, [3, 4, 5])

    assert results[-1].is_spam is True
    assert results[-1].trip_count == 2


def test_old_messages_fall_out_of_window():
    tracker = SpamRateTracker(threshold=2, window_ms=1_000)

    results = send(tracker, USER, [0, 500, 1_000, 1_500])

    # 0 expires at 1000 (boundary is exclusive), 500 expires at 1500
    assert [r.is_spam for r in results] == [False, False, False, False]


def test_messages_exactly_at_window_boundary_are_pruned():
    tracker = SpamRateTracker(threshold=1, window_ms=1_000)

    assert tracker.record_and_check(USER, 0).is_spam is False
    assert tracker.record_and_check(USER, 1_000).is_spam is False
    assert tracker.record_and_check(USER, 1_999).is_spam is True


def test_users_are_tracked_independently():
    tracker = SpamRateTracker(threshold=2, window_ms=10_000)

    send(tracker, USER, [0, 1])
    assert tracker.record_and_check(OTHER, 2).is_spam is False
    assert tracker.record_and_check(USER, 3).is_spam is True


def test_forget_clears_window_and_trip_counter():
    tracker = SpamRateTracker(threshold=1, window_ms=10_000)
    assert send(tracker, USER, [0, 1])[-1].trip_count == 1

    tracker.forget(USER)

    assert tracker.window_size(USER) == 0
    assert tracker.record_and_check(USER, 2).is_spam is False
    assert tracker.record_and_check(USER, 3).trip_count == 1


def test_evict_idle_removes_stale_windows_only():
    tracker = SpamRateTracker(threshold=5, window_ms=1_000)
    tracker.record_and_check(USER, 0)
    tracker.record_and_check(OTHER, 900)

    evicted = tracker.evict_idle(1_200)

    assert evicted == 1
    assert tracker.window_size(USER) == 0
    assert tracker.window_size(OTHER) == 1
    assert tracker.evict_idle(1_200) == 0


def test_evict_idle_drops_trip_counters_with_windows():
    tracker = SpamRateTracker(threshold=1, window_ms=1_000)
    assert send(tracker, USER, [0, 1])[-1].trip_count == 1

    assert tracker.evict_idle(5_000) == 1

    # a fresh burst after eviction counts from one again
    assert send(tracker, USER, [5_000, 5_001])[-1].trip_count == 1


def test_lazy_sweep_runs_once_per_window():
    tracker = SpamRateTracker(threshold=5, window_ms=1_000)
    tracker.record_and_check(USER, 0)
    tracker.record_and_check(OTHER, 2_000)

    # USER was swept by the second call, OTHER is still active
    assert tracker.evict_idle(2_000) == 0
    assert tracker.window_size(OTHER) == 1


@pytest.mark.parametrize("threshold, window_ms", [(0, 1_000), (5, 0)])
def test_invalid_parameters_are_rejected(threshold, window_ms):
    with pytest.raises(ValueError):
        SpamRateTracker(threshold=threshold, window_ms=window_ms)
