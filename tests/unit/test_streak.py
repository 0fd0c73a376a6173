"""Tests for streak counting, read-time decay and visibility tiers."""

import threading
from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest

from src.core.config import StreakConfig
from src.core.errors import DependencyUnavailableError
from src.core.repository import SqliteRepository, StreakStore
from src.core.schemas import StreakRecord
from src.pipeline.streak import (
    HalvingDecay,
    StreakTracker,
    next_streak,
    visibility_for,
)

DAY = date(2026, 3, 10)


def _record(current: int, last: date | None = DAY, longest: int | None = None) -> StreakRecord:
    return StreakRecord(
        candidate_id="c1",
        current_streak=current,
        longest_streak=longest if longest is not None else current,
        last_active_date=last,
    )


@pytest.fixture()
def repo(tmp_path):  # type: ignore[no-untyped-def]
    r = SqliteRepository.open(tmp_path / "streak.db")
    yield r
    r.close()


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------


class TestVisibility:
    @pytest.mark.parametrize(
        ("streak", "multiplier", "tier"),
        [
            (0, 1, "Invisible"),
            (1, 2, "Low"),
            (2, 2, "Low"),
            (3, 4, "Medium"),
            (4, 4, "Medium"),
            (5, 6, "High"),
            (6, 6, "High"),
            (7, 8, "Elite Approaching"),
            (9, 8, "Elite Approaching"),
            (10, 10, "Elite"),
            (250, 10, "Elite"),
        ],
    )
    def test_tiers(self, streak: int, multiplier: int, tier: str) -> None:
        visibility = visibility_for(streak)
        assert visibility.multiplier == multiplier
        assert visibility.tier == tier


# ---------------------------------------------------------------------------
# Decay
# ---------------------------------------------------------------------------


class TestHalvingDecay:
    def test_same_day_is_full(self) -> None:
        assert HalvingDecay()(6, 0) == 6

    def test_one_missed_day_is_partial(self) -> None:
        visual = HalvingDecay()(6, 1)
        assert 0 < visual < 6

    def test_five_days_is_zero(self) -> None:
        assert HalvingDecay()(6, 5) == 0

    def test_zero_from_threshold(self) -> None:
        assert HalvingDecay()(100, 4) == 0

    def test_grace_window(self) -> None:
        decay = HalvingDecay(grace_days=1, zero_after_days=4)
        assert decay(6, 1) == 6
        assert decay(6, 2) == 3

    def test_from_config(self) -> None:
        decay = HalvingDecay.from_config(StreakConfig(grace_days=2, zero_after_days=7))
        assert decay.grace_days == 2
        assert decay.zero_after_days == 7

    @pytest.mark.parametrize("gap", range(8))
    def test_never_above_current(self, gap: int) -> None:
        assert 0 <= HalvingDecay()(9, gap) <= 9


# ---------------------------------------------------------------------------
# Counting
# ---------------------------------------------------------------------------


class TestNextStreak:
    def test_first_activity(self) -> None:
        assert next_streak(None, DAY) == 1

    def test_consecutive_day(self) -> None:
        assert next_streak(_record(4, date(2026, 3, 9)), DAY) == 5

    def test_same_day(self) -> None:
        assert next_streak(_record(4, DAY), DAY) == 4

    def test_gap_resets(self) -> None:
        assert next_streak(_record(4, date(2026, 3, 7)), DAY) == 1

    def test_protected_streak_halves(self) -> None:
        # one missed day
        assert next_streak(_record(12, date(2026, 3, 8)), DAY, protected_threshold=10) == 6

    def test_below_protection_threshold_resets(self) -> None:
        assert next_streak(_record(8, date(2026, 3, 8)), DAY, protected_threshold=10) == 1


class TestStreakTracker:
    def test_counts_consecutive_days(self, repo) -> None:  # type: ignore[no-untyped-def]
        tracker = StreakTracker(repo)
        assert tracker.record_activity("c1", date(2026, 3, 8)).streak == 1
        assert tracker.record_activity("c1", date(2026, 3, 9)).streak == 2
        update = tracker.record_activity("c1", date(2026, 3, 10))
        assert update.streak == 3
        assert update.is_new_record is True

    def test_same_day_counts_once(self, repo) -> None:  # type: ignore[no-untyped-def]
        tracker = StreakTracker(repo)
        tracker.record_activity("c1", DAY)
        again = tracker.record_activity("c1", DAY)
        assert again.already_counted is True
        assert again.streak == 1

    def test_longest_survives_reset(self, repo) -> None:  # type: ignore[no-untyped-def]
        tracker = StreakTracker(repo)
        tracker.record_activity("c1", date(2026, 3, 1))
        tracker.record_activity("c1", date(2026, 3, 2))
        update = tracker.record_activity("c1", DAY)
        assert update.streak == 1
        assert update.longest_streak == 2
        assert update.is_new_record is False

    def test_concurrent_same_day_events(self, repo) -> None:  # type: ignore[no-untyped-def]
        tracker = StreakTracker(repo)
        tracker.record_activity("c1", date(2026, 3, 9))

        threads = [
            threading.Thread(target=tracker.record_activity, args=("c1", DAY))
            for _ in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        record = repo.get_streak("c1")
        assert record.current_streak == 2
        assert record.last_active_date == DAY

    def test_gives_up_after_repeated_conflicts(self) -> None:
        store = MagicMock(spec=StreakStore)
        store.get_streak.return_value = None
        store.save_streak_if_unchanged.return_value = False
        tracker = StreakTracker(store, StreakConfig(max_update_attempts=3))
        with pytest.raises(DependencyUnavailableError, match="streak store unavailable"):
            tracker.record_activity("c1", DAY)
        assert store.save_streak_if_unchanged.call_count == 3

    def test_retries_after_one_conflict(self) -> None:
        store = MagicMock(spec=StreakStore)
        store.get_streak.side_effect = [None, _record(1, date(2026, 3, 9))]
        store.save_streak_if_unchanged.side_effect = [False, True]
        update = StreakTracker(store).record_activity("c1", DAY)
        assert update.streak == 2

    def test_today_uses_logical_day(self, repo) -> None:  # type: ignore[no-untyped-def]
        # 03:59 local on the 11th still counts for the 10th
        tracker = StreakTracker(repo, clock=lambda: datetime(2026, 3, 10, 23, 59, tzinfo=timezone.utc))
        assert tracker.today() == DAY
        tracker.record_activity("c1")
        assert repo.get_streak("c1").last_active_date == DAY


class TestSnapshot:
    def test_decayed_view_after_missed_day(self, repo) -> None:  # type: ignore[no-untyped-def]
        repo.save_streak_if_unchanged(_record(6, date(2026, 3, 9)), None)
        snapshot = StreakTracker(repo).snapshot("c1", DAY)
        assert snapshot.current == 6
        assert snapshot.visual == 3
        assert snapshot.tier == "High"
        assert snapshot.multiplier == 6

    def test_long_gap_visual_zero(self, repo) -> None:  # type: ignore[no-untyped-def]
        repo.save_streak_if_unchanged(_record(6, date(2026, 3, 5)), None)
        snapshot = StreakTracker(repo).snapshot("c1", DAY)
        assert snapshot.visual == 0
        assert snapshot.current == 6

    def test_unknown_candidate(self, repo) -> None:  # type: ignore[no-untyped-def]
        snapshot = StreakTracker(repo).snapshot("nobody", DAY)
        assert snapshot.current == 0
        assert snapshot.visual == 0
        assert snapshot.tier == "Invisible"
        assert snapshot.multiplier == 1

    def test_pluggable_decay(self, repo) -> None:  # type: ignore[no-untyped-def]
        repo.save_streak_if_unchanged(_record(6, date(2026, 3, 7)), None)
        tracker = StreakTracker(repo, decay=lambda current, gap: current - gap)
        assert tracker.snapshot("c1", DAY).visual == 3

    def test_visual_never_exceeds_current(self, repo) -> None:  # type: ignore[no-untyped-def]
        repo.save_streak_if_unchanged(_record(2, DAY), None)
        tracker = StreakTracker(repo, decay=lambda current, gap: current * 10)
        assert tracker.snapshot("c1", DAY).visual == 2
