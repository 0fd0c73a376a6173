"""Streak tracker: consecutive-day activity, read-time decay and visibility tiers.

Streak state lives in the StreakStore. Increments are read-modify-write
guarded by a per-candidate lock and a compare-and-swap on the stored row, so
two events on the same day never count twice.
"""

import logging
import threading
from collections.abc import Callable
from datetime import date, datetime
from typing import NamedTuple

from src.core.clock import logical_date_for, utc_now
from src.core.config import SchedulerConfig, StreakConfig
from src.core.errors import DependencyUnavailableError
from src.core.repository import StreakStore
from src.core.schemas import StreakRecord, StreakSnapshot, StreakUpdate

logger = logging.getLogger(__name__)

# (current_streak, days since last activity) -> visual streak
DecayFunction = Callable[[int, int], int]


class Visibility(NamedTuple):
    multiplier: int
    tier: str


# Ordered from the highest threshold down; the first row whose minimum is
# reached wins. 10+ is the maximum plateau.
VISIBILITY_TIERS: tuple[tuple[int, Visibility], ...] = (
    (10, Visibility(10, "Elite")),
    (7, Visibility(8, "Elite Approaching")),
    (5, Visibility(6, "High")),
    (3, Visibility(4, "Medium")),
    (1, Visibility(2, "Low")),
    (0, Visibility(1, "Invisible")),
)


def visibility_for(current_streak: int) -> Visibility:
    """Map a streak length to its visibility multiplier and tier."""
    for minimum, visibility in VISIBILITY_TIERS:
        if current_streak >= minimum:
            return visibility
    return VISIBILITY_TIERS[-1][1]


class HalvingDecay:
    """Full streak inside the grace window, then halved per missed day, 0 from ``zero_after_days``."""

    def __init__(self, grace_days: int = 0, zero_after_days: int = 4) -> None:
        self.grace_days = grace_days
        self.zero_after_days = zero_after_days

    @classmethod
    def from_config(cls, config: StreakConfig) -> "HalvingDecay":
        return cls(grace_days=config.grace_days, zero_after_days=config.zero_after_days)

    def __call__(self, current_streak: int, days_since_active: int) -> int:
        if current_streak <= 0:
            return 0
        if days_since_active <= self.grace_days:
            return current_streak
        if days_since_active >= self.zero_after_days:
            return 0
        steps = days_since_active - self.grace_days
        return current_streak >> steps


def next_streak(
    record: StreakRecord | None,
    today: date,
    protected_threshold: int | None = None,
) -> int:
    """Streak length after a qualifying activity on ``today``."""
    if record is None or record.last_active_date is None:
        return (record.current_streak if record else 0) + 1
    gap = (today - record.last_active_date).days
    if gap <= 0:
        return record.current_streak
    if gap == 1:
        return record.current_streak + 1
    if protected_threshold is not None and record.current_streak >= protected_threshold:
        missed = gap - 1
        return max(1, record.current_streak >> missed)
    return 1


class StreakTracker:
    """Records qualifying activity and derives decayed streaks and visibility.

    Usage::

        tracker = StreakTracker(repo, StreakConfig(), SchedulerConfig())
        tracker.record_activity("cand-1")
        snapshot = tracker.snapshot("cand-1")
    """

    def __init__(
        self,
        store: StreakStore,
        config: StreakConfig | None = None,
        scheduler_config: SchedulerConfig | None = None,
        decay: DecayFunction | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._config = config or StreakConfig()
        self._scheduler_config = scheduler_config or SchedulerConfig()
        self._decay = decay or HalvingDecay.from_config(self._config)
        self._clock = clock or utc_now
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def today(self) -> date:
        """Current logical date (same boundary as the daily picks)."""
        return logical_date_for(
            self._clock(),
            self._scheduler_config.utc_offset_hours,
            self._scheduler_config.refresh_hour,
        )

    def _lock_for(self, candidate_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(candidate_id, threading.Lock())

    def record_activity(self, candidate_id: str, today: date | None = None) -> StreakUpdate:
        """Count a qualifying activity (e.g. an application) for ``today``."""
        today = today or self.today()
        with self._lock_for(candidate_id):
            for attempt in range(1, self._config.max_update_attempts + 1):
                stored = self._store.get_streak(candidate_id)
                if stored is not None and stored.last_active_date == today:
                    return StreakUpdate(
                        streak=stored.current_streak,
                        longest_streak=stored.longest_streak,
                        already_counted=True,
                    )

                streak = next_streak(stored, today, self._config.protected_streak_threshold)
                longest = max(streak, stored.longest_streak if stored else 0)
                updated = StreakRecord(
                    candidate_id=candidate_id,
                    current_streak=streak,
                    longest_streak=longest,
                    last_active_date=today,
                )
                if self._store.save_streak_if_unchanged(updated, stored):
                    logger.info("Streak for %s: %d days", candidate_id, streak)
                    return StreakUpdate(
                        streak=streak,
                        longest_streak=longest,
                        is_new_record=streak == longest and streak > 1,
                    )
                logger.debug(
                    "Streak for %s changed concurrently (attempt %d)", candidate_id, attempt,
                )

        msg = f"could not update streak for {candidate_id} after concurrent changes"
        raise DependencyUnavailableError("streak store", msg)

    def visual_streak(self, record: StreakRecord | None, today: date | None = None) -> int:
        """Decayed streak for display; never more than the actual streak."""
        if record is None or record.last_active_date is None:
            return 0
        today = today or self.today()
        gap = max(0, (today - record.last_active_date).days)
        return max(0, min(record.current_streak, self._decay(record.current_streak, gap)))

    def snapshot(self, candidate_id: str, today: date | None = None) -> StreakSnapshot:
        record = self._store.get_streak(candidate_id)
        visibility = visibility_for(record.current_streak if record else 0)
        return StreakSnapshot(
            current=record.current_streak if record else 0,
            visual=self.visual_streak(record, today),
            longest=record.longest_streak if record else 0,
            last_active_date=record.last_active_date if record else None,
            multiplier=visibility.multiplier,
            tier=visibility.tier,
        )
