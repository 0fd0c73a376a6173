"""Daily pick scheduler: one stable, bounded selection per candidate per logical day.

Data flow:
  1. Resolve the logical day (fixed UTC offset, local refresh hour)
  2. Stored set for that day → reuse it as is (no re-selection, no re-ordering,
     no re-scoring)
  3. Otherwise score the active corpus, pick one early-access + N regular,
     and persist ids and scores with compare-and-swap
  4. Decorate every pick with live lock / applied state
"""

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from src.core.clock import logical_day_for, utc_now
from src.core.config import ScoringConfig, SchedulerConfig
from src.core.errors import CandidateNotFoundError
from src.core.repository import Repository
from src.core.schemas import (
    DailyPickSet,
    DailyPicksResponse,
    DecoratedPick,
    MatchResult,
    Opportunity,
    PickScore,
    ScoredOpportunity,
)
from src.pipeline.scorer import score, score_opportunities
from src.pipeline.streak import StreakTracker
from src.profile.normalizer import CandidateProfile, normalize_profile

logger = logging.getLogger(__name__)


def select_picks(
    scored: list[ScoredOpportunity],
    now: datetime,
    early_access_slots: int = 1,
    regular_slots: int = 2,
) -> tuple[ScoredOpportunity | None, list[ScoredOpportunity]]:
    """Choose the early-access slot and the regular slots from a scored pool.

    ``scored`` must already be ordered by score desc, then most recent
    publication. Listings still inside their early-access window are never
    offered as regular picks.
    """
    early = [s for s in scored if s.opportunity.is_in_early_access(now)]
    regular = [s for s in scored if not s.opportunity.is_in_early_access(now)]
    early_pick = early[0] if early and early_access_slots > 0 else None
    return early_pick, regular[:regular_slots]


def _pick_score(match: MatchResult) -> PickScore:
    return PickScore(score=match.score, reasons=match.reasons, warnings=match.warnings)


class DailyPickScheduler:
    """Computes, persists and decorates each candidate's daily picks."""

    def __init__(
        self,
        repository: Repository,
        streaks: StreakTracker,
        config: SchedulerConfig | None = None,
        scoring: ScoringConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repo = repository
        self._streaks = streaks
        self._config = config or SchedulerConfig()
        self._scoring = scoring or ScoringConfig()
        self._clock = clock or utc_now
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def logical_day(self, now: datetime | None = None) -> datetime:
        return logical_day_for(
            now or self._clock(), self._config.utc_offset_hours, self._config.refresh_hour,
        )

    def _lock_for(self, candidate_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(candidate_id, threading.Lock())

    def get_daily_picks(self, candidate_id: str) -> DailyPicksResponse:
        """Return today's picks for a candidate, regenerating once per logical day."""
        now = self._clock()
        day = self.logical_day(now)

        record = self._repo.get_candidate(candidate_id)
        if record is None:
            raise CandidateNotFoundError(candidate_id)
        profile = normalize_profile(record)
        applied = self._repo.get_applied_ids(candidate_id)
        unlocked = self._repo.get_unlocked_ids(candidate_id)

        regenerated = False
        with self._lock_for(candidate_id):
            stored = self._repo.get_pick_set(candidate_id)
            if stored is not None and stored.refresh_date == day:
                pick_set = stored
                logger.debug("Reusing daily picks for %s (%s)", candidate_id, day.date())
            else:
                pick_set = self._regenerate(profile, applied, day, now)
                if self._repo.replace_pick_set_if_stale(pick_set, stored):
                    regenerated = True
                    logger.info(
                        "Generated %d daily picks for %s (%s early access)",
                        len(pick_set.opportunity_ids),
                        candidate_id,
                        "1" if pick_set.early_access_id else "no",
                    )
                else:
                    winner = self._repo.get_pick_set(candidate_id)
                    logger.info("Daily picks for %s were written concurrently", candidate_id)
                    if winner is not None:
                        pick_set = winner

        opportunities = self._repo.get_by_ids(pick_set.opportunity_ids)
        picks = self._decorate(profile, pick_set, opportunities, applied, unlocked, now)
        return DailyPicksResponse(
            picks=picks,
            streak=self._streaks.snapshot(candidate_id, day.date()),
            refresh_date=pick_set.refresh_date,
            regenerated=regenerated,
        )

    def _regenerate(
        self,
        profile: CandidateProfile,
        applied: set[str],
        day: datetime,
        now: datetime,
    ) -> DailyPickSet:
        pool = [o for o in self._repo.list_active() if o.id not in applied]
        scored = score_opportunities(profile, pool, self._scoring)
        early, regular = select_picks(
            scored, now, self._config.early_access_slots, self._config.regular_slots,
        )
        chosen = [early, *regular] if early is not None else regular
        return DailyPickSet(
            candidate_id=profile.candidate_id,
            refresh_date=day,
            opportunity_ids=[s.opportunity.id for s in chosen],
            early_access_id=early.opportunity.id if early else None,
            scores={s.opportunity.id: _pick_score(s.match) for s in chosen},
        )

    def _decorate(
        self,
        profile: CandidateProfile,
        pick_set: DailyPickSet,
        opportunities: list[Opportunity],
        applied: set[str],
        unlocked: set[str],
        now: datetime,
    ) -> list[DecoratedPick]:
        by_id = {o.id: o for o in opportunities}
        picks: list[DecoratedPick] = []
        for opportunity_id in pick_set.opportunity_ids:
            opp = by_id.get(opportunity_id)
            if opp is None or not opp.is_active:
                logger.debug("Pick %s no longer in the active corpus", opportunity_id)
                continue
            shown = pick_set.scores.get(opp.id)
            if shown is None:
                # sets stored before scores were kept
                shown = _pick_score(score(profile, opp, self._scoring))
            is_early = opp.id == pick_set.early_access_id and opp.is_in_early_access(now)
            picks.append(
                DecoratedPick(
                    id=opp.id,
                    title=opp.title,
                    employer=opp.employer,
                    location=opp.location,
                    url=opp.url,
                    score=shown.score,
                    reasons=shown.reasons,
                    warnings=shown.warnings,
                    is_early_access=is_early,
                    is_locked=is_early and opp.id not in unlocked,
                    has_applied=opp.id in applied,
                )
            )
        return picks
