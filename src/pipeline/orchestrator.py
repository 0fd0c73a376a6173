"""Orchestrator: wires the repository, scorer, scheduler, streaks and ingestion.

Entry points exposed to callers:
  - get_daily_picks(candidate_id)
  - ingest_batch(rows)
  - score(candidate, opportunity)   ad-hoc preview outside the daily flow
  - record_application / record_activity / streak
  - deactivate / recategorize       corpus maintenance
"""

import json
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from src.core.clock import utc_now
from src.core.config import Settings
from src.core.errors import CandidateNotFoundError, EngineError, OpportunityNotFoundError
from src.core.repository import Repository, SqliteRepository
from src.core.schemas import (
    DailyPicksResponse,
    IngestionResult,
    MatchResult,
    Opportunity,
    StreakSnapshot,
    StreakUpdate,
)
from src.pipeline.categorizer import Categorizer
from src.pipeline.ingestion import IngestionDeduplicator
from src.pipeline.scheduler import DailyPickScheduler
from src.pipeline.scorer import score
from src.pipeline.streak import DecayFunction, StreakTracker
from src.profile.normalizer import normalize_profile
from src.profile.schema import CandidateRecord

logger = logging.getLogger(__name__)


class RankingEngine:
    """Facade over the ranking core with an injected repository."""

    def __init__(
        self,
        repository: Repository,
        settings: Settings | None = None,
        categorizer: Categorizer | None = None,
        decay: DecayFunction | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.repository = repository
        self._clock = clock or utc_now

        if categorizer is None and self.settings.categorization.enabled:
            categorizer = Categorizer(self.settings.categorization)
        self.categorizer = categorizer

        self.streaks = StreakTracker(
            repository,
            self.settings.streak,
            self.settings.scheduler,
            decay=decay,
            clock=self._clock,
        )
        self.scheduler = DailyPickScheduler(
            repository,
            self.streaks,
            self.settings.scheduler,
            self.settings.scoring,
            clock=self._clock,
        )
        self.ingestion = IngestionDeduplicator(
            repository,
            self.settings.ingestion,
            categorizer=self.categorizer,
            clock=self._clock,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RankingEngine":
        """Build an engine backed by the SQLite database named in settings."""
        return cls(SqliteRepository.open(settings.database.path), settings)

    def get_daily_picks(self, candidate_id: str) -> DailyPicksResponse:
        return self.scheduler.get_daily_picks(candidate_id)

    def ingest_batch(self, rows: list[Mapping[str, Any]]) -> IngestionResult:
        return self.ingestion.ingest_batch(rows)

    def score(
        self,
        candidate: str | CandidateRecord,
        opportunity: str | Opportunity,
    ) -> MatchResult:
        """Score a candidate against a listing, by id or by value."""
        if isinstance(candidate, str):
            record = self.repository.get_candidate(candidate)
            if record is None:
                raise CandidateNotFoundError(candidate)
            candidate = record
        if isinstance(opportunity, str):
            opportunity = self._get_opportunity(opportunity)
        return score(normalize_profile(candidate), opportunity, self.settings.scoring)

    def record_activity(self, candidate_id: str) -> StreakUpdate:
        return self.streaks.record_activity(candidate_id)

    def record_application(self, candidate_id: str, opportunity_id: str) -> StreakUpdate:
        """Store an application and count it as the day's qualifying activity.

        Only available on SqliteRepository, which owns the applications table.
        """
        if not isinstance(self.repository, SqliteRepository):
            msg = "record_application requires a SqliteRepository"
            raise TypeError(msg)
        if self.repository.get_candidate(candidate_id) is None:
            raise CandidateNotFoundError(candidate_id)
        self._get_opportunity(opportunity_id)
        if not self.repository.record_application(candidate_id, opportunity_id):
            logger.info("%s already applied to %s", candidate_id, opportunity_id)
        return self.streaks.record_activity(candidate_id)

    def streak(self, candidate_id: str) -> StreakSnapshot:
        return self.streaks.snapshot(candidate_id)

    def _get_opportunity(self, opportunity_id: str) -> Opportunity:
        found = self.repository.get_by_ids([opportunity_id])
        if not found:
            raise OpportunityNotFoundError(opportunity_id)
        return found[0]

    def deactivate(self, opportunity_id: str) -> bool:
        """Withdraw a listing from future pick sets and from today's stored picks.

        Returns False when the listing was already inactive.
        """
        if self.repository.deactivate_opportunity(opportunity_id):
            logger.info("Deactivated listing %s", opportunity_id)
            return True
        self._get_opportunity(opportunity_id)
        return False

    def recategorize(self, opportunity_id: str) -> Opportunity:
        """Run categorization again on a stored listing and save the new tags.

        A failed categorization keeps the listing's current tags.
        """
        if self.categorizer is None:
            msg = "Categorization is disabled (categorization.enabled is false)"
            raise EngineError(msg)
        opportunity = self._get_opportunity(opportunity_id)
        tags = self.categorizer.categorize(
            opportunity.title,
            opportunity.employer,
            opportunity.description or None,
            opportunity.location or None,
        )
        if tags.is_empty:
            logger.warning("No tags for listing %s - keeping its current tags", opportunity_id)
            return opportunity
        updated = opportunity.model_copy(update={"tags": tags})
        self.repository.save_opportunity(updated)
        return updated

    def close(self) -> None:
        if self.categorizer is not None:
            self.categorizer.close()


def export_picks_json(response: DailyPicksResponse) -> str:
    """Export a daily picks response as a JSON string."""
    return json.dumps(response.model_dump(mode="json"), indent=2)
