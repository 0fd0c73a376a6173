"""Tests for daily pick selection, persistence and decoration."""

from datetime import datetime, timedelta, timezone

import pytest

from src.core.config import SchedulerConfig
from src.core.errors import CandidateNotFoundError, DependencyUnavailableError
from src.core.repository import SqliteRepository
from src.core.schemas import (
    DailyPickSet,
    MatchResult,
    Opportunity,
    OpportunityTags,
    ScoredOpportunity,
)
from src.pipeline.scheduler import DailyPickScheduler, select_picks
from src.pipeline.streak import StreakTracker
from src.profile.schema import CandidateRecord

# 12:00 local (UTC+4) on March 10
NOW = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)
TODAY = datetime(2026, 3, 10, tzinfo=timezone.utc)


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _opportunity(
    opp_id: str,
    *,
    education: list[str] | None = None,
    early_access: bool = False,
    published_at: datetime = NOW - timedelta(days=3),
    **kw: object,
) -> Opportunity:
    return Opportunity(
        id=opp_id,
        title=f"Role {opp_id}",
        employer="Acme",
        url=f"https://acme.com/{opp_id}",
        tags=OpportunityTags(education_match=education or ["Biology"]),
        is_new_opportunity=early_access,
        early_access_until=published_at + timedelta(hours=48) if early_access else None,
        published_at=published_at,
        **kw,  # type: ignore[arg-type]
    )


def _scored(opp: Opportunity, points: int) -> ScoredOpportunity:
    return ScoredOpportunity(opportunity=opp, match=MatchResult(score=points, reasons=["x"]))


@pytest.fixture()
def repo(tmp_path):  # type: ignore[no-untyped-def]
    r = SqliteRepository.open(tmp_path / "picks.db")
    r.save_candidate(CandidateRecord(id="c1", major="Finance"))
    yield r
    r.close()


@pytest.fixture()
def clock() -> _Clock:
    return _Clock(NOW)


@pytest.fixture()
def scheduler(repo, clock):  # type: ignore[no-untyped-def]
    return DailyPickScheduler(repo, StreakTracker(repo, clock=clock), clock=clock)


def _seed(repo: SqliteRepository) -> None:
    """Three strong regular listings, one weak, and one fresh early-access listing."""
    repo.save_opportunity(_opportunity("strong-1", education=["Finance"]))
    repo.save_opportunity(
        _opportunity("strong-2", education=["Finance"], published_at=NOW - timedelta(days=2)),
    )
    repo.save_opportunity(_opportunity("weak"))
    repo.save_opportunity(
        _opportunity("fresh", early_access=True, published_at=NOW - timedelta(hours=1)),
    )


# ---------------------------------------------------------------------------
# Pure selection
# ---------------------------------------------------------------------------


class TestSelectPicks:
    def test_one_early_and_top_regular(self) -> None:
        early = _opportunity("e", early_access=True, published_at=NOW - timedelta(hours=1))
        scored = [
            _scored(_opportunity("a"), 90),
            _scored(early, 80),
            _scored(_opportunity("b"), 70),
            _scored(_opportunity("c"), 60),
        ]
        early_pick, regular = select_picks(scored, NOW)
        assert early_pick is not None
        assert early_pick.opportunity.id == "e"
        assert [s.opportunity.id for s in regular] == ["a", "b"]

    def test_extra_early_access_listings_not_regular(self) -> None:
        e1 = _opportunity("e1", early_access=True, published_at=NOW - timedelta(hours=1))
        e2 = _opportunity("e2", early_access=True, published_at=NOW - timedelta(hours=2))
        early_pick, regular = select_picks([_scored(e1, 90), _scored(e2, 80)], NOW)
        assert early_pick is not None
        assert early_pick.opportunity.id == "e1"
        assert regular == []

    def test_expired_window_is_regular(self) -> None:
        stale = _opportunity("old", early_access=True, published_at=NOW - timedelta(days=3))
        early_pick, regular = select_picks([_scored(stale, 50)], NOW)
        assert early_pick is None
        assert [s.opportunity.id for s in regular] == ["old"]

    def test_early_access_slot_disabled(self) -> None:
        early = _opportunity("e", early_access=True, published_at=NOW - timedelta(hours=1))
        early_pick, _ = select_picks([_scored(early, 90)], NOW, early_access_slots=0)
        assert early_pick is None

    def test_fewer_listings_than_slots(self) -> None:
        early_pick, regular = select_picks([_scored(_opportunity("a"), 10)], NOW)
        assert early_pick is None
        assert len(regular) == 1


# ---------------------------------------------------------------------------
# get_daily_picks
# ---------------------------------------------------------------------------


class TestGetDailyPicks:
    def test_first_call_generates(self, scheduler, repo) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        response = scheduler.get_daily_picks("c1")

        assert response.regenerated is True
        assert response.refresh_date == TODAY
        assert [p.id for p in response.picks] == ["fresh", "strong-2", "strong-1"]
        early = response.picks[0]
        assert early.is_early_access is True
        assert early.is_locked is True
        assert not any(p.is_early_access for p in response.picks[1:])
        assert all(p.reasons for p in response.picks)

    def test_same_day_is_stable_after_new_listings(self, scheduler, repo, clock) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        first = scheduler.get_daily_picks("c1")

        repo.save_opportunity(_opportunity("better", education=["Finance"], published_at=NOW))
        clock.now = NOW + timedelta(hours=10)
        second = scheduler.get_daily_picks("c1")

        assert second.regenerated is False
        assert [p.id for p in second.picks] == [p.id for p in first.picks]

    def test_refreshes_at_local_boundary(self, scheduler, repo, clock) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        scheduler.get_daily_picks("c1")
        repo.save_opportunity(_opportunity("better", education=["Finance"], published_at=NOW))

        # 03:59 local on the 11th: still the 10th
        clock.now = datetime(2026, 3, 10, 23, 59, tzinfo=timezone.utc)
        assert scheduler.get_daily_picks("c1").regenerated is False

        # 04:00 local on the 11th: new day
        clock.now = datetime(2026, 3, 11, 0, 0, tzinfo=timezone.utc)
        response = scheduler.get_daily_picks("c1")
        assert response.regenerated is True
        assert response.refresh_date == TODAY + timedelta(days=1)
        assert "better" in [p.id for p in response.picks]

    def test_same_day_keeps_scores_from_generation(self, scheduler, repo, clock) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        first = {p.id: p for p in scheduler.get_daily_picks("c1").picks}
        assert first["strong-1"].score == 70

        # the listing's tags change mid-day
        repo.save_opportunity(_opportunity("strong-1"))
        clock.now = NOW + timedelta(hours=6)
        second = {p.id: p for p in scheduler.get_daily_picks("c1").picks}

        assert second["strong-1"].score == 70
        assert second["strong-1"].reasons == first["strong-1"].reasons
        assert second["strong-1"].warnings == []

    def test_new_day_scores_current_listing(self, scheduler, repo, clock) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        scheduler.get_daily_picks("c1")
        repo.save_opportunity(_opportunity("strong-1"))
        repo.save_opportunity(_opportunity("strong-2"))

        clock.now = NOW + timedelta(days=1)
        picks = {p.id: p for p in scheduler.get_daily_picks("c1").picks}
        assert picks["strong-1"].score == 45
        assert "Your major may not directly match" in picks["strong-1"].warnings

    def test_unlock_is_reflected_without_reselection(self, scheduler, repo) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        scheduler.get_daily_picks("c1")
        repo.record_unlock("c1", "fresh")
        response = scheduler.get_daily_picks("c1")
        assert response.picks[0].id == "fresh"
        assert response.picks[0].is_locked is False

    def test_applied_flag_on_stored_pick(self, scheduler, repo) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        scheduler.get_daily_picks("c1")
        repo.record_application("c1", "strong-1")
        response = scheduler.get_daily_picks("c1")
        applied = {p.id: p.has_applied for p in response.picks}
        assert applied["strong-1"] is True
        assert applied["strong-2"] is False

    def test_applied_listings_excluded_on_regeneration(self, scheduler, repo) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        repo.record_application("c1", "strong-2")
        ids = [p.id for p in scheduler.get_daily_picks("c1").picks]
        assert "strong-2" not in ids
        assert ids == ["fresh", "strong-1", "weak"]

    def test_expired_early_access_shown_unlocked(self, scheduler, repo, clock) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        scheduler.get_daily_picks("c1")
        # close the window on the stored early-access pick
        repo.save_opportunity(
            _opportunity("fresh", early_access=True, published_at=NOW - timedelta(hours=48)),
        )
        response = scheduler.get_daily_picks("c1")
        fresh = next(p for p in response.picks if p.id == "fresh")
        assert fresh.is_early_access is False
        assert fresh.is_locked is False

    def test_deactivated_pick_dropped(self, scheduler, repo) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        scheduler.get_daily_picks("c1")
        assert repo.deactivate_opportunity("strong-1") is True
        ids = [p.id for p in scheduler.get_daily_picks("c1").picks]
        assert "strong-1" not in ids
        assert len(ids) == 2

    def test_empty_corpus(self, scheduler) -> None:  # type: ignore[no-untyped-def]
        response = scheduler.get_daily_picks("c1")
        assert response.picks == []
        assert response.regenerated is True

    def test_includes_streak(self, scheduler, repo) -> None:  # type: ignore[no-untyped-def]
        StreakTracker(repo).record_activity("c1", TODAY.date())
        response = scheduler.get_daily_picks("c1")
        assert response.streak.current == 1
        assert response.streak.tier == "Low"

    def test_unknown_candidate(self, scheduler) -> None:  # type: ignore[no-untyped-def]
        with pytest.raises(CandidateNotFoundError, match="Candidate not found: ghost"):
            scheduler.get_daily_picks("ghost")

    def test_regular_slot_count(self, repo, clock) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        scheduler = DailyPickScheduler(
            repo,
            StreakTracker(repo, clock=clock),
            SchedulerConfig(regular_slots=1, early_access_slots=0),
            clock=clock,
        )
        assert [p.id for p in scheduler.get_daily_picks("c1").picks] == ["strong-2"]


class _RacingRepository(SqliteRepository):
    """Another writer stores its set just before this one tries to."""

    def __init__(self, conn, winner: DailyPickSet) -> None:  # type: ignore[no-untyped-def]
        super().__init__(conn)
        self._winner = winner

    def replace_pick_set_if_stale(self, pick_set, expected):  # type: ignore[no-untyped-def]
        super().replace_pick_set_if_stale(self._winner, expected)
        return super().replace_pick_set_if_stale(pick_set, expected)


class _FailingRepository(SqliteRepository):
    def replace_pick_set_if_stale(self, pick_set, expected):  # type: ignore[no-untyped-def]
        raise DependencyUnavailableError("pick-set store", "disk full")


class TestConcurrentWrites:
    def test_lost_race_serves_winner(self, repo, clock) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        winner = DailyPickSet(
            candidate_id="c1", refresh_date=TODAY, opportunity_ids=["weak"], early_access_id=None,
        )
        racing = _RacingRepository(repo.connection, winner)
        scheduler = DailyPickScheduler(racing, StreakTracker(racing, clock=clock), clock=clock)

        response = scheduler.get_daily_picks("c1")

        assert response.regenerated is False
        assert [p.id for p in response.picks] == ["weak"]

    def test_write_failure_keeps_previous_set(self, repo, clock) -> None:  # type: ignore[no-untyped-def]
        _seed(repo)
        DailyPickScheduler(repo, StreakTracker(repo, clock=clock), clock=clock).get_daily_picks("c1")
        before = repo.get_pick_set("c1")

        failing = _FailingRepository(repo.connection)
        clock.now = NOW + timedelta(days=1)
        scheduler = DailyPickScheduler(failing, StreakTracker(failing, clock=clock), clock=clock)
        with pytest.raises(DependencyUnavailableError):
            scheduler.get_daily_picks("c1")

        assert repo.get_pick_set("c1") == before
