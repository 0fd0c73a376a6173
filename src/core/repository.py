"""Repository interfaces injected into the engine, and their SQLite implementation.

The engine only talks to these interfaces, so it can be driven by an
in-memory fake in tests or by another store in production.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from src.core import db
from src.core.errors import DependencyUnavailableError
from src.core.schemas import DailyPickSet, NewOpportunity, Opportunity, StreakRecord
from src.profile.schema import CandidateRecord

logger = logging.getLogger(__name__)


class CandidateReader(ABC):
    """Reads candidate records and their live application state."""

    @abstractmethod
    def get_candidate(self, candidate_id: str) -> CandidateRecord | None:
        """Return the candidate record, or None if it does not exist."""

    @abstractmethod
    def get_applied_ids(self, candidate_id: str) -> set[str]:
        """Ids of listings the candidate has applied to."""

    @abstractmethod
    def get_unlocked_ids(self, candidate_id: str) -> set[str]:
        """Ids of early-access listings the candidate has unlocked."""


class CorpusStore(ABC):
    """Reads and writes the opportunity corpus."""

    @abstractmethod
    def create_opportunity(self, new: NewOpportunity) -> str:
        """Persist a new listing and return its id."""

    @abstractmethod
    def list_active(self) -> list[Opportunity]:
        """Every active listing."""

    @abstractmethod
    def get_by_ids(self, ids: list[str]) -> list[Opportunity]:
        """Listings for the given ids; unknown ids are omitted."""

    @abstractmethod
    def save_opportunity(self, opportunity: Opportunity) -> None:
        """Replace a stored listing, e.g. after recategorization."""

    @abstractmethod
    def deactivate_opportunity(self, opportunity_id: str) -> bool:
        """Withdraw a listing. Returns False if it was missing or already inactive."""


class PickSetStore(ABC):
    """Per-candidate daily pick persistence with compare-and-swap writes."""

    @abstractmethod
    def get_pick_set(self, candidate_id: str) -> DailyPickSet | None:
        """The stored pick set, or None."""

    @abstractmethod
    def replace_pick_set_if_stale(
        self, pick_set: DailyPickSet, expected: DailyPickSet | None,
    ) -> bool:
        """Write ``pick_set`` only if the stored set still equals ``expected``."""


class StreakStore(ABC):
    """Per-candidate streak persistence with compare-and-swap writes."""

    @abstractmethod
    def get_streak(self, candidate_id: str) -> StreakRecord | None:
        """The stored streak, or None if the candidate was never active."""

    @abstractmethod
    def save_streak_if_unchanged(
        self, record: StreakRecord, expected: StreakRecord | None,
    ) -> bool:
        """Write ``record`` only if the stored row still equals ``expected``."""


class Repository(CandidateReader, CorpusStore, PickSetStore, StreakStore, ABC):
    """Everything the engine needs from persistence."""


class SqliteRepository(Repository):
    """Repository backed by the SQLite layer in ``src.core.db``.

    Any ``sqlite3.Error`` is surfaced as ``DependencyUnavailableError``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    @classmethod
    def open(cls, path: str | Path) -> "SqliteRepository":
        try:
            conn = db.init_db(path)
        except sqlite3.Error as e:
            raise DependencyUnavailableError("database", str(e)) from e
        return cls(conn)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def _guard(self, dependency: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as e:
                logger.error("%s operation failed: %s", dependency, e)
                raise DependencyUnavailableError(dependency, str(e)) from e

    # Candidates -----------------------------------------------------------

    def get_candidate(self, candidate_id: str) -> CandidateRecord | None:
        with self._guard("candidate store") as conn:
            return db.get_candidate_record(conn, candidate_id)

    def get_applied_ids(self, candidate_id: str) -> set[str]:
        with self._guard("candidate store") as conn:
            return db.get_applied_ids(conn, candidate_id)

    def get_unlocked_ids(self, candidate_id: str) -> set[str]:
        with self._guard("candidate store") as conn:
            return db.get_unlocked_ids(conn, candidate_id)

    def save_candidate(self, record: CandidateRecord) -> None:
        with self._guard("candidate store") as conn:
            db.upsert_candidate_record(conn, record)

    def record_application(self, candidate_id: str, opportunity_id: str) -> bool:
        with self._guard("candidate store") as conn:
            return db.record_application(conn, candidate_id, opportunity_id)

    def record_unlock(self, candidate_id: str, opportunity_id: str) -> bool:
        with self._guard("candidate store") as conn:
            return db.record_unlock(conn, candidate_id, opportunity_id)

    # Corpus ---------------------------------------------------------------

    def create_opportunity(self, new: NewOpportunity) -> str:
        with self._guard("corpus") as conn:
            return db.insert_opportunity(conn, new)

    def save_opportunity(self, opportunity: Opportunity) -> None:
        with self._guard("corpus") as conn:
            db.save_opportunity(conn, opportunity)

    def list_active(self) -> list[Opportunity]:
        with self._guard("corpus") as conn:
            return db.list_active_opportunities(conn)

    def get_by_ids(self, ids: list[str]) -> list[Opportunity]:
        with self._guard("corpus") as conn:
            return db.get_opportunities(conn, ids)

    def deactivate_opportunity(self, opportunity_id: str) -> bool:
        with self._guard("corpus") as conn:
            return db.deactivate_opportunity(conn, opportunity_id)

    # Pick sets ------------------------------------------------------------

    def get_pick_set(self, candidate_id: str) -> DailyPickSet | None:
        with self._guard("pick-set store") as conn:
            return db.get_pick_set(conn, candidate_id)

    def replace_pick_set_if_stale(
        self, pick_set: DailyPickSet, expected: DailyPickSet | None,
    ) -> bool:
        with self._guard("pick-set store") as conn:
            return db.replace_pick_set_if_stale(conn, pick_set, expected)

    # Streaks --------------------------------------------------------------

    def get_streak(self, candidate_id: str) -> StreakRecord | None:
        with self._guard("streak store") as conn:
            return db.get_streak(conn, candidate_id)

    def save_streak_if_unchanged(
        self, record: StreakRecord, expected: StreakRecord | None,
    ) -> bool:
        with self._guard("streak store") as conn:
            return db.save_streak_if_unchanged(conn, record, expected)
