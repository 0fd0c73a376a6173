"""SQLite database layer for the corpus, candidates, daily picks and streaks."""

import json
import sqlite3
import uuid
from datetime import date, datetime, timezone
from pathlib import Path

from src.core.schemas import (
    DailyPickSet,
    NewOpportunity,
    Opportunity,
    OpportunityTags,
    StreakRecord,
)
from src.profile.schema import CandidateRecord

_OPPORTUNITIES_TABLE = """
CREATE TABLE IF NOT EXISTS opportunities (
    id                  TEXT    PRIMARY KEY,
    title               TEXT    NOT NULL,
    employer            TEXT    NOT NULL,
    url                 TEXT    NOT NULL DEFAULT '',
    location            TEXT    NOT NULL DEFAULT '',
    description         TEXT    NOT NULL DEFAULT '',
    tags_json           TEXT    NOT NULL DEFAULT '{}',
    skills_json         TEXT    NOT NULL DEFAULT '[]',
    experience_level    TEXT    NOT NULL DEFAULT '',
    is_remote           INTEGER NOT NULL DEFAULT 0,
    category            TEXT    NOT NULL DEFAULT '',
    source              TEXT    NOT NULL DEFAULT '',
    deadline            TEXT,
    is_new_opportunity  INTEGER NOT NULL DEFAULT 0,
    published_at        TEXT    NOT NULL,
    early_access_until  TEXT,
    is_active           INTEGER NOT NULL DEFAULT 1,
    created_at          TEXT    NOT NULL
);
"""

_CANDIDATES_TABLE = """
CREATE TABLE IF NOT EXISTS candidates (
    id           TEXT PRIMARY KEY,
    record_json  TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);
"""

_APPLICATIONS_TABLE = """
CREATE TABLE IF NOT EXISTS applications (
    candidate_id    TEXT NOT NULL,
    opportunity_id  TEXT NOT NULL,
    applied_at      TEXT NOT NULL,
    PRIMARY KEY (candidate_id, opportunity_id)
);
"""

_UNLOCKS_TABLE = """
CREATE TABLE IF NOT EXISTS unlocks (
    candidate_id    TEXT NOT NULL,
    opportunity_id  TEXT NOT NULL,
    unlocked_at     TEXT NOT NULL,
    PRIMARY KEY (candidate_id, opportunity_id)
);
"""

_PICK_SETS_TABLE = """
CREATE TABLE IF NOT EXISTS pick_sets (
    candidate_id          TEXT PRIMARY KEY,
    refresh_date          TEXT NOT NULL,
    opportunity_ids_json  TEXT NOT NULL,
    early_access_id       TEXT,
    scores_json           TEXT NOT NULL DEFAULT '{}',
    updated_at            TEXT NOT NULL
);
"""

_STREAKS_TABLE = """
CREATE TABLE IF NOT EXISTS streaks (
    candidate_id      TEXT    PRIMARY KEY,
    current_streak    INTEGER NOT NULL DEFAULT 0,
    longest_streak    INTEGER NOT NULL DEFAULT 0,
    last_active_date  TEXT
);
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_OPPORTUNITIES_TABLE)
    conn.execute(_CANDIDATES_TABLE)
    conn.execute(_APPLICATIONS_TABLE)
    conn.execute(_UNLOCKS_TABLE)
    conn.execute(_PICK_SETS_TABLE)
    conn.execute(_STREAKS_TABLE)
    # pick sets written before scores were stored
    columns = {row["name"] for row in conn.execute("PRAGMA table_info(pick_sets)")}
    if "scores_json" not in columns:
        conn.execute("ALTER TABLE pick_sets ADD COLUMN scores_json TEXT NOT NULL DEFAULT '{}'")
    conn.commit()
    return conn


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Opportunities
# ---------------------------------------------------------------------------


def insert_opportunity(conn: sqlite3.Connection, new: NewOpportunity) -> str:
    """Insert a new listing. Returns the generated id."""
    opportunity_id = uuid.uuid4().hex
    conn.execute(
        """
        INSERT INTO opportunities
            (id, title, employer, url, location, description, tags_json,
             experience_level, is_remote, category, source, deadline,
             is_new_opportunity, published_at, early_access_until, is_active,
             created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
        """,
        (
            opportunity_id,
            new.title,
            new.employer,
            new.url,
            new.location,
            new.description,
            new.tags.model_dump_json(),
            new.experience_level,
            int(new.is_remote),
            new.category,
            new.source,
            _iso(new.deadline),
            int(new.is_new_opportunity),
            new.published_at.isoformat(),
            _iso(new.early_access_until),
            _now_iso(),
        ),
    )
    conn.commit()
    return opportunity_id


def save_opportunity(conn: sqlite3.Connection, opportunity: Opportunity) -> None:
    """Insert or fully replace a listing with a known id."""
    conn.execute(
        """
        INSERT OR REPLACE INTO opportunities
            (id, title, employer, url, location, description, tags_json,
             skills_json, experience_level, is_remote, category, source,
             deadline, is_new_opportunity, published_at, early_access_until,
             is_active, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            opportunity.id,
            opportunity.title,
            opportunity.employer,
            opportunity.url,
            opportunity.location,
            opportunity.description,
            opportunity.tags.model_dump_json(),
            json.dumps(opportunity.skills),
            opportunity.experience_level,
            int(opportunity.is_remote),
            opportunity.category,
            opportunity.source,
            _iso(opportunity.deadline),
            int(opportunity.is_new_opportunity),
            opportunity.published_at.isoformat(),
            _iso(opportunity.early_access_until),
            int(opportunity.is_active),
            opportunity.created_at.isoformat(),
        ),
    )
    conn.commit()


def _row_to_opportunity(row: sqlite3.Row) -> Opportunity:
    return Opportunity(
        id=row["id"],
        title=row["title"],
        employer=row["employer"],
        url=row["url"],
        location=row["location"],
        description=row["description"],
        tags=OpportunityTags.model_validate_json(row["tags_json"]),
        skills=json.loads(row["skills_json"]),
        experience_level=row["experience_level"],
        is_remote=bool(row["is_remote"]),
        category=row["category"],
        source=row["source"],
        deadline=_parse_dt(row["deadline"]),
        is_new_opportunity=bool(row["is_new_opportunity"]),
        published_at=_parse_dt(row["published_at"]),
        early_access_until=_parse_dt(row["early_access_until"]),
        is_active=bool(row["is_active"]),
        created_at=_parse_dt(row["created_at"]),
    )


def list_active_opportunities(conn: sqlite3.Connection) -> list[Opportunity]:
    """Return every active listing, oldest first."""
    rows = conn.execute(
        "SELECT * FROM opportunities WHERE is_active = 1 ORDER BY created_at, id"
    ).fetchall()
    return [_row_to_opportunity(r) for r in rows]


def get_opportunities(conn: sqlite3.Connection, ids: list[str]) -> list[Opportunity]:
    """Return listings for the given ids (any order, missing ids omitted)."""
    if not ids:
        return []
    placeholders = ", ".join("?" for _ in ids)
    rows = conn.execute(
        f"SELECT * FROM opportunities WHERE id IN ({placeholders})",  # noqa: S608
        tuple(ids),
    ).fetchall()
    return [_row_to_opportunity(r) for r in rows]


def deactivate_opportunity(conn: sqlite3.Connection, opportunity_id: str) -> bool:
    """Mark a listing inactive. Returns True if a row changed."""
    cursor = conn.execute(
        "UPDATE opportunities SET is_active = 0 WHERE id = ? AND is_active = 1",
        (opportunity_id,),
    )
    conn.commit()
    return cursor.rowcount == 1


# ---------------------------------------------------------------------------
# Candidates, applications, unlocks
# ---------------------------------------------------------------------------


def upsert_candidate_record(conn: sqlite3.Connection, record: CandidateRecord) -> None:
    """Insert or replace a candidate record."""
    conn.execute(
        """
        INSERT INTO candidates (id, record_json, updated_at) VALUES (?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            record_json = excluded.record_json,
            updated_at = excluded.updated_at
        """,
        (record.id, record.model_dump_json(), _now_iso()),
    )
    conn.commit()


def get_candidate_record(conn: sqlite3.Connection, candidate_id: str) -> CandidateRecord | None:
    row = conn.execute(
        "SELECT record_json FROM candidates WHERE id = ?", (candidate_id,)
    ).fetchone()
    if row is None:
        return None
    return CandidateRecord.model_validate_json(row["record_json"])


def record_application(
    conn: sqlite3.Connection,
    candidate_id: str,
    opportunity_id: str,
    applied_at: datetime | None = None,
) -> bool:
    """Store an application. Returns False if the candidate had already applied."""
    try:
        conn.execute(
            "INSERT INTO applications (candidate_id, opportunity_id, applied_at) VALUES (?, ?, ?)",
            (candidate_id, opportunity_id, _iso(applied_at) or _now_iso()),
        )
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        return False


def record_unlock(
    conn: sqlite3.Connection,
    candidate_id: str,
    opportunity_id: str,
    unlocked_at: datetime | None = None,
) -> bool:
    """Store an early-access unlock. Returns False if already unlocked."""
    try:
        conn.execute(
            "INSERT INTO unlocks (candidate_id, opportunity_id, unlocked_at) VALUES (?, ?, ?)",
            (candidate_id, opportunity_id, _iso(unlocked_at) or _now_iso()),
        )
        conn.commit()
        return True
    except sqlite3.IntegrityError:
        return False


def get_applied_ids(conn: sqlite3.Connection, candidate_id: str) -> set[str]:
    rows = conn.execute(
        "SELECT opportunity_id FROM applications WHERE candidate_id = ?", (candidate_id,)
    ).fetchall()
    return {r["opportunity_id"] for r in rows}


def get_unlocked_ids(conn: sqlite3.Connection, candidate_id: str) -> set[str]:
    rows = conn.execute(
        "SELECT opportunity_id FROM unlocks WHERE candidate_id = ?", (candidate_id,)
    ).fetchall()
    return {r["opportunity_id"] for r in rows}


# ---------------------------------------------------------------------------
# Daily pick sets
# ---------------------------------------------------------------------------


def get_pick_set(conn: sqlite3.Connection, candidate_id: str) -> DailyPickSet | None:
    row = conn.execute(
        "SELECT * FROM pick_sets WHERE candidate_id = ?", (candidate_id,)
    ).fetchone()
    if row is None:
        return None
    return DailyPickSet(
        candidate_id=row["candidate_id"],
        refresh_date=_parse_dt(row["refresh_date"]),
        opportunity_ids=json.loads(row["opportunity_ids_json"]),
        early_access_id=row["early_access_id"],
        scores=json.loads(row["scores_json"]),
    )


def replace_pick_set_if_stale(
    conn: sqlite3.Connection,
    pick_set: DailyPickSet,
    expected: DailyPickSet | None,
) -> bool:
    """Compare-and-swap the candidate's pick set.

    Writes only if the stored row still matches what the caller observed
    (``expected``; None means "no row yet"). The write is one statement inside
    a transaction, so a failure leaves the previous set in place.

    Returns True if this call wrote the set, False if another writer got there first.
    """
    values = (
        pick_set.refresh_date.isoformat(),
        json.dumps(pick_set.opportunity_ids),
        pick_set.early_access_id,
        json.dumps({k: v.model_dump() for k, v in pick_set.scores.items()}),
        _now_iso(),
    )
    with conn:
        if expected is None:
            cursor = conn.execute(
                """
                INSERT INTO pick_sets
                    (candidate_id, refresh_date, opportunity_ids_json, early_access_id,
                     scores_json, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(candidate_id) DO NOTHING
                """,
                (pick_set.candidate_id, *values),
            )
        else:
            cursor = conn.execute(
                """
                UPDATE pick_sets
                SET refresh_date = ?, opportunity_ids_json = ?, early_access_id = ?,
                    scores_json = ?, updated_at = ?
                WHERE candidate_id = ? AND refresh_date = ? AND refresh_date != ?
                """,
                (
                    *values,
                    pick_set.candidate_id,
                    expected.refresh_date.isoformat(),
                    pick_set.refresh_date.isoformat(),
                ),
            )
    return cursor.rowcount == 1


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------


def get_streak(conn: sqlite3.Connection, candidate_id: str) -> StreakRecord | None:
    row = conn.execute(
        "SELECT * FROM streaks WHERE candidate_id = ?", (candidate_id,)
    ).fetchone()
    if row is None:
        return None
    last = row["last_active_date"]
    return StreakRecord(
        candidate_id=row["candidate_id"],
        current_streak=row["current_streak"],
        longest_streak=row["longest_streak"],
        last_active_date=date.fromisoformat(last) if last else None,
    )


def save_streak_if_unchanged(
    conn: sqlite3.Connection,
    record: StreakRecord,
    expected: StreakRecord | None,
) -> bool:
    """Compare-and-swap a streak row, guarded on the previously read date and count.

    Returns True if written, False if the row changed since ``expected`` was read.
    """
    last = record.last_active_date.isoformat() if record.last_active_date else None
    with conn:
        if expected is None:
            cursor = conn.execute(
                """
                INSERT INTO streaks
                    (candidate_id, current_streak, longest_streak, last_active_date)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(candidate_id) DO NOTHING
                """,
                (record.candidate_id, record.current_streak, record.longest_streak, last),
            )
        else:
            expected_last = (
                expected.last_active_date.isoformat() if expected.last_active_date else None
            )
            cursor = conn.execute(
                """
                UPDATE streaks
                SET current_streak = ?, longest_streak = ?, last_active_date = ?
                WHERE candidate_id = ? AND current_streak = ? AND last_active_date IS ?
                """,
                (
                    record.current_streak,
                    record.longest_streak,
                    last,
                    record.candidate_id,
                    expected.current_streak,
                    expected_last,
                ),
            )
    return cursor.rowcount == 1
