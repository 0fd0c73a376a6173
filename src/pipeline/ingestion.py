"""Ingestion of externally sourced listing rows with duplicate detection.

Per row, in order:
  1. Resolve column-name variants into listing fields
  2. Validate required fields (title, employer, URL); failures never reach the matcher
  3. Match against the CorpusIndex (URL, exact title+employer, fuzzy title)
  4. Create the listing with an early-access window and update the index at once

Rows are processed strictly in order: each row dedupes against every row
admitted before it in the same batch.
"""

import logging
import threading
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from src.core.clock import utc_now
from src.core.config import IngestionConfig
from src.core.errors import DependencyUnavailableError
from src.core.repository import CorpusStore
from src.core.schemas import IngestionResult, NewOpportunity, SkippedRow
from src.pipeline.categorizer import Categorizer
from src.pipeline.matcher import CorpusIndex

logger = logging.getLogger(__name__)

# Accepted column names per field, in priority order.
COLUMN_SYNONYMS: dict[str, tuple[str, ...]] = {
    "title": ("Title", "title", "jobTitle", "Job Title"),
    "employer": ("Name", "name", "company", "Company", "employer"),
    "url": ("Title_URL", "title_url", "titleUrl", "url", "applicationUrl", "link"),
    "location": ("Location", "location", "city"),
    "description": ("Description", "description", "jobDescription"),
    "category": ("Category", "category"),
    "experience_level": ("ExperienceLevel", "experienceLevel", "level"),
    "remote": ("Remote", "remote"),
    "deadline": ("Deadline", "deadline"),
    "source": ("Source", "source"),
}

_TRUTHY = {"true", "yes", "y", "1"}

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y", "%d-%m-%Y", "%d %B %Y", "%B %d, %Y")


def resolve_field(row: Mapping[str, Any], field: str) -> str:
    """Return the first non-empty value among the field's column synonyms."""
    for column in COLUMN_SYNONYMS[field]:
        value = row.get(column)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def parse_bool(value: str) -> bool:
    return value.strip().lower() in _TRUTHY


def parse_date(value: str) -> datetime | None:
    """Parse a deadline-style date. Unparseable input returns None."""
    text = value.strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        logger.debug("Unparseable date '%s' - leaving empty", text)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class IngestionDeduplicator:
    """Admits genuinely new listings from raw rows.

    One instance may serve many batches; batches are serialized by an internal
    lock and each rebuilds its CorpusIndex from the store inside that lock, so
    two batches never admit near-duplicates of each other.
    """

    def __init__(
        self,
        store: CorpusStore,
        config: IngestionConfig | None = None,
        categorizer: Categorizer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._config = config or IngestionConfig()
        self._categorizer = categorizer
        self._clock = clock or utc_now
        self._lock = threading.Lock()

    def ingest_batch(self, rows: list[Mapping[str, Any]]) -> IngestionResult:
        """Ingest rows sequentially and return created/skipped/failed counts."""
        with self._lock:
            result = IngestionResult(started_at=self._clock())
            index = CorpusIndex.build(self._store.list_active(), self._config)
            logger.info(
                "Ingesting %d rows against %d active listings", len(rows), len(index),
            )

            for row in rows:
                self._ingest_row(row, index, result)

            result.finished_at = self._clock()
            logger.info(
                "Ingestion complete: %d created, %d skipped, %d failed",
                result.created, result.skipped, result.failed,
            )
            return result

    def _ingest_row(
        self,
        row: Mapping[str, Any],
        index: CorpusIndex,
        result: IngestionResult,
    ) -> None:
        title = resolve_field(row, "title")
        employer = resolve_field(row, "employer")
        url = resolve_field(row, "url")

        if not title or not employer or not url:
            result.failed += 1
            result.failure_reasons.append(
                f"Missing required fields: {title or 'Unknown'} - need title, employer and URL"
            )
            return

        duplicate = index.find_duplicate(title, employer, url)
        if duplicate is not None:
            result.skipped += 1
            result.skipped_details.append(
                SkippedRow(title=title, employer=employer, reason=duplicate.reason)
            )
            logger.debug("Skipped '%s' at %s: %s", title, employer, duplicate.reason)
            return

        new = self._build_listing(row, title, employer, url)
        try:
            opportunity_id = self._store.create_opportunity(new)
        except DependencyUnavailableError as e:
            result.failed += 1
            result.failure_reasons.append(f"Error creating '{title}' at {employer}: {e}")
            logger.error("Failed to create '%s' at %s: %s", title, employer, e)
            return

        index.add(title, employer, url)
        result.created += 1
        result.created_ids.append(opportunity_id)

    def _build_listing(
        self,
        row: Mapping[str, Any],
        title: str,
        employer: str,
        url: str,
    ) -> NewOpportunity:
        now = self._clock()
        location = resolve_field(row, "location")
        description = resolve_field(row, "description")

        new = NewOpportunity(
            title=title,
            employer=employer,
            url=url,
            location=location,
            description=description,
            experience_level=resolve_field(row, "experience_level"),
            is_remote=parse_bool(resolve_field(row, "remote")),
            category=resolve_field(row, "category"),
            source=resolve_field(row, "source") or self._config.default_source,
            deadline=parse_date(resolve_field(row, "deadline")),
            is_new_opportunity=True,
            published_at=now,
            early_access_until=now + timedelta(hours=self._config.early_access_hours),
        )
        if self._categorizer is not None:
            tags = self._categorizer.categorize(
                title, employer, description or None, location or None,
            )
            new = new.model_copy(update={"tags": tags})
        return new
