"""Corpus index and duplicate matching for incoming listings.

Match order (first hit wins, the row is a duplicate):
  1. Normalized URL already indexed
  2. Exact normalized title + employer pair
  3. Fuzzy title for the same employer: containment with a small length
     difference, or Levenshtein similarity above the threshold
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import urlsplit

from rapidfuzz.distance import Levenshtein

from src.core.config import IngestionConfig
from src.core.schemas import Opportunity

logger = logging.getLogger(__name__)

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

URL_DUPLICATE = "URL already exists"
EXACT_DUPLICATE = "Exact title + employer match"


def normalize_title(title: str) -> str:
    """Lowercase, trim, strip non-word characters and collapse whitespace."""
    stripped = _NON_WORD.sub(" ", title.lower())
    return _WHITESPACE.sub(" ", stripped).strip()


def normalize_employer(employer: str) -> str:
    return employer.lower().strip()


def normalize_url(url: str) -> str:
    """Lowercase host + path; scheme, query and fragment are dropped."""
    raw = url.strip()
    if "://" not in raw:
        raw = f"//{raw}"
    try:
        parts = urlsplit(raw)
        host = (parts.hostname or "").lower()
    except ValueError:
        # malformed netloc (e.g. unbalanced IPv6 brackets)
        return raw.split("?", 1)[0].split("#", 1)[0].lower().lstrip("/").rstrip("/")
    path = parts.path.lower().rstrip("/")
    return f"{host}{path}"


def title_similarity(a: str, b: str) -> float:
    """1 - Levenshtein distance / longer length."""
    return Levenshtein.normalized_similarity(a, b)


@dataclass(frozen=True)
class DuplicateMatch:
    reason: str
    matched_title: str = ""


class CorpusIndex:
    """Normalized lookups over the corpus, updated as rows are admitted.

    Holds each normalized URL at most once.
    """

    def __init__(self, config: IngestionConfig | None = None) -> None:
        self._config = config or IngestionConfig()
        self._titles: dict[str, set[str]] = {}
        self._titles_by_employer: dict[str, set[str]] = {}
        self._urls: set[str] = set()

    @classmethod
    def build(
        cls,
        opportunities: Iterable[Opportunity],
        config: IngestionConfig | None = None,
    ) -> "CorpusIndex":
        index = cls(config)
        count = 0
        for opp in opportunities:
            index.add(opp.title, opp.employer, opp.url)
            count += 1
        logger.debug("CorpusIndex: indexed %d listings, %d urls", count, len(index._urls))
        return index

    def __len__(self) -> int:
        return sum(len(e) for e in self._titles.values())

    def add(self, title: str, employer: str, url: str = "") -> None:
        norm_title = normalize_title(title)
        norm_employer = normalize_employer(employer)
        self._titles.setdefault(norm_title, set()).add(norm_employer)
        self._titles_by_employer.setdefault(norm_employer, set()).add(norm_title)
        if url.strip():
            self._urls.add(normalize_url(url))

    def find_duplicate(self, title: str, employer: str, url: str) -> DuplicateMatch | None:
        """Return why a row duplicates an indexed listing, or None if it is new."""
        if normalize_url(url) in self._urls:
            return DuplicateMatch(URL_DUPLICATE)

        norm_title = normalize_title(title)
        norm_employer = normalize_employer(employer)
        if norm_employer in self._titles.get(norm_title, ()):
            return DuplicateMatch(EXACT_DUPLICATE, norm_title)

        for existing in sorted(self._titles_by_employer.get(norm_employer, ())):
            reason = self._fuzzy_reason(norm_title, existing)
            if reason is not None:
                return DuplicateMatch(reason, existing)
        return None

    def _fuzzy_reason(self, a: str, b: str) -> str | None:
        if not a or not b:
            return None
        longer = max(len(a), len(b))
        if (a in b or b in a) and abs(len(a) - len(b)) < self._config.containment_length_ratio * longer:
            return "Similar title match (contained)"
        similarity = title_similarity(a, b)
        if similarity > self._config.fuzzy_similarity_threshold:
            return f"Similar title match ({round(similarity * 100)}%)"
        return None
