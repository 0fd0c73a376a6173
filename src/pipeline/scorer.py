"""Rule-based candidate/opportunity match scoring.

Score range: 0-100 (clamped, rounded half up). Two interchangeable strategies
share one contract:

  tags    : listing carries AI-derived tags (education 40 / interest 30 /
            skills 20 / location 10)
  fields  : listing only has raw fields (skills 40 / domain 20 /
            experience 15 / location 10 / interest 15)

Each strategy is an ordered table of (factor, weight). A factor returns the
fraction of its weight earned plus an optional reason or warning. Weights come
from ScoringConfig.
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum

from src.core.config import ScoringConfig
from src.core.schemas import MatchResult, Opportunity, ScoredOpportunity
from src.profile.normalizer import CandidateProfile

logger = logging.getLogger(__name__)

DEFAULT_REASON = "New opportunity available"

NEUTRAL = 0.5
EDUCATION_MISMATCH = 0.375
SKILLS_FLOOR = 0.25
LOCATION_MISMATCH = 0.3

REMOTE_MARKERS = ("remote", "hybrid")
ENTRY_LEVEL_MARKERS = ("entry", "intern", "high school", "graduate", "junior")
MAJOR_STOP_WORDS = frozenset({"and", "the", "for", "with", "from", "into"})


class Strategy(str, Enum):
    TAGS = "tags"
    FIELDS = "fields"


@dataclass(frozen=True)
class FactorOutcome:
    fraction: float
    reason: str | None = None
    warning: str | None = None


Factor = Callable[[CandidateProfile, Opportunity], FactorOutcome]


def _lower(values: Iterable[str]) -> list[str]:
    return [v.lower().strip() for v in values if v and v.strip()]


def _overlaps(a: str, b: str) -> bool:
    """Case-insensitive substring match in either direction."""
    return a in b or b in a


def _first_match(terms: Iterable[str], tags: list[str]) -> str | None:
    for term in terms:
        for tag in tags:
            if _overlaps(term, tag):
                return tag
    return None


def _opportunity_text(opportunity: Opportunity) -> str:
    return f"{opportunity.title} {opportunity.description}".lower()


# ---------------------------------------------------------------------------
# Factors
# ---------------------------------------------------------------------------


def education_factor(candidate: CandidateProfile, opportunity: Opportunity) -> FactorOutcome:
    tags = _lower(opportunity.tags.education_match)
    if not tags:
        return FactorOutcome(NEUTRAL)
    terms = [t for t in (candidate.major, *candidate.education_terms) if t]
    matched = _first_match(terms, tags)
    if matched is not None:
        return FactorOutcome(1.0, reason=f"Your education matches {matched}")
    return FactorOutcome(EDUCATION_MISMATCH, warning="Your major may not directly match")


def interest_factor(candidate: CandidateProfile, opportunity: Opportunity) -> FactorOutcome:
    categories = _lower([*opportunity.tags.categories, *opportunity.tags.industry_tags])
    keywords = _lower(opportunity.tags.match_keywords)
    if not categories and not keywords:
        return FactorOutcome(NEUTRAL)
    matched = _first_match(candidate.interests, categories)
    if matched is not None:
        return FactorOutcome(1.0, reason=f"Matches your interest in {matched}")
    for interest in candidate.interests:
        if any(interest in kw for kw in keywords):
            return FactorOutcome(NEUTRAL, reason=f"Related to your interest in {interest}")
    return FactorOutcome(0.0)


def _skill_coverage(
    candidate: CandidateProfile, required: list[str], weight_floor: float,
) -> FactorOutcome:
    if not required:
        return FactorOutcome(NEUTRAL)
    covered = [r for r in required if any(_overlaps(s, r) for s in candidate.skills)]
    missing = len(required) - len(covered)
    if not covered:
        return FactorOutcome(
            weight_floor,
            warning=f"Missing {missing} required skill{'s' if missing > 1 else ''}",
        )
    # partial coverage never earns less than no coverage
    fraction = max(weight_floor, min(1.0, len(covered) / len(required)))
    return FactorOutcome(
        fraction,
        reason=f"{len(covered)}/{len(required)} required skills match",
        warning=(
            f"Missing {missing} required skill{'s' if missing > 1 else ''}"
            if missing else None
        ),
    )


def skills_factor(candidate: CandidateProfile, opportunity: Opportunity) -> FactorOutcome:
    return _skill_coverage(candidate, _lower(opportunity.tags.required_skills), SKILLS_FLOOR)


def location_factor(candidate: CandidateProfile, opportunity: Opportunity) -> FactorOutcome:
    opp_location = opportunity.location.lower().strip()
    if opportunity.is_remote or any(m in opp_location for m in REMOTE_MARKERS):
        return FactorOutcome(1.0, reason="Remote or hybrid - work from anywhere")
    if not opp_location or not candidate.location:
        return FactorOutcome(NEUTRAL)
    if _overlaps(candidate.location, opp_location):
        return FactorOutcome(1.0, reason="Location matches your preference")
    return FactorOutcome(
        LOCATION_MISMATCH, warning=f"Located in {opportunity.location.strip()}",
    )


def raw_skills_factor(candidate: CandidateProfile, opportunity: Opportunity) -> FactorOutcome:
    return _skill_coverage(candidate, _lower(opportunity.skills), 0.0)


def domain_factor(candidate: CandidateProfile, opportunity: Opportunity) -> FactorOutcome:
    words = [
        w for w in re.findall(r"\w+", candidate.major)
        if len(w) > 2 and w not in MAJOR_STOP_WORDS
    ]
    text = _opportunity_text(opportunity)
    if any(re.search(rf"\b{re.escape(w)}\b", text) for w in words):
        return FactorOutcome(1.0, reason="Your major aligns with this role")
    return FactorOutcome(0.0)


def experience_factor(candidate: CandidateProfile, opportunity: Opportunity) -> FactorOutcome:
    level = opportunity.experience_level.lower().strip() or "entry level"
    if any(m in level for m in ENTRY_LEVEL_MARKERS):
        return FactorOutcome(1.0, reason="Experience level matches your profile")
    if "intermediate" in level and candidate.experience_count >= 1:
        return FactorOutcome(1.0, reason="Experience level matches your profile")
    if ("advanced" in level or "senior" in level) and candidate.experience_count < 2:
        return FactorOutcome(0.0, warning="May require more experience than you have")
    return FactorOutcome(0.0)


def interest_keyword_factor(
    candidate: CandidateProfile, opportunity: Opportunity,
) -> FactorOutcome:
    text = _opportunity_text(opportunity)
    if any(i in text for i in candidate.interests):
        return FactorOutcome(1.0, reason="Aligns with your career interests")
    return FactorOutcome(0.0)


# ---------------------------------------------------------------------------
# Strategy tables
# ---------------------------------------------------------------------------


def _strategy_table(strategy: Strategy, config: ScoringConfig) -> list[tuple[Factor, float]]:
    if strategy is Strategy.TAGS:
        w = config.tag_weights
        return [
            (education_factor, w.education),
            (interest_factor, w.interest),
            (skills_factor, w.skills),
            (location_factor, w.location),
        ]
    f = config.field_weights
    return [
        (raw_skills_factor, f.skills),
        (domain_factor, f.domain),
        (experience_factor, f.experience),
        (location_factor, f.location),
        (interest_keyword_factor, f.interest),
    ]


def select_strategy(opportunity: Opportunity) -> Strategy:
    """Tag-based scoring when the listing has any AI tags, raw fields otherwise."""
    return Strategy.FIELDS if opportunity.tags.is_empty else Strategy.TAGS


def score(
    candidate: CandidateProfile,
    opportunity: Opportunity,
    config: ScoringConfig | None = None,
    strategy: Strategy | None = None,
) -> MatchResult:
    """Score one opportunity for one candidate.

    Pure and deterministic: identical inputs always give an identical result.

    Args:
        candidate: Normalized candidate profile.
        opportunity: The listing to evaluate.
        config: Factor weights; defaults to ScoringConfig().
        strategy: Force a strategy instead of selecting by available attributes.

    Returns:
        MatchResult with a 0-100 score and at least one reason.
    """
    config = config or ScoringConfig()
    strategy = strategy or select_strategy(opportunity)

    total = 0.0
    reasons: list[str] = []
    warnings: list[str] = []
    for factor, weight in _strategy_table(strategy, config):
        outcome = factor(candidate, opportunity)
        total += weight * outcome.fraction
        if outcome.reason:
            reasons.append(outcome.reason)
        if outcome.warning:
            warnings.append(outcome.warning)

    clamped = max(0.0, min(100.0, total))
    final = int(clamped + 0.5)

    if not reasons:
        reasons.append(DEFAULT_REASON)

    return MatchResult(
        score=final, reasons=reasons, warnings=warnings, strategy=strategy.value,
    )


def score_opportunities(
    candidate: CandidateProfile,
    opportunities: list[Opportunity],
    config: ScoringConfig | None = None,
) -> list[ScoredOpportunity]:
    """Score a batch, sorted by score desc, then most recent publication, then id."""
    scored = [
        ScoredOpportunity(opportunity=o, match=score(candidate, o, config))
        for o in opportunities
    ]
    scored.sort(key=lambda s: s.opportunity.id)
    scored.sort(key=lambda s: (s.match.score, s.opportunity.published_at), reverse=True)
    logger.debug("Scored %d opportunities for %s", len(scored), candidate.candidate_id)
    return scored
