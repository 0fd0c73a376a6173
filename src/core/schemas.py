"""Core data models for the opportunity ranking engine."""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from src.core.clock import utc_now


class OpportunityTags(BaseModel):
    """AI-derived tags attached to a listing by the categorizer."""

    model_config = ConfigDict(frozen=True)

    categories: list[str] = Field(default_factory=list)
    match_keywords: list[str] = Field(default_factory=list)
    required_skills: list[str] = Field(default_factory=list)
    education_match: list[str] = Field(default_factory=list)
    industry_tags: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @property
    def is_empty(self) -> bool:
        return not (
            self.categories
            or self.match_keywords
            or self.required_skills
            or self.education_match
            or self.industry_tags
        )


class Opportunity(BaseModel):
    """A listing in the corpus.

    Frozen: lifecycle changes (deactivation, early-access expiry) are
    represented by new rows or derived at read time, never by mutation.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    employer: str
    url: str = ""
    location: str = ""
    description: str = ""
    tags: OpportunityTags = Field(default_factory=OpportunityTags)
    skills: list[str] = Field(default_factory=list)
    experience_level: str = ""
    is_remote: bool = False
    category: str = ""
    source: str = ""
    deadline: datetime | None = None
    is_new_opportunity: bool = False
    published_at: datetime = Field(default_factory=utc_now)
    early_access_until: datetime | None = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)

    def is_in_early_access(self, now: datetime) -> bool:
        """True while the listing is new and its early-access window is open."""
        return (
            self.is_new_opportunity
            and self.early_access_until is not None
            and self.early_access_until > now
        )


class NewOpportunity(BaseModel):
    """Fields for a listing that is about to be created (no id yet)."""

    title: str
    employer: str
    url: str
    location: str = ""
    description: str = ""
    tags: OpportunityTags = Field(default_factory=OpportunityTags)
    experience_level: str = ""
    is_remote: bool = False
    category: str = ""
    source: str = ""
    deadline: datetime | None = None
    is_new_opportunity: bool = True
    published_at: datetime
    early_access_until: datetime | None = None


class MatchResult(BaseModel):
    """Outcome of scoring one candidate against one opportunity. Never persisted."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    reasons: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    strategy: str = ""


class ScoredOpportunity(BaseModel):
    """Wrapper that pairs a frozen Opportunity with its MatchResult."""

    model_config = ConfigDict(frozen=True)

    opportunity: Opportunity
    match: MatchResult


class PickScore(BaseModel):
    """Score, reasons and warnings of one pick, as shown when its set was generated."""

    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    reasons: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class DailyPickSet(BaseModel):
    """Persisted daily selection for one candidate.

    ``scores`` keeps each pick's display score for the rest of the logical day.
    """

    model_config = ConfigDict(frozen=True)

    candidate_id: str
    refresh_date: datetime
    opportunity_ids: list[str] = Field(default_factory=list)
    early_access_id: str | None = None
    scores: dict[str, PickScore] = Field(default_factory=dict)


class StreakRecord(BaseModel):
    """Persisted activity streak for one candidate."""

    model_config = ConfigDict(frozen=True)

    candidate_id: str
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_active_date: date | None = None


class StreakSnapshot(BaseModel):
    """Read-time view of a streak, including its decayed and visibility values."""

    current: int
    visual: int
    longest: int
    last_active_date: date | None = None
    multiplier: int
    tier: str


class StreakUpdate(BaseModel):
    """Result of recording one qualifying activity."""

    streak: int
    longest_streak: int
    is_new_record: bool = False
    already_counted: bool = False


class DecoratedPick(BaseModel):
    """A daily pick with live lock/applied state."""

    id: str
    title: str
    employer: str
    location: str = ""
    url: str = ""
    score: int
    reasons: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    is_early_access: bool = False
    is_locked: bool = False
    has_applied: bool = False


class DailyPicksResponse(BaseModel):
    """What get_daily_picks returns to callers."""

    picks: list[DecoratedPick] = Field(default_factory=list)
    streak: StreakSnapshot
    refresh_date: datetime
    regenerated: bool = False


class SkippedRow(BaseModel):
    title: str
    employer: str
    reason: str


class IngestionResult(BaseModel):
    """Summary of a single ingestion batch."""

    created: int = 0
    skipped: int = 0
    failed: int = 0
    created_ids: list[str] = Field(default_factory=list)
    skipped_details: list[SkippedRow] = Field(default_factory=list)
    failure_reasons: list[str] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime | None = None
