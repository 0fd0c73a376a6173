"""Flatten a CandidateRecord into the attributes the scorer matches on."""

from pydantic import BaseModel, ConfigDict, Field

from src.profile.schema import CandidateRecord


class CandidateProfile(BaseModel):
    """Normalized, immutable snapshot of a candidate for one scoring call.

    All strings are lowercased and trimmed; lists keep first-seen order and
    drop blanks and duplicates.
    """

    model_config = ConfigDict(frozen=True)

    candidate_id: str
    major: str = ""
    location: str = ""
    skills: tuple[str, ...] = ()
    interests: tuple[str, ...] = ()
    education_terms: tuple[str, ...] = ()
    experience_count: int = Field(default=0, ge=0)


def _clean(value: str) -> str:
    return " ".join(value.lower().split())


def _unique(values: list[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for v in values:
        cleaned = _clean(v)
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)


def normalize_profile(record: CandidateRecord) -> CandidateProfile:
    """Build a CandidateProfile from a persisted candidate record."""
    # education_level ("bachelor", "master") is too generic to match on
    education = [record.major]
    for entry in record.cv_education:
        education.extend([entry.field_of_study, entry.degree_title])

    return CandidateProfile(
        candidate_id=record.id,
        major=_clean(record.major),
        location=_clean(record.location),
        skills=_unique(record.skills + record.cv_skills),
        interests=_unique(record.interests),
        education_terms=_unique(education),
        experience_count=len(record.cv_experience),
    )
