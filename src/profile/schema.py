"""CandidateRecord model: the persisted candidate as read from the profile store."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


class CvEducation(BaseModel):
    degree_type: str = ""
    degree_title: str = ""
    field_of_study: str = ""
    institution: str = ""


class CvExperience(BaseModel):
    title: str = ""
    employer: str = ""
    location: str = ""
    summary: str = ""


class CandidateRecord(BaseModel):
    """Candidate fields needed for matching, including CV-derived entries."""

    id: str
    major: str = ""
    education_level: str = ""
    location: str = ""
    skills: list[str] = Field(default_factory=list)
    interests: list[str] = Field(default_factory=list)
    cv_skills: list[str] = Field(default_factory=list)
    cv_education: list[CvEducation] = Field(default_factory=list)
    cv_experience: list[CvExperience] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def id_not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "id must not be empty"
            raise ValueError(msg)
        return v.strip()

    @classmethod
    def from_yaml(cls, path: str | Path) -> "CandidateRecord":
        """Load a candidate from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Candidate file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)

    def to_yaml(self, path: str | Path) -> None:
        """Write the candidate to a YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = self.model_dump()
        path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))
