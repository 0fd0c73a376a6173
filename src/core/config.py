"""Configuration models and YAML loader for the opportunity ranking engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


class DatabaseConfig(BaseModel):
    """Database configuration."""

    path: str = "data/engine.db"


class TagWeights(BaseModel):
    """Factor weights for opportunities that carry AI-derived tags."""

    education: float = Field(default=40.0, ge=0.0)
    interest: float = Field(default=30.0, ge=0.0)
    skills: float = Field(default=20.0, ge=0.0)
    location: float = Field(default=10.0, ge=0.0)


class FieldWeights(BaseModel):
    """Factor weights for opportunities scored from their raw fields."""

    skills: float = Field(default=40.0, ge=0.0)
    domain: float = Field(default=20.0, ge=0.0)
    experience: float = Field(default=15.0, ge=0.0)
    location: float = Field(default=10.0, ge=0.0)
    interest: float = Field(default=15.0, ge=0.0)


class ScoringConfig(BaseModel):
    """Weights for the two interchangeable scoring strategies."""

    tag_weights: TagWeights = Field(default_factory=TagWeights)
    field_weights: FieldWeights = Field(default_factory=FieldWeights)


class SchedulerConfig(BaseModel):
    """Daily pick refresh boundary and slot sizes."""

    utc_offset_hours: int = Field(default=4, ge=-12, le=14)
    refresh_hour: int = Field(default=4, ge=0, le=23)
    early_access_slots: int = Field(default=1, ge=0, le=1)
    regular_slots: int = Field(default=2, ge=0)


class StreakConfig(BaseModel):
    """Streak decay and protection thresholds."""

    grace_days: int = Field(default=0, ge=0)
    zero_after_days: int = Field(default=4, ge=1)
    protected_streak_threshold: int | None = Field(default=None, ge=1)
    max_update_attempts: int = Field(default=3, ge=1)

    @model_validator(mode="after")
    def grace_before_zero(self) -> "StreakConfig":
        if self.grace_days >= self.zero_after_days:
            msg = "grace_days must be smaller than zero_after_days"
            raise ValueError(msg)
        return self


class IngestionConfig(BaseModel):
    """Duplicate detection thresholds and early-access window for new listings."""

    early_access_hours: float = Field(default=48.0, gt=0.0)
    fuzzy_similarity_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    containment_length_ratio: float = Field(default=0.30, ge=0.0, le=1.0)
    default_source: str = "Daily Upload"

    @field_validator("default_source")
    @classmethod
    def source_not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "default_source must not be empty"
            raise ValueError(msg)
        return v.strip()


class CategorizationConfig(BaseModel):
    """Best-effort LLM categorization of newly ingested listings."""

    enabled: bool = False
    provider: str = "anthropic"
    model: str | None = None
    timeout_seconds: float = Field(default=5.0, gt=0.0, le=60.0)
    fallback_confidence: float = Field(default=0.1, ge=0.0, le=1.0)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    streak: StreakConfig = Field(default_factory=StreakConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    categorization: CategorizationConfig = Field(default_factory=CategorizationConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
