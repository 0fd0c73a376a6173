"""Tests for CandidateRecord loading and profile normalization."""

from pathlib import Path
from textwrap import dedent

import pytest
from pydantic import ValidationError

from src.profile.normalizer import CandidateProfile, normalize_profile
from src.profile.schema import CandidateRecord, CvEducation, CvExperience


class TestCandidateRecord:
    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValidationError, match="id must not be empty"):
            CandidateRecord(id="   ")

    def test_id_trimmed(self) -> None:
        assert CandidateRecord(id=" c1 ").id == "c1"

    def test_yaml_round_trip(self, tmp_path: Path) -> None:
        record = CandidateRecord(
            id="c1",
            major="Finance",
            skills=["Excel"],
            cv_education=[CvEducation(degree_title="BBA", field_of_study="Finance")],
        )
        path = tmp_path / "profiles" / "c1.yaml"
        record.to_yaml(path)
        assert CandidateRecord.from_yaml(path) == record

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "c.yaml"
        path.write_text(dedent("""\
            id: student-42
            major: Computer Science
            location: Dubai
            interests: [software, data]
            cv_experience:
              - title: Teaching Assistant
                employer: AUD
        """))
        record = CandidateRecord.from_yaml(path)
        assert record.id == "student-42"
        assert record.cv_experience[0].employer == "AUD"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Candidate file not found"):
            CandidateRecord.from_yaml(tmp_path / "missing.yaml")


class TestNormalizeProfile:
    def test_lowercases_and_trims(self) -> None:
        profile = normalize_profile(
            CandidateRecord(id="c1", major="  Finance ", location="Dubai,  UAE"),
        )
        assert profile.major == "finance"
        assert profile.location == "dubai, uae"

    def test_merges_and_dedupes_skills(self) -> None:
        profile = normalize_profile(
            CandidateRecord(id="c1", skills=["Excel", "SQL", ""], cv_skills=["excel", "Python"]),
        )
        assert profile.skills == ("excel", "sql", "python")

    def test_education_terms(self) -> None:
        profile = normalize_profile(
            CandidateRecord(
                id="c1",
                major="Finance",
                education_level="Bachelor",
                cv_education=[
                    CvEducation(degree_title="BSc Economics", field_of_study="Economics"),
                ],
            )
        )
        assert profile.education_terms == ("finance", "economics", "bsc economics")
        assert "bachelor" not in profile.education_terms

    def test_experience(self) -> None:
        profile = normalize_profile(
            CandidateRecord(
                id="c1",
                cv_experience=[
                    CvExperience(title="Intern", employer="Acme"),
                    CvExperience(title="Analyst", employer="Acme"),
                ],
            )
        )
        assert profile.experience_count == 2

    def test_only_scored_attributes(self) -> None:
        assert set(CandidateProfile.model_fields) == {
            "candidate_id", "major", "location", "skills", "interests",
            "education_terms", "experience_count",
        }

    def test_frozen(self) -> None:
        profile = normalize_profile(CandidateRecord(id="c1"))
        with pytest.raises(ValidationError):
            profile.major = "x"  # type: ignore[misc]
