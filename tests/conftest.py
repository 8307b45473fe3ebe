from __future__ import annotations

import os
import tempfile
from pathlib import Path

_TEST_ROOT = Path(tempfile.mkdtemp(prefix="hireflow-tests-"))
os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{_TEST_ROOT / 'hireflow.db'}"
os.environ["DATA_DIR"] = str(_TEST_ROOT)
os.environ["UPLOAD_DIR"] = str(_TEST_ROOT / "uploads")
os.environ["OPENAI_API_KEY"] = ""
os.environ["PROFILE_VERSION_RETRY_DELAY_MS"] = "1"

import pytest  # noqa: E402

from hireflow.core.runtime import reset_hub  # noqa: E402
from hireflow.db import models  # noqa: E402,F401
from hireflow.db.base import Base  # noqa: E402
from hireflow.db.session import engine  # noqa: E402


@pytest.fixture(autouse=True)
def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_hub()
    yield


def _profile_data(
    *,
    skills: list[tuple[str, str]] | None = None,
    soft_skills: list[str] | None = None,
    total_years: float = 5,
    relevant_years: float = 3,
    culture: float | None = 70,
    leadership: float | None = 55,
    readiness: float | None = 40,
) -> dict:
    data = {
        "technicalSkills": [
            {"skill": name, "proficiency": level, "evidenceSource": "resume"}
            for name, level in (skills if skills is not None else [("Python", "advanced"), ("SQL", "intermediate")])
        ],
        "softSkills": [{"skill": name, "examples": []} for name in (soft_skills or ["Communication"])],
        "experience": {
            "totalYears": total_years,
            "relevantYears": relevant_years,
            "positions": [{"title": "Backend Engineer", "duration": "3y", "keyAchievements": []}],
        },
        "education": {"level": "Bachelor", "field": "Computer Science"},
        "culturalFit": {"workStyle": "collaborative", "motivations": [], "preferences": []},
        "careerTrajectory": {"progression": "steady", "growthAreas": [], "stabilityScore": 80},
    }
    fit: dict = {}
    if culture is not None:
        fit["cultureAssessment"] = {"overallScore": culture, "valueAssessments": [], "confidence": "medium"}
    if leadership is not None:
        fit["leadershipAssessment"] = {
            "overallScore": leadership,
            "currentLevel": "individual_contributor",
            "dimensionScores": [],
            "readinessForNextLevel": readiness,
        }
    if fit:
        data["organizationalFit"] = fit
    return data


@pytest.fixture
def profile_data():
    return _profile_data
