from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Proficiency = Literal["beginner", "intermediate", "advanced", "expert"]
CandidateStatus = Literal["applied", "screening", "interview", "offer", "hired", "rejected"]
Confidence = Literal["low", "medium", "high"]
LeadershipLevel = Literal[
    "individual_contributor",
    "emerging_leader",
    "developing_leader",
    "mature_leader",
]

PROFICIENCY_RANK: dict[str, int] = {
    "beginner": 1,
    "intermediate": 2,
    "advanced": 3,
    "expert": 4,
}


def _clamp_sub_score(value: float) -> float:
    return min(100.0, max(0.0, value))


# Stored sub-scores are clamped to [0, 100] when read, never rejected.
SubScore = Annotated[float, AfterValidator(_clamp_sub_score)]


class CamelModel(BaseModel):
    """Profile payloads are stored camelCase; snake_case input is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TechnicalSkill(CamelModel):
    skill: str = Field(min_length=1)
    proficiency: Proficiency
    evidence_source: str = Field(min_length=1)


class SoftSkill(CamelModel):
    skill: str = Field(min_length=1)
    examples: list[str] = Field(default_factory=list)


class Position(CamelModel):
    title: str
    duration: str = ""
    key_achievements: list[str] = Field(default_factory=list)


class Experience(CamelModel):
    total_years: float = Field(ge=0)
    relevant_years: float = Field(ge=0)
    positions: list[Position] = Field(default_factory=list)


class Education(CamelModel):
    level: str
    field: str
    institution: str | None = None


class CulturalFit(CamelModel):
    work_style: str
    motivations: list[str] = Field(default_factory=list)
    preferences: list[str] = Field(default_factory=list)


class CareerTrajectory(CamelModel):
    progression: str
    growth_areas: list[str] = Field(default_factory=list)
    stability_score: SubScore


class ValueAssessment(CamelModel):
    value_name: str
    score: SubScore
    evidence: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)


class CultureAssessment(CamelModel):
    overall_score: SubScore
    value_assessments: list[ValueAssessment] = Field(default_factory=list)
    trajectory: Literal["improving", "stable", "declining"] | None = None
    confidence: Confidence = "medium"


class DimensionScore(CamelModel):
    dimension: str
    score: SubScore
    evidence: list[str] = Field(default_factory=list)


class LeadershipAssessment(CamelModel):
    overall_score: SubScore
    current_level: LeadershipLevel = "individual_contributor"
    dimension_scores: list[DimensionScore] = Field(default_factory=list)
    trajectory: Literal["high_potential", "steady_growth", "developing", "at_risk"] | None = None
    readiness_for_next_level: SubScore | None = None


class OrganizationalFit(CamelModel):
    culture_assessment: CultureAssessment | None = None
    leadership_assessment: LeadershipAssessment | None = None


class ProfileData(CamelModel):
    technical_skills: list[TechnicalSkill]
    soft_skills: list[SoftSkill]
    experience: Experience
    education: Education
    cultural_fit: CulturalFit
    career_trajectory: CareerTrajectory
    organizational_fit: OrganizationalFit | None = None


class ProfileDraft(CamelModel):
    """Structured profile produced by the LLM (or the heuristic fallback) before it is versioned."""

    profile_data: ProfileData
    overall_score: float = Field(ge=0, le=100)
    data_sources: list[str] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    ai_summary: str = Field(min_length=1)


class ResumeAnalysis(BaseModel):
    summary: str = ""
    skills: list[str] = Field(default_factory=list)
    experience: int = 0
    education: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)


class ModelResponse(BaseModel):
    content: str
    raw: dict[str, Any] = Field(default_factory=dict)


class WSMessage(BaseModel):
    type: str
    payload: Any = None
