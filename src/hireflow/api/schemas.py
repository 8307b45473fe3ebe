from __future__ import annotations

import dataclasses
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hireflow.core.snapshot import parse_score, stage_label, string_list
from hireflow.types import CandidateStatus


class APIModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CandidateCreateRequest(APIModel):
    name: str = Field(min_length=1)
    email: str = ""
    phone: str = ""
    position: str = ""
    experience_years: int = Field(default=0, ge=0)
    education: str = ""
    location: str = ""
    resume_text: str = ""
    skills: list[str] = Field(default_factory=list)
    ai_summary: str = ""
    status: CandidateStatus = "applied"
    source: str = "manual"


class CandidateResponse(APIModel):
    id: int
    name: str
    email: str
    phone: str
    position: str
    experience_years: int
    education: str
    location: str
    skills: list[str]
    ai_summary: str
    status: str
    source: str
    resume_path: str
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> CandidateResponse:
        return cls(
            id=row.id,
            name=row.name,
            email=row.email,
            phone=row.phone,
            position=row.position,
            experience_years=row.experience_years,
            education=row.education,
            location=row.location,
            skills=list(row.skills_json or []),
            ai_summary=row.ai_summary,
            status=row.status,
            source=row.source,
            resume_path=row.resume_path,
            created_at=row.created_at,
        )


class JobCreateRequest(APIModel):
    title: str = Field(min_length=1)
    department: str = ""
    location: str = ""
    description: str = ""
    requirements: list[str] = Field(default_factory=list)
    status: str = "active"


class JobResponse(APIModel):
    id: int
    title: str
    department: str
    location: str
    description: str
    requirements: list[str]
    status: str
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> JobResponse:
        return cls(
            id=row.id,
            title=row.title,
            department=row.department,
            location=row.location,
            description=row.description,
            requirements=list(row.requirements_json or []),
            status=row.status,
            created_at=row.created_at,
        )


class InterviewCreateRequest(APIModel):
    job_id: int | None = None
    round: int = Field(default=1, ge=1)
    type: str = "video"
    status: str = "completed"
    feedback: str = ""
    interviewer_notes: str = ""
    rating: int | None = Field(default=None, ge=1, le=5)
    recommendation: str = ""


class InterviewResponse(InterviewCreateRequest):
    id: int
    candidate_id: int
    created_at: datetime | None = None


class ProfileResponse(APIModel):
    id: int
    candidate_id: int
    job_id: int | None
    version: int
    stage: str
    stage_label: str
    profile_data: Any
    overall_score: float | None
    data_sources: list[str]
    gaps: list[str]
    strengths: list[str]
    concerns: list[str]
    ai_summary: str
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> ProfileResponse:
        return cls(
            id=row.id,
            candidate_id=row.candidate_id,
            job_id=row.job_id,
            version=row.version,
            stage=row.stage,
            stage_label=stage_label(row.stage),
            profile_data=row.profile_data_json,
            overall_score=parse_score(row.overall_score),
            data_sources=string_list(row.data_sources_json),
            gaps=string_list(row.gaps_json),
            strengths=string_list(row.strengths_json),
            concerns=string_list(row.concerns_json),
            ai_summary=row.ai_summary or "",
            created_at=row.created_at,
        )


class ProfileBuildRequest(APIModel):
    job_id: int | None = None


class ProfileBuildResponse(APIModel):
    profile_id: int
    candidate_id: int
    version: int
    stage: str
    overall_score: float | None


class BulkUploadError(APIModel):
    filename: str
    error: str


class BulkUploadResponse(APIModel):
    candidate: CandidateResponse | None = None
    candidates: list[CandidateResponse] = Field(default_factory=list)
    errors: list[BulkUploadError] = Field(default_factory=list)


def camelize(value: Any) -> Any:
    """Dataclass/dict tree to JSON-ready data with camelCase keys."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    if isinstance(value, dict):
        return {to_camel(str(key)): camelize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [camelize(item) for item in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value
