from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hireflow.db.base import Base, TimestampMixin


class Candidate(TimestampMixin, Base):
    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    phone: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    position: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    experience_years: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    education: Mapped[str] = mapped_column(Text, default="", nullable=False)
    location: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    resume_text: Mapped[str] = mapped_column(Text, default="", nullable=False)
    resume_path: Mapped[str] = mapped_column(String(600), default="", nullable=False)
    skills_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    ai_summary: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(40), default="applied", nullable=False)
    source: Mapped[str] = mapped_column(String(80), default="manual", nullable=False)


class Job(TimestampMixin, Base):
    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    location: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    requirements_json: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    status: Mapped[str] = mapped_column(String(40), default="active", nullable=False)


class Interview(TimestampMixin, Base):
    __tablename__ = "interviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    candidate_id: Mapped[int] = mapped_column(ForeignKey("candidates.id", ondelete="CASCADE"), index=True)
    job_id: Mapped[int | None] = mapped_column(ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True)
    round: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    type: Mapped[str] = mapped_column(String(40), default="video", nullable=False)
    status: Mapped[str] = mapped_column(String(40), default="scheduled", nullable=False)
    feedback: Mapped[str] = mapped_column(Text, default="", nullable=False)
    interviewer_notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recommendation: Mapped[str] = mapped_column(String(40), default="", nullable=False)


class CandidateProfile(TimestampMixin, Base):
    """Immutable, versioned snapshot of a candidate's evaluation."""

    __tablename__ = "candidate_profiles"
    __table_args__ = (UniqueConstraint("candidate_id", "version", name="uq_candidate_profile_version"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    candidate_id: Mapped[int] = mapped_column(ForeignKey("candidates.id", ondelete="CASCADE"), index=True)
    job_id: Mapped[int | None] = mapped_column(ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    stage: Mapped[str] = mapped_column(String(80), default="resume", nullable=False)
    profile_data_json: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    # stored as text; legacy rows may hold non-numeric values
    overall_score: Mapped[str | None] = mapped_column(String(32), nullable=True)
    data_sources_json: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    gaps_json: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    strengths_json: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    concerns_json: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    ai_summary: Mapped[str] = mapped_column(Text, default="", nullable=False)
