"""Initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-16

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "candidates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("phone", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("position", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("experience_years", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("education", sa.Text(), nullable=False, server_default=""),
        sa.Column("location", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("resume_text", sa.Text(), nullable=False, server_default=""),
        sa.Column("resume_path", sa.String(length=600), nullable=False, server_default=""),
        sa.Column("skills_json", sa.JSON(), nullable=False),
        sa.Column("ai_summary", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="applied"),
        sa.Column("source", sa.String(length=80), nullable=False, server_default="manual"),
        *_timestamps(),
    )

    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("location", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("requirements_json", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="active"),
        *_timestamps(),
    )

    op.create_table(
        "interviews",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("candidate_id", sa.Integer(), sa.ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True),
        sa.Column("round", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("type", sa.String(length=40), nullable=False, server_default="video"),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="scheduled"),
        sa.Column("feedback", sa.Text(), nullable=False, server_default=""),
        sa.Column("interviewer_notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("recommendation", sa.String(length=40), nullable=False, server_default=""),
        *_timestamps(),
    )
    op.create_index("ix_interviews_candidate_id", "interviews", ["candidate_id"])

    op.create_table(
        "candidate_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("candidate_id", sa.Integer(), sa.ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("stage", sa.String(length=80), nullable=False, server_default="resume"),
        sa.Column("profile_data_json", sa.JSON(), nullable=False),
        sa.Column("overall_score", sa.String(length=32), nullable=True),
        sa.Column("data_sources_json", sa.JSON(), nullable=True),
        sa.Column("gaps_json", sa.JSON(), nullable=True),
        sa.Column("strengths_json", sa.JSON(), nullable=True),
        sa.Column("concerns_json", sa.JSON(), nullable=True),
        sa.Column("ai_summary", sa.Text(), nullable=False, server_default=""),
        *_timestamps(),
        sa.UniqueConstraint("candidate_id", "version", name="uq_candidate_profile_version"),
    )
    op.create_index("ix_candidate_profiles_candidate_id", "candidate_profiles", ["candidate_id"])


def downgrade() -> None:
    op.drop_index("ix_candidate_profiles_candidate_id", table_name="candidate_profiles")
    op.drop_table("candidate_profiles")
    op.drop_index("ix_interviews_candidate_id", table_name="interviews")
    op.drop_table("interviews")
    op.drop_table("jobs")
    op.drop_table("candidates")
