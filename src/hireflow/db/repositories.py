from __future__ import annotations

import logging
import threading
import time
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hireflow.config import get_settings
from hireflow.db.models import Candidate, CandidateProfile, Interview, Job
from hireflow.errors import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_candidate_locks: dict[int, threading.Lock] = {}
_candidate_locks_guard = threading.Lock()


def _candidate_lock(candidate_id: int) -> threading.Lock:
    with _candidate_locks_guard:
        lock = _candidate_locks.get(candidate_id)
        if lock is None:
            lock = threading.Lock()
            _candidate_locks[candidate_id] = lock
        return lock


def _require_positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{name} must be a positive integer, got {value!r}")
    return value


def _score_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


class Repository:
    def __init__(self, session: Session):
        self.session = session

    def create_candidate(self, name: str, **values: Any) -> Candidate:
        candidate = Candidate(name=name, **values)
        self.session.add(candidate)
        self.session.commit()
        self.session.refresh(candidate)
        return candidate

    def get_candidate(self, candidate_id: int) -> Candidate | None:
        return self.session.get(Candidate, candidate_id)

    def require_candidate(self, candidate_id: int) -> Candidate:
        candidate = self.session.get(Candidate, candidate_id)
        if not candidate:
            raise NotFoundError(f"candidate {candidate_id} not found")
        return candidate

    def list_candidates(self, limit: int = 100) -> list[Candidate]:
        statement = select(Candidate).order_by(Candidate.id.desc()).limit(limit)
        return list(self.session.scalars(statement).all())

    def update_candidate(self, candidate_id: int, **values: Any) -> Candidate:
        candidate = self.require_candidate(candidate_id)
        for key, value in values.items():
            setattr(candidate, key, value)
        self.session.commit()
        self.session.refresh(candidate)
        return candidate

    def create_job(self, title: str, **values: Any) -> Job:
        job = Job(title=title, **values)
        self.session.add(job)
        self.session.commit()
        self.session.refresh(job)
        return job

    def get_job(self, job_id: int) -> Job | None:
        return self.session.get(Job, job_id)

    def list_jobs(self, limit: int = 50) -> list[Job]:
        statement = select(Job).order_by(Job.created_at.desc()).limit(limit)
        return list(self.session.scalars(statement).all())

    def create_interview(self, candidate_id: int, **values: Any) -> Interview:
        self.require_candidate(candidate_id)
        interview = Interview(candidate_id=candidate_id, **values)
        self.session.add(interview)
        self.session.commit()
        self.session.refresh(interview)
        return interview

    def get_interview(self, interview_id: int) -> Interview | None:
        return self.session.get(Interview, interview_id)

    def list_interviews(self, candidate_id: int) -> list[Interview]:
        statement = (
            select(Interview)
            .where(Interview.candidate_id == candidate_id)
            .order_by(Interview.round.asc(), Interview.id.asc())
        )
        return list(self.session.scalars(statement).all())

    def max_profile_version(self, candidate_id: int) -> int:
        statement = select(func.max(CandidateProfile.version)).where(
            CandidateProfile.candidate_id == candidate_id
        )
        return self.session.scalar(statement) or 0

    def create_profile(
        self,
        candidate_id: int,
        *,
        profile_data: dict[str, Any],
        overall_score: Any,
        stage: str = "resume",
        job_id: int | None = None,
        data_sources: list[str] | None = None,
        gaps: list[str] | None = None,
        strengths: list[str] | None = None,
        concerns: list[str] | None = None,
        ai_summary: str = "",
    ) -> CandidateProfile:
        """Insert the next version for the candidate.

        Raises ``ConflictError`` when another writer took the same version first;
        the uniqueness constraint on (candidate_id, version) is the arbiter.
        """
        _require_positive_int(candidate_id, "candidate_id")
        self.require_candidate(candidate_id)

        version = self.max_profile_version(candidate_id) + 1
        profile = CandidateProfile(
            candidate_id=candidate_id,
            job_id=job_id,
            version=version,
            stage=stage,
            profile_data_json=profile_data,
            overall_score=_score_text(overall_score),
            data_sources_json=list(data_sources or []),
            gaps_json=list(gaps or []),
            strengths_json=list(strengths or []),
            concerns_json=list(concerns or []),
            ai_summary=ai_summary,
        )
        self.session.add(profile)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(candidate_id, version) from exc
        self.session.refresh(profile)
        logger.info("Created profile candidate=%s version=%s stage=%s", candidate_id, version, stage)
        return profile

    def create_profile_with_retry(self, candidate_id: int, **values: Any) -> CandidateProfile:
        settings = get_settings()
        attempts = max(1, settings.profile_version_max_retries)

        with _candidate_lock(candidate_id):
            attempt = 0
            while True:
                attempt += 1
                try:
                    return self.create_profile(candidate_id, **values)
                except ConflictError as exc:
                    if attempt >= attempts:
                        logger.error(
                            "Giving up on profile version for candidate=%s after %s attempts",
                            candidate_id,
                            attempts,
                        )
                        raise
                    logger.warning(
                        "Version conflict candidate=%s version=%s attempt=%s/%s",
                        candidate_id,
                        exc.version,
                        attempt,
                        attempts,
                    )
                    time.sleep(settings.profile_version_retry_delay_ms * attempt / 1000)

    def list_profiles(self, candidate_id: int) -> list[CandidateProfile]:
        statement = (
            select(CandidateProfile)
            .where(CandidateProfile.candidate_id == candidate_id)
            .order_by(CandidateProfile.version.asc())
        )
        return list(self.session.scalars(statement).all())

    def get_profile(self, profile_id: int) -> CandidateProfile | None:
        return self.session.get(CandidateProfile, profile_id)

    def get_latest_profile(self, candidate_id: int) -> CandidateProfile | None:
        statement = (
            select(CandidateProfile)
            .where(CandidateProfile.candidate_id == candidate_id)
            .order_by(CandidateProfile.version.desc())
            .limit(1)
        )
        return self.session.scalar(statement)

    def get_profile_by_version(self, candidate_id: int, version: Any) -> CandidateProfile | None:
        _require_positive_int(version, "version")
        statement = select(CandidateProfile).where(
            CandidateProfile.candidate_id == candidate_id,
            CandidateProfile.version == version,
        )
        return self.session.scalar(statement)
