from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.orm import Session

from hireflow.config import get_settings
from hireflow.core.events import CollaborationHub
from hireflow.core.resume_parser import parse_resume
from hireflow.core.runtime import get_hub
from hireflow.core.snapshot import ProfileSnapshot, stage_label
from hireflow.core.timeline import analyze_trend, organizational_fit_trend
from hireflow.db.models import Candidate, CandidateProfile
from hireflow.db.repositories import Repository
from hireflow.errors import NotFoundError, ProfileUpdateInProgressError, ValidationError
from hireflow.llm.router import LLMRouter
from hireflow.types import ProfileDraft, ResumeAnalysis

logger = logging.getLogger(__name__)

_updates_in_progress: set[int] = set()
_updates_guard = threading.Lock()


@contextmanager
def exclusive_update(candidate_id: int) -> Iterator[None]:
    """Fail fast instead of queueing when the candidate is already being updated."""
    with _updates_guard:
        if candidate_id in _updates_in_progress:
            raise ProfileUpdateInProgressError(candidate_id)
        _updates_in_progress.add(candidate_id)
    try:
        yield
    finally:
        with _updates_guard:
            _updates_in_progress.discard(candidate_id)


def merge_unique(*groups: list[str]) -> list[str]:
    merged: list[str] = []
    for group in groups:
        for item in group:
            if item not in merged:
                merged.append(item)
    return merged


def _safe_filename(filename: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", filename).strip("._") or "resume"


class ProfileService:
    def __init__(
        self,
        session: Session,
        router: LLMRouter | None = None,
        hub: CollaborationHub | None = None,
    ):
        self.repo = Repository(session)
        self.router = router or LLMRouter()
        self.hub = hub or get_hub()

    def ingest_resume(self, data: bytes, *, filename: str, content_type: str | None = None) -> Candidate:
        parsed = parse_resume(data, filename=filename, content_type=content_type)
        analysis = self.router.analyze_resume(parsed.text)

        candidate = self.repo.create_candidate(
            name=parsed.contact.name or filename,
            email=parsed.contact.email or "",
            phone=parsed.contact.phone or "",
            skills_json=analysis.skills or parsed.skills,
            experience_years=max(int(analysis.experience or 0), parsed.experience_years),
            education=analysis.education or parsed.education,
            resume_text=parsed.text,
            ai_summary=analysis.summary,
            status="screening",
            source="bulk_upload",
        )

        upload_dir = get_settings().upload_dir
        target = upload_dir / f"{candidate.id}_{_safe_filename(filename)}"
        try:
            upload_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.warning("Stored candidate %s without resume file: %s", candidate.id, exc)
        else:
            candidate = self.repo.update_candidate(candidate.id, resume_path=str(target))

        logger.info("Ingested resume %s as candidate %s", filename, candidate.id)
        self._notify(
            "candidate_created",
            {
                "candidateId": candidate.id,
                "message": f"Candidate {candidate.name} added from {filename}",
            },
        )
        return candidate

    def build_initial_profile(self, candidate_id: int, job_id: int | None = None) -> CandidateProfile:
        candidate = self.repo.require_candidate(candidate_id)
        job = None
        if job_id is not None:
            job = self.repo.get_job(job_id)
            if job is None:
                raise NotFoundError(f"job {job_id} not found")

        analysis = ResumeAnalysis(
            summary=candidate.ai_summary,
            skills=list(candidate.skills_json or []),
            experience=candidate.experience_years,
            education=candidate.education,
        )
        if not analysis.summary or not analysis.skills:
            raise ValidationError(f"candidate {candidate_id} has no resume analysis; cannot build profile")

        logger.info("Building initial profile candidate=%s job=%s", candidate_id, job_id)
        draft = self.router.generate_initial_profile(candidate=candidate, analysis=analysis, job=job)
        profile = self._store(candidate_id, draft, stage="resume", job_id=job_id)
        self._notify_profile(candidate, profile)
        return profile

    def update_profile_with_interview(self, candidate_id: int, interview_id: int) -> CandidateProfile:
        with exclusive_update(candidate_id):
            return self._update_profile_with_interview(candidate_id, interview_id)

    def _update_profile_with_interview(self, candidate_id: int, interview_id: int) -> CandidateProfile:
        candidate = self.repo.require_candidate(candidate_id)
        interview = self.repo.get_interview(interview_id)
        if interview is None:
            raise NotFoundError(f"interview {interview_id} not found")
        if interview.candidate_id != candidate_id:
            raise ValidationError(f"interview {interview_id} does not belong to candidate {candidate_id}")
        if not interview.feedback and not interview.interviewer_notes:
            logger.warning("Interview %s has no feedback or notes", interview_id)

        latest = self.repo.get_latest_profile(candidate_id)
        if latest is None:
            raise NotFoundError(f"no existing profile for candidate {candidate_id}")
        current = ProfileSnapshot.from_row(latest)

        job_id = interview.job_id or latest.job_id
        job = self.repo.get_job(job_id) if job_id is not None else None

        draft = self.router.generate_updated_profile(
            candidate=candidate,
            current=current,
            interview=interview,
            history=self.repo.list_interviews(candidate_id),
            job=job,
        )
        draft.data_sources = merge_unique(
            list(latest.data_sources_json or []),
            draft.data_sources,
            [f"interview round {interview.round}"],
        )

        profile = self._store(candidate_id, draft, stage=f"after_interview_{interview.round}", job_id=job_id)
        self._notify_profile(candidate, profile)
        return profile

    def organizational_fit_evolution(self, candidate_id: int) -> dict[str, Any]:
        self.repo.require_candidate(candidate_id)
        snapshots = [ProfileSnapshot.from_row(row) for row in self.repo.list_profiles(candidate_id)]
        points = organizational_fit_trend(snapshots)

        return {
            "candidateId": candidate_id,
            "points": [
                {
                    "version": point.version,
                    "stage": point.stage_label,
                    "culture": point.culture,
                    "leadership": point.leadership,
                    "overall": point.overall,
                }
                for point in points
            ],
            "trends": {
                "culture": analyze_trend([point.culture for point in points]),
                "leadership": analyze_trend([point.leadership for point in points]),
                "overall": analyze_trend([point.overall for point in points]),
            },
        }

    def _store(self, candidate_id: int, draft: ProfileDraft, *, stage: str, job_id: int | None) -> CandidateProfile:
        return self.repo.create_profile_with_retry(
            candidate_id,
            job_id=job_id,
            stage=stage,
            profile_data=draft.profile_data.model_dump(by_alias=True, exclude_none=True),
            overall_score=draft.overall_score,
            data_sources=draft.data_sources,
            gaps=draft.gaps,
            strengths=draft.strengths,
            concerns=draft.concerns,
            ai_summary=draft.ai_summary,
        )

    def _notify_profile(self, candidate: Candidate, profile: CandidateProfile) -> None:
        self._notify(
            "profile_created",
            {
                "candidateId": candidate.id,
                "message": f"{candidate.name}: profile v{profile.version} ({stage_label(profile.stage)})",
                "version": profile.version,
            },
        )

    def _notify(self, kind: str, payload: dict[str, Any]) -> None:
        self.hub.publish_threadsafe({"type": "notification", "payload": {"kind": kind, **payload}})
