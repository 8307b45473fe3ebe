from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from hireflow.api.deps import get_db
from hireflow.api.schemas import (
    BulkUploadError,
    BulkUploadResponse,
    CandidateCreateRequest,
    CandidateResponse,
    InterviewCreateRequest,
    InterviewResponse,
    JobCreateRequest,
    JobResponse,
    ProfileBuildRequest,
    ProfileBuildResponse,
    ProfileResponse,
    camelize,
)
from hireflow.config import get_settings
from hireflow.core.comparator import compare_profiles
from hireflow.core.profile_service import ProfileService
from hireflow.core.resume_parser import UnsupportedResumeType
from hireflow.core.runtime import get_hub
from hireflow.core.snapshot import ProfileSnapshot, parse_score
from hireflow.core.timeline import build_timeline
from hireflow.db.repositories import Repository
from hireflow.errors import (
    ConflictError,
    HireflowError,
    NotFoundError,
    ProfileUpdateInProgressError,
    ValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])
ws_router = APIRouter(tags=["realtime"])


def http_error(exc: HireflowError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, UnsupportedResumeType):
        return HTTPException(status_code=415, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (ConflictError, ProfileUpdateInProgressError)):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@router.get("/health")
def api_health() -> dict[str, Any]:
    return {"status": "ok", "realtimeSessions": get_hub().session_count}


@router.post("/candidates", response_model=CandidateResponse, status_code=201)
def create_candidate(payload: CandidateCreateRequest, db: Session = Depends(get_db)) -> CandidateResponse:
    repo = Repository(db)
    values = payload.model_dump(exclude={"name", "skills"})
    candidate = repo.create_candidate(payload.name, skills_json=payload.skills, **values)
    return CandidateResponse.from_row(candidate)


@router.get("/candidates", response_model=list[CandidateResponse])
def list_candidates(db: Session = Depends(get_db)) -> list[CandidateResponse]:
    return [CandidateResponse.from_row(row) for row in Repository(db).list_candidates()]


@router.post("/candidates/bulk-upload", response_model=BulkUploadResponse, status_code=201)
def bulk_upload(
    resumes: list[UploadFile] | None = File(default=None),
    db: Session = Depends(get_db),
) -> BulkUploadResponse:
    if not resumes:
        raise HTTPException(status_code=400, detail="No files uploaded")

    settings = get_settings()
    if len(resumes) > settings.max_upload_files:
        raise HTTPException(status_code=400, detail=f"At most {settings.max_upload_files} files per upload")

    service = ProfileService(db)
    created: list[CandidateResponse] = []
    errors: list[tuple[str, HireflowError]] = []
    for upload in resumes:
        filename = upload.filename or "resume"
        data = upload.file.read(settings.max_upload_bytes + 1)
        try:
            if len(data) > settings.max_upload_bytes:
                raise ValidationError(f"{filename} exceeds {settings.max_upload_bytes} bytes")
            candidate = service.ingest_resume(data, filename=filename, content_type=upload.content_type)
        except HireflowError as exc:
            logger.warning("Bulk upload rejected %s: %s", filename, exc)
            errors.append((filename, exc))
            continue
        created.append(CandidateResponse.from_row(candidate))

    if not created:
        raise http_error(errors[0][1])

    return BulkUploadResponse(
        candidate=created[0],
        candidates=created,
        errors=[BulkUploadError(filename=name, error=str(exc)) for name, exc in errors],
    )


@router.get("/candidates/{candidate_id}", response_model=CandidateResponse)
def get_candidate(candidate_id: int, db: Session = Depends(get_db)) -> CandidateResponse:
    candidate = Repository(db).get_candidate(candidate_id)
    if not candidate:
        raise HTTPException(status_code=404, detail="Candidate not found")
    return CandidateResponse.from_row(candidate)


@router.post("/jobs", response_model=JobResponse, status_code=201)
def create_job(payload: JobCreateRequest, db: Session = Depends(get_db)) -> JobResponse:
    values = payload.model_dump(exclude={"title", "requirements"})
    job = Repository(db).create_job(payload.title, requirements_json=payload.requirements, **values)
    return JobResponse.from_row(job)


@router.get("/jobs", response_model=list[JobResponse])
def list_jobs(db: Session = Depends(get_db)) -> list[JobResponse]:
    return [JobResponse.from_row(row) for row in Repository(db).list_jobs()]


@router.post("/candidates/{candidate_id}/interviews", response_model=InterviewResponse, status_code=201)
def create_interview(
    candidate_id: int,
    payload: InterviewCreateRequest,
    db: Session = Depends(get_db),
) -> InterviewResponse:
    repo = Repository(db)
    if payload.job_id is not None and not repo.get_job(payload.job_id):
        raise HTTPException(status_code=404, detail="Job not found")
    try:
        interview = repo.create_interview(candidate_id, **payload.model_dump())
    except HireflowError as exc:
        raise http_error(exc) from exc
    return InterviewResponse.model_validate(interview)


@router.get("/candidates/{candidate_id}/interviews", response_model=list[InterviewResponse])
def list_interviews(candidate_id: int, db: Session = Depends(get_db)) -> list[InterviewResponse]:
    return [InterviewResponse.model_validate(row) for row in Repository(db).list_interviews(candidate_id)]


@router.get("/candidates/{candidate_id}/profiles", response_model=list[ProfileResponse])
def list_candidate_profiles(candidate_id: int, db: Session = Depends(get_db)) -> list[ProfileResponse]:
    return [ProfileResponse.from_row(row) for row in Repository(db).list_profiles(candidate_id)]


@router.get("/candidates/{candidate_id}/profiles/latest", response_model=ProfileResponse)
def get_latest_profile(candidate_id: int, db: Session = Depends(get_db)) -> ProfileResponse:
    profile = Repository(db).get_latest_profile(candidate_id)
    if not profile:
        raise HTTPException(status_code=404, detail="No profile for candidate")
    return ProfileResponse.from_row(profile)


@router.get("/candidates/{candidate_id}/profiles/timeline")
def get_profile_timeline(candidate_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    rows = Repository(db).list_profiles(candidate_id)
    timeline = build_timeline(ProfileSnapshot.from_row(row) for row in rows)
    return {
        "candidateId": candidate_id,
        "empty": timeline.empty,
        "entries": camelize(timeline.entries),
        "warnings": timeline.warnings,
    }


@router.get("/candidates/{candidate_id}/profiles/compare")
def compare_profile_versions(
    candidate_id: int,
    version_a: int = Query(alias="versionA"),
    version_b: int = Query(alias="versionB"),
    db: Session = Depends(get_db),
) -> JSONResponse:
    repo = Repository(db)
    try:
        row_a = repo.get_profile_by_version(candidate_id, version_a)
        row_b = repo.get_profile_by_version(candidate_id, version_b)
    except HireflowError as exc:
        raise http_error(exc) from exc

    missing = [version for version, row in ((version_a, row_a), (version_b, row_b)) if row is None]
    if missing:
        raise HTTPException(status_code=404, detail=f"Profile version(s) not found: {missing}")

    comparison = compare_profiles(ProfileSnapshot.from_row(row_a), ProfileSnapshot.from_row(row_b))
    return JSONResponse(camelize(comparison), status_code=200 if comparison.valid else 422)


@router.get("/candidates/{candidate_id}/profiles/{version}", response_model=ProfileResponse)
def get_profile_version(candidate_id: int, version: int, db: Session = Depends(get_db)) -> ProfileResponse:
    try:
        profile = Repository(db).get_profile_by_version(candidate_id, version)
    except HireflowError as exc:
        raise http_error(exc) from exc
    if not profile:
        raise HTTPException(status_code=404, detail="Profile version not found")
    return ProfileResponse.from_row(profile)


@router.post("/candidates/{candidate_id}/profiles/build", response_model=ProfileBuildResponse, status_code=201)
def build_profile(
    candidate_id: int,
    payload: ProfileBuildRequest | None = None,
    db: Session = Depends(get_db),
) -> ProfileBuildResponse:
    job_id = payload.job_id if payload else None
    try:
        profile = ProfileService(db).build_initial_profile(candidate_id, job_id=job_id)
    except HireflowError as exc:
        raise http_error(exc) from exc
    return ProfileBuildResponse(
        profile_id=profile.id,
        candidate_id=candidate_id,
        version=profile.version,
        stage=profile.stage,
        overall_score=parse_score(profile.overall_score),
    )


@router.post(
    "/candidates/{candidate_id}/profiles/update-from-interview/{interview_id}",
    response_model=ProfileBuildResponse,
    status_code=201,
)
def update_profile_from_interview(
    candidate_id: int,
    interview_id: int,
    db: Session = Depends(get_db),
) -> ProfileBuildResponse:
    try:
        profile = ProfileService(db).update_profile_with_interview(candidate_id, interview_id)
    except HireflowError as exc:
        raise http_error(exc) from exc
    return ProfileBuildResponse(
        profile_id=profile.id,
        candidate_id=candidate_id,
        version=profile.version,
        stage=profile.stage,
        overall_score=parse_score(profile.overall_score),
    )


@router.get("/candidates/{candidate_id}/organizational-fit/evolution")
def organizational_fit_evolution(candidate_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    try:
        return ProfileService(db).organizational_fit_evolution(candidate_id)
    except HireflowError as exc:
        raise http_error(exc) from exc


@ws_router.websocket("/ws")
async def collaboration_socket(websocket: WebSocket) -> None:
    await websocket.accept()
    hub = get_hub()
    session_id = await hub.connect(websocket.send_json)
    try:
        while True:
            await hub.handle(session_id, await websocket.receive_text())
    except WebSocketDisconnect as exc:
        logger.debug("Collaboration socket %s closed code=%s", session_id, exc.code)
    finally:
        await hub.disconnect(session_id)
