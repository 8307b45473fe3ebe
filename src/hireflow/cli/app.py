from __future__ import annotations

import asyncio
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

import typer
import uvicorn

from hireflow.api.app import create_app
from hireflow.api.schemas import camelize
from hireflow.client.api import HireflowClient
from hireflow.config import get_settings
from hireflow.core.batch import (
    BatchItemStatus,
    BatchOrchestrator,
    BatchReport,
    batch_build_profiles,
    bulk_upload_resumes,
)
from hireflow.core.comparator import compare_profiles
from hireflow.core.profile_service import ProfileService
from hireflow.core.resume_parser import SUFFIX_TYPES
from hireflow.core.snapshot import ProfileSnapshot, parse_score
from hireflow.core.timeline import build_timeline
from hireflow.db.init import init_database
from hireflow.db.repositories import Repository
from hireflow.db.session import SessionLocal
from hireflow.errors import HireflowError
from hireflow.logging_config import configure_logging

app = typer.Typer(help="hireflow CLI")
candidate_app = typer.Typer(help="Manage candidates")
job_app = typer.Typer(help="Manage jobs")
profile_app = typer.Typer(help="Build and inspect versioned candidate profiles")
batch_app = typer.Typer(help="Bounded-concurrency batch runs against a running server")

app.add_typer(candidate_app, name="candidate")
app.add_typer(job_app, name="job")
app.add_typer(profile_app, name="profile")
app.add_typer(batch_app, name="batch")

_INITIALIZED = False


def ensure_initialized() -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    init_database()
    _INITIALIZED = True


def _echo(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _fail(exc: HireflowError) -> None:
    typer.echo(f"error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command("init")
def init_cmd() -> None:
    """Initialize database and data directories."""
    configure_logging()
    result = init_database()
    _echo({"ok": True, **result})


@candidate_app.command("create")
def candidate_create(
    name: str = typer.Option(..., "--name"),
    email: str = typer.Option("", "--email"),
    position: str = typer.Option("", "--position"),
    skills: str = typer.Option("", "--skills", help="Comma-separated skills"),
    experience_years: int = typer.Option(0, "--experience-years"),
    summary: str = typer.Option("", "--summary"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        candidate = Repository(db).create_candidate(
            name,
            email=email,
            position=position,
            skills_json=[item.strip() for item in skills.split(",") if item.strip()],
            experience_years=experience_years,
            ai_summary=summary,
        )
        _echo({"id": candidate.id, "name": candidate.name})


@candidate_app.command("ingest")
def candidate_ingest(file: Path = typer.Option(..., "--file", exists=True, readable=True)) -> None:
    """Parse a local resume file and create a candidate from it."""
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            candidate = ProfileService(db).ingest_resume(file.read_bytes(), filename=file.name)
        except HireflowError as exc:
            _fail(exc)
        _echo({"id": candidate.id, "name": candidate.name, "skills": candidate.skills_json})


@candidate_app.command("list")
def candidate_list(limit: int = typer.Option(50, "--limit")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        rows = Repository(db).list_candidates(limit=limit)
        _echo(
            [
                {"id": row.id, "name": row.name, "status": row.status, "skills": row.skills_json}
                for row in rows
            ]
        )


@job_app.command("create")
def job_create(
    title: str = typer.Option(..., "--title"),
    department: str = typer.Option("", "--department"),
    requirements: str = typer.Option("", "--requirements", help="Comma-separated requirements"),
    description: str = typer.Option("", "--description"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        job = Repository(db).create_job(
            title,
            department=department,
            description=description,
            requirements_json=[item.strip() for item in requirements.split(",") if item.strip()],
        )
        _echo({"id": job.id, "title": job.title})


@job_app.command("list")
def job_list(limit: int = typer.Option(20, "--limit")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        jobs = Repository(db).list_jobs(limit=limit)
        _echo(
            [
                {
                    "id": job.id,
                    "title": job.title,
                    "department": job.department,
                    "requirements": job.requirements_json,
                    "created_at": job.created_at.isoformat() if job.created_at else None,
                }
                for job in jobs
            ]
        )


@profile_app.command("build")
def profile_build(
    candidate_id: int = typer.Option(..., "--candidate-id"),
    job_id: int | None = typer.Option(None, "--job-id"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            profile = ProfileService(db).build_initial_profile(candidate_id, job_id=job_id)
        except HireflowError as exc:
            _fail(exc)
        _echo({"profileId": profile.id, "version": profile.version, "overallScore": parse_score(profile.overall_score)})


@profile_app.command("update")
def profile_update(
    candidate_id: int = typer.Option(..., "--candidate-id"),
    interview_id: int = typer.Option(..., "--interview-id"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            profile = ProfileService(db).update_profile_with_interview(candidate_id, interview_id)
        except HireflowError as exc:
            _fail(exc)
        _echo({"profileId": profile.id, "version": profile.version, "stage": profile.stage})


@profile_app.command("list")
def profile_list(candidate_id: int = typer.Option(..., "--candidate-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        rows = Repository(db).list_profiles(candidate_id)
        _echo(
            [
                {
                    "id": row.id,
                    "version": row.version,
                    "stage": row.stage,
                    "overallScore": parse_score(row.overall_score),
                    "created_at": row.created_at.isoformat() if row.created_at else None,
                }
                for row in rows
            ]
        )


@profile_app.command("timeline")
def profile_timeline(candidate_id: int = typer.Option(..., "--candidate-id")) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        rows = Repository(db).list_profiles(candidate_id)
        timeline = build_timeline(ProfileSnapshot.from_row(row) for row in rows)
        if timeline.empty:
            typer.echo("No profile versions yet.")
            return
        for entry in timeline.entries:
            delta = ""
            if entry.score_delta is not None:
                delta = f" ({entry.score_delta.delta:+.1f}, {entry.score_delta.trend})"
            marker = " *latest*" if entry.is_latest else ""
            typer.echo(f"v{entry.version}  {entry.stage_label:<28} {entry.score:5.1f}{delta}{marker}")
        for warning in timeline.warnings:
            typer.echo(f"warning: {warning}", err=True)


@profile_app.command("compare")
def profile_compare(
    candidate_id: int = typer.Option(..., "--candidate-id"),
    version_a: int = typer.Option(..., "--version-a"),
    version_b: int = typer.Option(..., "--version-b"),
) -> None:
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        repo = Repository(db)
        try:
            rows = [repo.get_profile_by_version(candidate_id, version) for version in (version_a, version_b)]
        except HireflowError as exc:
            _fail(exc)
        if any(row is None for row in rows):
            typer.echo("error: profile version not found", err=True)
            raise typer.Exit(code=1)
        comparison = compare_profiles(*(ProfileSnapshot.from_row(row) for row in rows))
        _echo(camelize(comparison))
        if not comparison.valid:
            raise typer.Exit(code=2)


@profile_app.command("fit")
def profile_fit(candidate_id: int = typer.Option(..., "--candidate-id")) -> None:
    """Organizational-fit evolution across profile versions."""
    configure_logging()
    ensure_initialized()
    with SessionLocal() as db:
        try:
            _echo(ProfileService(db).organizational_fit_evolution(candidate_id))
        except HireflowError as exc:
            _fail(exc)


def _print_status(status: BatchItemStatus) -> None:
    suffix = f" - {status.error}" if status.error else ""
    typer.echo(f"[{status.status:>10}] {status.label}{suffix}", err=True)


def _report_payload(report: BatchReport) -> dict[str, Any]:
    return {
        "stats": asdict(report.stats),
        "progress": round(report.progress, 1),
        "elapsedSec": round(report.elapsed_sec, 3),
        "failed": [
            {"key": status.key, "label": status.label, "error": status.error}
            for status in report.statuses
            if status.status == "failed"
        ],
    }


async def _run_batch(orchestrator: BatchOrchestrator[Any], retry_failed: int) -> dict[str, Any]:
    report = await orchestrator.run()
    runs = [_report_payload(report)]
    for _ in range(retry_failed):
        if not report.stats.failed:
            break
        orchestrator = orchestrator.retry_failed()
        report = await orchestrator.run()
        runs.append(_report_payload(report))
    return {"runs": runs, "final": runs[-1]}


@batch_app.command("build-profiles")
def batch_build_profiles_cmd(
    candidate_ids: list[int] = typer.Option(..., "--candidate-id"),
    job_id: int | None = typer.Option(None, "--job-id"),
    concurrency: int | None = typer.Option(None, "--concurrency", min=1),
    retry_failed: int = typer.Option(0, "--retry-failed", min=0, help="Re-run failed items up to N times"),
    base_url: str | None = typer.Option(None, "--base-url"),
) -> None:
    configure_logging()
    settings = get_settings()

    async def main() -> dict[str, Any]:
        async with HireflowClient(base_url) as client:
            orchestrator = batch_build_profiles(
                client,
                candidate_ids,
                job_id=job_id,
                concurrency=concurrency or settings.batch_default_concurrency,
                on_update=_print_status,
            )
            return await _run_batch(orchestrator, retry_failed)

    _echo(asyncio.run(main()))


@batch_app.command("upload")
def batch_upload_cmd(
    directory: Path = typer.Option(..., "--dir", exists=True, file_okay=False, readable=True),
    concurrency: int | None = typer.Option(None, "--concurrency", min=1),
    retry_failed: int = typer.Option(0, "--retry-failed", min=0),
    base_url: str | None = typer.Option(None, "--base-url"),
) -> None:
    configure_logging()
    settings = get_settings()
    paths = sorted(path for path in directory.iterdir() if path.suffix.lower() in SUFFIX_TYPES)
    if not paths:
        typer.echo(f"No .pdf or .txt resumes in {directory}", err=True)
        raise typer.Exit(code=1)

    async def main() -> dict[str, Any]:
        async with HireflowClient(base_url) as client:
            orchestrator = bulk_upload_resumes(
                client,
                paths,
                concurrency=concurrency or settings.batch_default_concurrency,
                on_update=_print_status,
            )
            return await _run_batch(orchestrator, retry_failed)

    _echo(asyncio.run(main()))


@app.command("serve")
def serve(
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
) -> None:
    configure_logging()
    ensure_initialized()
    settings = get_settings()
    app_instance = create_app()
    uvicorn.run(app_instance, host=host or settings.app_host, port=port or settings.app_port)
