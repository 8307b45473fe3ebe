from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from hireflow.api.app import create_app
from hireflow.config import get_settings

RESUME = b"""Grace Hopper
grace@example.com
Compiler engineer with 12 years of experience in Python, SQL and Kubernetes.
Ph.D. in Mathematics, Yale University
"""


def test_text_resume_creates_screening_candidate() -> None:
    client = TestClient(create_app())

    resp = client.post(
        "/api/candidates/bulk-upload",
        files=[("resumes", ("grace.txt", RESUME, "text/plain"))],
    )

    assert resp.status_code == 201
    candidate = resp.json()["candidate"]
    assert candidate["name"] == "Grace Hopper"
    assert candidate["email"] == "grace@example.com"
    assert candidate["status"] == "screening"
    assert candidate["source"] == "bulk_upload"
    assert candidate["experienceYears"] == 12
    assert candidate["skills"] == ["Python", "SQL", "Kubernetes"]
    assert Path(candidate["resumePath"]).read_bytes() == RESUME

    listed = client.get("/api/candidates").json()
    assert [item["id"] for item in listed] == [candidate["id"]]


def test_partial_batch_reports_per_file_errors() -> None:
    client = TestClient(create_app())

    resp = client.post(
        "/api/candidates/bulk-upload",
        files=[
            ("resumes", ("grace.txt", RESUME, "text/plain")),
            ("resumes", ("notes.docx", b"PK\x03\x04", "application/vnd.openxmlformats-officedocument")),
        ],
    )

    assert resp.status_code == 201
    body = resp.json()
    assert len(body["candidates"]) == 1
    assert body["errors"][0]["filename"] == "notes.docx"
    assert "Unsupported file type" in body["errors"][0]["error"]


def test_no_files_is_a_bad_request() -> None:
    client = TestClient(create_app())
    resp = client.post("/api/candidates/bulk-upload")
    assert resp.status_code == 400


def test_unsupported_type_alone_is_415() -> None:
    client = TestClient(create_app())
    resp = client.post(
        "/api/candidates/bulk-upload",
        files=[("resumes", ("cv.docx", b"PK\x03\x04", "application/msword"))],
    )
    assert resp.status_code == 415
    assert client.get("/api/candidates").json() == []


def test_empty_file_is_a_bad_request() -> None:
    client = TestClient(create_app())
    resp = client.post(
        "/api/candidates/bulk-upload",
        files=[("resumes", ("blank.txt", b"", "text/plain"))],
    )
    assert resp.status_code == 400
    assert "empty" in resp.json()["detail"]


def test_oversized_file_is_rejected(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "max_upload_bytes", 16)
    client = TestClient(create_app())
    resp = client.post(
        "/api/candidates/bulk-upload",
        files=[("resumes", ("grace.txt", RESUME, "text/plain"))],
    )
    assert resp.status_code == 400
    assert "exceeds 16 bytes" in resp.json()["detail"]
