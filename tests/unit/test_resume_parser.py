from __future__ import annotations

import io

import pytest
from pypdf import PdfWriter

from hireflow.core.resume_parser import (
    UnsupportedResumeType,
    extract_skills,
    name_from_filename,
    parse_resume,
    resolve_content_type,
)
from hireflow.errors import ValidationError

SAMPLE = """Ada Lovelace
ada@example.com | (555) 123-4567
Senior engineer with 7 years of experience building Python and Go services on PostgreSQL and Docker.
Bachelor of Science in Mathematics, University of London
"""


def test_parse_text_resume_extracts_contact_skills_and_history() -> None:
    parsed = parse_resume(SAMPLE.encode("utf-8"), filename="ada.txt", content_type="text/plain")

    assert parsed.contact.name == "Ada Lovelace"
    assert parsed.contact.email == "ada@example.com"
    assert parsed.contact.phone == "(555) 123-4567"
    assert parsed.skills == ["Python", "Go", "PostgreSQL", "Docker"]
    assert parsed.experience_years == 7
    assert parsed.education.startswith("Bachelor of Science in Mathematics")
    assert parsed.metadata == {"filename": "ada.txt", "content_type": "text/plain"}


def test_short_skill_names_need_word_boundaries() -> None:
    assert extract_skills("Worked at Google on algorithms in PostgreSQL") == ["PostgreSQL"]
    assert extract_skills("Go, SQL and Git daily") == ["Go", "SQL", "Git"]


def test_name_falls_back_to_file_name() -> None:
    parsed = parse_resume(b"Experience: 5 years\nLots of SQL", filename="jane_doe-resume.txt")

    assert parsed.contact.name == "jane doe resume"
    assert parsed.experience_years == 5
    assert name_from_filename("") == "resume"


def test_content_type_is_inferred_from_suffix_when_missing() -> None:
    assert resolve_content_type("cv.PDF", None) == "application/pdf"
    assert resolve_content_type("cv.txt", "application/octet-stream") == "text/plain"


def test_unsupported_types_are_rejected() -> None:
    with pytest.raises(UnsupportedResumeType) as excinfo:
        parse_resume(b"PK\x03\x04", filename="cv.docx", content_type="application/msword")
    assert "application/msword" in str(excinfo.value)
    assert isinstance(excinfo.value, ValidationError)


def test_empty_upload_is_a_validation_error() -> None:
    with pytest.raises(ValidationError, match="empty"):
        parse_resume(b"", filename="blank.txt")


def test_invalid_utf8_text_is_a_validation_error() -> None:
    with pytest.raises(ValidationError, match="UTF-8"):
        parse_resume(b"\xff\xfe\xfa", filename="broken.txt")


def test_pdf_without_text_layer_is_rejected() -> None:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)

    with pytest.raises(ValidationError, match="no text found"):
        parse_resume(buffer.getvalue(), filename="scan.pdf")


def test_corrupt_pdf_is_a_validation_error() -> None:
    with pytest.raises(ValidationError, match="unreadable PDF"):
        parse_resume(b"definitely not a pdf", filename="cv.pdf", content_type="application/pdf")
