from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from hireflow.errors import ValidationError

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = {
    "application/pdf": "pdf",
    "text/plain": "text",
}
SUFFIX_TYPES = {
    ".pdf": "application/pdf",
    ".txt": "text/plain",
}

SKILL_KEYWORDS = [
    "JavaScript", "TypeScript", "React", "Vue", "Angular", "Node.js",
    "Python", "Java", "C++", "C#", "Go", "Rust", "PHP",
    "HTML", "CSS", "SASS", "Tailwind",
    "SQL", "MySQL", "PostgreSQL", "MongoDB", "Redis",
    "Docker", "Kubernetes", "AWS", "Azure", "GCP",
    "Git", "Jenkins", "CI/CD",
    "REST", "GraphQL", "Microservices",
    "Machine Learning", "Data Science", "Analytics",
    "Project Management", "Agile", "Scrum", "Kanban",
]

_EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE_PATTERN = re.compile(r"(\+?1?[-.\s]?)?\(?(\d{3})\)?[-.\s]?(\d{3})[-.\s]?(\d{4})")
_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z\s.'-]*$")
_EXPERIENCE_PATTERNS = [
    re.compile(r"(\d+)\+?\s*years?\s*(?:of\s+)?experience", re.IGNORECASE),
    re.compile(r"(\d+)\+?\s*yrs?\s*experience", re.IGNORECASE),
    re.compile(r"experience:\s*(\d+)\+?\s*years?", re.IGNORECASE),
    re.compile(r"(\d+)\+?\s*years?\s*in\b", re.IGNORECASE),
]
_EDUCATION_PATTERN = re.compile(
    r"\b(Ph\.?D|Doctorate|Master(?:'s)?|M\.?Sc|MBA|Bachelor(?:'s)?|B\.?Sc|B\.?A|Associate)\b[^\n]*",
    re.IGNORECASE,
)


@dataclass(slots=True)
class ContactInfo:
    name: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass(slots=True)
class ParsedResume:
    text: str
    pages: int = 1
    contact: ContactInfo = field(default_factory=ContactInfo)
    skills: list[str] = field(default_factory=list)
    experience_years: int = 0
    education: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


class UnsupportedResumeType(ValidationError):
    def __init__(self, content_type: str):
        super().__init__(f"Unsupported file type: {content_type or 'unknown'}")
        self.content_type = content_type


def resolve_content_type(filename: str, content_type: str | None) -> str:
    """Trust an explicit supported type, otherwise infer from the file suffix."""
    if content_type in SUPPORTED_TYPES:
        return content_type
    guessed = SUFFIX_TYPES.get(Path(filename or "").suffix.lower())
    if guessed:
        return guessed
    raise UnsupportedResumeType(content_type or Path(filename or "").suffix)


def extract_text(data: bytes, content_type: str) -> tuple[str, int]:
    kind = SUPPORTED_TYPES.get(content_type)
    if kind is None:
        raise UnsupportedResumeType(content_type)

    if kind == "text":
        try:
            return data.decode("utf-8"), 1
        except UnicodeDecodeError as exc:
            raise ValidationError("Failed to parse resume file: text is not valid UTF-8") from exc

    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError, OSError) as exc:
        logger.warning("Failed to read PDF resume: %s", exc)
        raise ValidationError("Failed to parse resume file: unreadable PDF") from exc
    return "\n".join(pages), len(pages)


def extract_contact_info(text: str) -> ContactInfo:
    email = _EMAIL_PATTERN.search(text)
    phone = _PHONE_PATTERN.search(text)

    name = None
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if lines and len(lines[0]) < 50 and _NAME_PATTERN.match(lines[0]):
        name = lines[0]

    return ContactInfo(
        name=name,
        email=email.group(0) if email else None,
        phone=phone.group(0).strip() if phone else None,
    )


def extract_skills(text: str) -> list[str]:
    lowered = text.lower()
    found: list[str] = []
    for skill in SKILL_KEYWORDS:
        needle = skill.lower()
        # short names like "Go" or "Git" need word boundaries to avoid false hits
        if len(needle) <= 3 and needle.isalpha():
            if re.search(rf"\b{re.escape(needle)}\b", lowered):
                found.append(skill)
        elif needle in lowered:
            found.append(skill)
    return found


def extract_experience(text: str) -> int:
    for pattern in _EXPERIENCE_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return 0


def extract_education(text: str) -> str:
    match = _EDUCATION_PATTERN.search(text)
    return match.group(0).strip()[:200] if match else ""


def name_from_filename(filename: str) -> str:
    stem = Path(filename or "resume").stem
    return re.sub(r"[_-]+", " ", stem).strip() or "Unnamed candidate"


def parse_resume(data: bytes, *, filename: str, content_type: str | None = None) -> ParsedResume:
    if not data:
        raise ValidationError(f"Failed to parse resume file: {filename or 'upload'} is empty")

    resolved = resolve_content_type(filename, content_type)
    text, pages = extract_text(data, resolved)
    if not text.strip():
        raise ValidationError(f"Failed to parse resume file: no text found in {filename}")

    contact = extract_contact_info(text)
    if contact.name is None:
        contact.name = name_from_filename(filename)

    return ParsedResume(
        text=text,
        pages=pages,
        contact=contact,
        skills=extract_skills(text),
        experience_years=extract_experience(text),
        education=extract_education(text),
        metadata={"filename": filename, "content_type": resolved},
    )
