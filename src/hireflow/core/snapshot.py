from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from hireflow.types import ProfileData

logger = logging.getLogger(__name__)

MIN_SCORE = 0.0
MAX_SCORE = 100.0

_ROUND_STAGE = re.compile(r"^(?:after_)?interview_(\d+)$")


@dataclass(slots=True)
class ProfileSnapshot:
    """Read-side view of one stored profile version; raw fields are kept untrusted."""

    id: int | str
    version: int
    stage: str = "resume"
    profile_data: Any = None
    overall_score: Any = None
    data_sources: Any = None
    gaps: Any = None
    strengths: Any = None
    concerns: Any = None
    ai_summary: str = ""
    job_id: int | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> ProfileSnapshot:
        return cls(
            id=row.id,
            version=row.version,
            stage=row.stage,
            profile_data=row.profile_data_json,
            overall_score=row.overall_score,
            data_sources=row.data_sources_json,
            gaps=row.gaps_json,
            strengths=row.strengths_json,
            concerns=row.concerns_json,
            ai_summary=row.ai_summary or "",
            job_id=row.job_id,
            created_at=row.created_at,
        )


def parse_score(raw: Any) -> float | None:
    """Return a finite float or None when the value cannot be read as a number."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(value):
        return None
    return value


def clamp_score(raw: Any, *, label: str = "score", warnings: list[str] | None = None) -> float:
    value = parse_score(raw)
    if value is None:
        if raw is not None:
            logger.warning("Invalid %s %r; treating as 0", label, raw)
            if warnings is not None:
                warnings.append(f"{label}: invalid value {raw!r} treated as 0")
        return MIN_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, value))


def validate_profile_data(raw: Any) -> tuple[ProfileData | None, list[str]]:
    if not isinstance(raw, dict):
        return None, ["profile data must be an object"]
    try:
        return ProfileData.model_validate(raw), []
    except PydanticValidationError as exc:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]
        return None, errors


def string_list(value: Any) -> list[str]:
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return list(value)
    return []


def stage_label(stage: str) -> str:
    if stage == "resume":
        return "Resume screening"
    if stage == "final_evaluation":
        return "Final evaluation"
    match = _ROUND_STAGE.match(stage or "")
    if match:
        return f"After interview round {match.group(1)}"
    return stage
