"""Pure comparison functions over two profile versions.

Nothing here touches the database. Every score is read through
``clamp_score`` so unparseable input compares as 0 instead of poisoning the
result with NaN, and schema-invalid payloads are reported instead of being
partially compared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from hireflow.core.snapshot import ProfileSnapshot, clamp_score, string_list, validate_profile_data
from hireflow.types import PROFICIENCY_RANK, OrganizationalFit, ProfileData

logger = logging.getLogger(__name__)

SCORE_STABILITY_THRESHOLD = 0.5

Trend = Literal["up", "down", "stable"]
SkillChange = Literal["added", "improved", "degraded", "removed", "unchanged"]

CHANGE_PRIORITY: dict[str, int] = {
    "added": 0,
    "improved": 1,
    "degraded": 2,
    "removed": 3,
    "unchanged": 4,
}


@dataclass(slots=True)
class ScoreComparison:
    score_a: float
    score_b: float
    delta: float
    percentage: str
    trend: Trend


@dataclass(slots=True)
class SkillComparison:
    skill: str
    change: SkillChange
    proficiency_a: str | None = None
    proficiency_b: str | None = None


@dataclass(slots=True)
class ArrayDiff:
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ExperienceComparison:
    total_years: ScoreComparison
    relevant_years: ScoreComparison
    positions: ArrayDiff


@dataclass(slots=True)
class OrganizationalFitComparison:
    culture: ScoreComparison | None = None
    leadership: ScoreComparison | None = None
    readiness: ScoreComparison | None = None


@dataclass(slots=True)
class ProfileComparison:
    valid: bool
    version_a: int
    version_b: int
    invalid_versions: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    overall: ScoreComparison | None = None
    technical_skills: list[SkillComparison] = field(default_factory=list)
    soft_skills: ArrayDiff | None = None
    strengths: ArrayDiff | None = None
    concerns: ArrayDiff | None = None
    gaps: ArrayDiff | None = None
    data_sources: ArrayDiff | None = None
    experience: ExperienceComparison | None = None
    organizational_fit: OrganizationalFitComparison | None = None
    warnings: list[str] = field(default_factory=list)


def compare_scores(score_a: Any, score_b: Any, *, warnings: list[str] | None = None) -> ScoreComparison:
    a = clamp_score(score_a, label="score A", warnings=warnings)
    b = clamp_score(score_b, label="score B", warnings=warnings)
    delta = b - a

    if a == 0:
        percentage = "0.0%"
    else:
        percentage = f"{abs(delta) / a * 100:.1f}%"

    trend: Trend = "stable"
    if abs(delta) >= SCORE_STABILITY_THRESHOLD:
        trend = "up" if delta > 0 else "down"

    return ScoreComparison(score_a=a, score_b=b, delta=round(delta, 4), percentage=percentage, trend=trend)


def _skill_fields(item: Any) -> tuple[str, str] | None:
    if isinstance(item, dict):
        name, proficiency = item.get("skill"), item.get("proficiency")
    else:
        name, proficiency = getattr(item, "skill", None), getattr(item, "proficiency", None)
    if not isinstance(name, str) or not name:
        return None
    return name, proficiency if isinstance(proficiency, str) else ""


def compare_technical_skills(skills_a: Any, skills_b: Any) -> list[SkillComparison]:
    items_a = skills_a if isinstance(skills_a, list) else []
    items_b = skills_b if isinstance(skills_b, list) else []

    by_name: dict[str, SkillComparison] = {}
    for item in items_a:
        fields = _skill_fields(item)
        if fields is None:
            continue
        name, proficiency = fields
        by_name[name] = SkillComparison(skill=name, change="removed", proficiency_a=proficiency)

    for item in items_b:
        fields = _skill_fields(item)
        if fields is None:
            continue
        name, proficiency = fields
        existing = by_name.get(name)
        if existing is None:
            by_name[name] = SkillComparison(skill=name, change="added", proficiency_b=proficiency)
            continue

        rank_a = PROFICIENCY_RANK.get(existing.proficiency_a or "", 0)
        rank_b = PROFICIENCY_RANK.get(proficiency, 0)
        if rank_b > rank_a:
            existing.change = "improved"
        elif rank_b < rank_a:
            existing.change = "degraded"
        else:
            existing.change = "unchanged"
        existing.proficiency_b = proficiency

    return sorted(by_name.values(), key=lambda item: CHANGE_PRIORITY[item.change])


def compare_array_fields(array_a: Any, array_b: Any) -> ArrayDiff:
    items_a = string_list(array_a)
    items_b = string_list(array_b)
    set_a = set(items_a)
    set_b = set(items_b)

    return ArrayDiff(
        added=[item for item in items_b if item not in set_a],
        removed=[item for item in items_a if item not in set_b],
        unchanged=[item for item in items_a if item in set_b],
    )


def compare_organizational_fit(
    fit_a: OrganizationalFit | None,
    fit_b: OrganizationalFit | None,
) -> OrganizationalFitComparison:
    result = OrganizationalFitComparison()
    if fit_a is None or fit_b is None:
        return result

    if fit_a.culture_assessment and fit_b.culture_assessment:
        result.culture = compare_scores(
            fit_a.culture_assessment.overall_score,
            fit_b.culture_assessment.overall_score,
        )

    leadership_a = fit_a.leadership_assessment
    leadership_b = fit_b.leadership_assessment
    if leadership_a and leadership_b:
        result.leadership = compare_scores(leadership_a.overall_score, leadership_b.overall_score)
        if leadership_a.readiness_for_next_level is not None and leadership_b.readiness_for_next_level is not None:
            result.readiness = compare_scores(
                leadership_a.readiness_for_next_level,
                leadership_b.readiness_for_next_level,
            )
    return result


def _compare_experience(data_a: ProfileData, data_b: ProfileData) -> ExperienceComparison:
    return ExperienceComparison(
        total_years=compare_scores(data_a.experience.total_years, data_b.experience.total_years),
        relevant_years=compare_scores(data_a.experience.relevant_years, data_b.experience.relevant_years),
        positions=compare_array_fields(
            [position.title for position in data_a.experience.positions],
            [position.title for position in data_b.experience.positions],
        ),
    )


def compare_profiles(profile_a: ProfileSnapshot, profile_b: ProfileSnapshot) -> ProfileComparison:
    data_a, errors_a = validate_profile_data(profile_a.profile_data)
    data_b, errors_b = validate_profile_data(profile_b.profile_data)

    if data_a is None or data_b is None:
        invalid: list[int] = []
        errors: list[str] = []
        for profile, data, problems in ((profile_a, data_a, errors_a), (profile_b, data_b, errors_b)):
            if data is None:
                invalid.append(profile.version)
                errors.extend(f"version {profile.version}: {problem}" for problem in problems)
        logger.warning(
            "Refusing to compare profiles with invalid data versions=%s",
            invalid,
        )
        return ProfileComparison(
            valid=False,
            version_a=profile_a.version,
            version_b=profile_b.version,
            invalid_versions=invalid,
            errors=errors,
        )

    warnings: list[str] = []
    return ProfileComparison(
        valid=True,
        version_a=profile_a.version,
        version_b=profile_b.version,
        overall=compare_scores(profile_a.overall_score, profile_b.overall_score, warnings=warnings),
        technical_skills=compare_technical_skills(data_a.technical_skills, data_b.technical_skills),
        soft_skills=compare_array_fields(
            [skill.skill for skill in data_a.soft_skills],
            [skill.skill for skill in data_b.soft_skills],
        ),
        strengths=compare_array_fields(profile_a.strengths, profile_b.strengths),
        concerns=compare_array_fields(profile_a.concerns, profile_b.concerns),
        gaps=compare_array_fields(profile_a.gaps, profile_b.gaps),
        data_sources=compare_array_fields(profile_a.data_sources, profile_b.data_sources),
        experience=_compare_experience(data_a, data_b),
        organizational_fit=compare_organizational_fit(data_a.organizational_fit, data_b.organizational_fit),
        warnings=warnings,
    )
