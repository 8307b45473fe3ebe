from __future__ import annotations

import json
import logging
import time
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from hireflow.config import Settings, get_settings
from hireflow.core.resume_parser import extract_education, extract_experience, extract_skills
from hireflow.core.snapshot import ProfileSnapshot, clamp_score, string_list, validate_profile_data
from hireflow.errors import ValidationError
from hireflow.llm.prompts import INITIAL_PROFILE_PROMPT, RESUME_ANALYSIS_PROMPT, UPDATED_PROFILE_PROMPT
from hireflow.llm.providers import ProviderPool
from hireflow.types import (
    CareerTrajectory,
    CulturalFit,
    CultureAssessment,
    Education,
    Experience,
    LeadershipAssessment,
    OrganizationalFit,
    Position,
    ProfileData,
    ProfileDraft,
    ResumeAnalysis,
    SoftSkill,
    TechnicalSkill,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class LLMRouter:
    def __init__(self, settings: Settings | None = None, pool: ProviderPool | None = None):
        self.settings = settings or get_settings()
        self.pool = pool or ProviderPool(self.settings)

    def analyze_resume(self, resume_text: str) -> ResumeAnalysis:
        prompt = RESUME_ANALYSIS_PROMPT.format(resume_text=resume_text[: self.settings.max_resume_chars])
        analysis = self._call_model(
            prompt=prompt,
            model=self.settings.openai_model_extractor,
            schema=ResumeAnalysis,
        )
        return analysis or heuristic_resume_analysis(resume_text)

    def generate_initial_profile(
        self,
        *,
        candidate: Any,
        analysis: ResumeAnalysis,
        job: Any = None,
    ) -> ProfileDraft:
        prompt = INITIAL_PROFILE_PROMPT.format(
            name=candidate.name,
            analysis_json=analysis.model_dump_json(indent=2),
            job_summary=job_summary(job),
            resume_text=(candidate.resume_text or "")[: self.settings.max_resume_chars],
        )
        draft = self._call_model(prompt=prompt, model=self.settings.openai_model_profile, schema=ProfileDraft)
        return draft or heuristic_initial_profile(candidate=candidate, analysis=analysis, job=job)

    def generate_updated_profile(
        self,
        *,
        candidate: Any,
        current: ProfileSnapshot,
        interview: Any,
        history: list[Any],
        job: Any = None,
    ) -> ProfileDraft:
        prompt = UPDATED_PROFILE_PROMPT.format(
            name=candidate.name,
            version=current.version,
            stage=current.stage,
            overall_score=current.overall_score,
            profile_json=json.dumps(current.profile_data, ensure_ascii=True, default=str),
            strengths=", ".join(string_list(current.strengths)),
            concerns=", ".join(string_list(current.concerns)),
            gaps=", ".join(string_list(current.gaps)),
            round=interview.round,
            interview_type=interview.type,
            rating=interview.rating if interview.rating is not None else "n/a",
            feedback=interview.feedback or "none",
            notes=interview.interviewer_notes or "none",
            recommendation=interview.recommendation or "none",
            history="\n".join(
                f"- round {item.round}: {item.type}, rating {item.rating or 'n/a'}/5, {item.recommendation or 'no recommendation'}"
                for item in history
            ),
            job_summary=job_summary(job),
        )
        draft = self._call_model(prompt=prompt, model=self.settings.openai_model_profile, schema=ProfileDraft)
        return draft or heuristic_updated_profile(current=current, interview=interview)

    def _call_model(self, *, prompt: str, model: str, schema: type[ModelT]) -> ModelT | None:
        if not self.pool.enabled:
            return None

        attempts = max(1, self.settings.llm_max_retries)
        for attempt in range(attempts):
            try:
                data = self.pool.openai().complete_json(model=model, prompt=prompt)
                return schema.model_validate(data)
            except (PydanticValidationError, ValueError) as exc:
                logger.warning("Invalid %s payload from model attempt=%s: %s", schema.__name__, attempt + 1, exc)
            except Exception as exc:
                logger.warning("LLM call failed attempt=%s/%s error=%s", attempt + 1, attempts, exc)
            if attempt < attempts - 1:
                time.sleep(attempt + 1)

        logger.warning("LLM unavailable for %s after %s attempts; using heuristic", schema.__name__, attempts)
        return None


def job_summary(job: Any) -> str:
    if job is None:
        return "none"
    requirements = ", ".join(job.requirements_json or [])
    return f"{job.title}\nrequirements: {requirements}\n{job.description or ''}".strip()


def heuristic_resume_analysis(resume_text: str) -> ResumeAnalysis:
    lines = [line.strip() for line in resume_text.splitlines() if line.strip()]
    skills = extract_skills(resume_text)
    years = extract_experience(resume_text)
    summary = " ".join(lines[:3])[:400]
    if not summary and skills:
        summary = f"Candidate with skills in {', '.join(skills[:5])}"

    return ResumeAnalysis(
        summary=summary,
        skills=skills,
        experience=years,
        education=extract_education(resume_text),
        strengths=skills[:3],
        weaknesses=[] if years else ["Years of experience not stated"],
    )


def _proficiency_for(years: float) -> str:
    if years >= 8:
        return "expert"
    if years >= 5:
        return "advanced"
    if years >= 2:
        return "intermediate"
    return "beginner"


def _progression_for(years: float) -> str:
    if years >= 8:
        return "senior"
    if years >= 3:
        return "mid-level"
    return "early career"


def heuristic_initial_profile(*, candidate: Any, analysis: ResumeAnalysis, job: Any = None) -> ProfileDraft:
    years = float(max(analysis.experience, candidate.experience_years or 0, 0))
    skills = analysis.skills or list(candidate.skills_json or [])

    requirements = list(job.requirements_json or []) if job is not None else []
    lowered = {skill.lower() for skill in skills}
    missing = [item for item in requirements if item.lower() not in lowered]
    match_ratio = 1 - len(missing) / len(requirements) if requirements else 0.5

    score = clamp_score(40 + 3 * min(len(skills), 10) + 2 * min(years, 10) + 10 * match_ratio - 5)

    data = ProfileData(
        technical_skills=[
            TechnicalSkill(skill=skill, proficiency=_proficiency_for(years), evidence_source="resume")
            for skill in skills
        ],
        soft_skills=[SoftSkill(skill=item) for item in analysis.strengths if item not in skills][:5],
        experience=Experience(
            total_years=years,
            relevant_years=round(years * match_ratio, 1) if requirements else years,
            positions=[Position(title=candidate.position)] if candidate.position else [],
        ),
        education=Education(level=analysis.education or candidate.education or "unspecified", field="unspecified"),
        cultural_fit=CulturalFit(work_style="unknown"),
        career_trajectory=CareerTrajectory(progression=_progression_for(years), stability_score=50),
        organizational_fit=OrganizationalFit(
            culture_assessment=CultureAssessment(overall_score=60, confidence="low"),
            leadership_assessment=LeadershipAssessment(
                overall_score=clamp_score(30 + years * 5),
                readiness_for_next_level=clamp_score(20 + years * 5),
            ),
        ),
    )

    gaps = [f"No evidence for {item}" for item in missing]
    gaps.append("No interview evidence yet")
    data_sources = ["resume"]
    if analysis.education:
        data_sources.append("education")

    return ProfileDraft(
        profile_data=data,
        overall_score=round(score, 1),
        data_sources=data_sources,
        gaps=gaps,
        strengths=analysis.strengths or skills[:3],
        concerns=analysis.weaknesses,
        ai_summary=analysis.summary or f"{candidate.name}: profile built from resume screening",
    )


def heuristic_updated_profile(*, current: ProfileSnapshot, interview: Any) -> ProfileDraft:
    data, errors = validate_profile_data(current.profile_data)
    if data is None:
        raise ValidationError(
            f"latest profile version {current.version} has invalid data: {'; '.join(errors[:3])}"
        )

    adjustment = (interview.rating - 3) * 5 if interview.rating is not None else 0
    score = clamp_score(clamp_score(current.overall_score) + adjustment)

    fit = data.organizational_fit or OrganizationalFit()
    if fit.culture_assessment is not None:
        culture = fit.culture_assessment
        fit.culture_assessment = culture.model_copy(
            update={
                "overall_score": clamp_score(culture.overall_score + adjustment),
                "confidence": "medium",
            }
        )
    data.organizational_fit = fit

    strengths = string_list(current.strengths)
    concerns = string_list(current.concerns)
    gaps = [gap for gap in string_list(current.gaps) if gap != "No interview evidence yet"]
    if interview.rating is not None and interview.rating >= 4:
        strengths.append(f"Strong interview round {interview.round}")
    if interview.rating is not None and interview.rating <= 2:
        concerns.append(f"Weak interview round {interview.round}")

    summary = current.ai_summary or "Profile"
    if interview.feedback:
        summary = f"{summary} Round {interview.round}: {interview.feedback}"

    return ProfileDraft(
        profile_data=data,
        overall_score=round(score, 1),
        data_sources=string_list(current.data_sources),
        gaps=gaps,
        strengths=strengths,
        concerns=concerns,
        ai_summary=summary,
    )
