from __future__ import annotations

from types import SimpleNamespace

from hireflow.core.comparator import (
    compare_array_fields,
    compare_profiles,
    compare_scores,
    compare_technical_skills,
)
from hireflow.core.snapshot import ProfileSnapshot


def _snapshot(version: int, data: object, score: object = 70, **extra) -> ProfileSnapshot:
    return ProfileSnapshot(id=version, version=version, profile_data=data, overall_score=score, **extra)


def test_score_trend_follows_delta_sign_and_stability_threshold() -> None:
    assert compare_scores(50, 70).trend == "up"
    assert compare_scores(70, 50).trend == "down"

    near = compare_scores(70, 70.2)
    assert near.trend == "stable"
    assert near.delta == 0.2

    assert compare_scores(70, 70.5).trend == "up"


def test_score_percentage_is_relative_to_first_score() -> None:
    assert compare_scores(50, 70).percentage == "40.0%"
    assert compare_scores(80, 60).percentage == "25.0%"


def test_zero_baseline_never_divides() -> None:
    result = compare_scores(0, 10)
    assert result.percentage == "0.0%"
    assert result.delta == 10
    assert result.trend == "up"


def test_invalid_scores_read_as_zero_and_are_flagged() -> None:
    warnings: list[str] = []
    result = compare_scores("n/a", "150", warnings=warnings)

    assert result.score_a == 0
    assert result.score_b == 100
    assert result.percentage == "0.0%"
    assert len(warnings) == 1
    assert "n/a" in warnings[0]


def test_skill_diff_reports_improved_and_added_only() -> None:
    skills_a = [{"skill": "Go", "proficiency": "intermediate"}]
    skills_b = [
        {"skill": "Go", "proficiency": "expert"},
        {"skill": "Rust", "proficiency": "beginner"},
    ]

    result = compare_technical_skills(skills_a, skills_b)

    assert [(item.skill, item.change) for item in result] == [("Rust", "added"), ("Go", "improved")]
    assert result[1].proficiency_a == "intermediate"
    assert result[1].proficiency_b == "expert"


def test_skill_diff_orders_by_change_class_and_keeps_input_order_within_class() -> None:
    skills_a = [
        {"skill": "Java", "proficiency": "expert"},
        {"skill": "PHP", "proficiency": "beginner"},
        {"skill": "SQL", "proficiency": "advanced"},
        {"skill": "Perl", "proficiency": "beginner"},
    ]
    skills_b = [
        SimpleNamespace(skill="SQL", proficiency="advanced"),
        SimpleNamespace(skill="Java", proficiency="intermediate"),
        SimpleNamespace(skill="Go", proficiency="beginner"),
        SimpleNamespace(skill="Rust", proficiency="beginner"),
    ]

    result = compare_technical_skills(skills_a, skills_b)

    assert [(item.skill, item.change) for item in result] == [
        ("Go", "added"),
        ("Rust", "added"),
        ("Java", "degraded"),
        ("PHP", "removed"),
        ("Perl", "removed"),
        ("SQL", "unchanged"),
    ]


def test_unknown_proficiency_ranks_below_beginner() -> None:
    result = compare_technical_skills(
        [{"skill": "Go", "proficiency": "guru"}],
        [{"skill": "Go", "proficiency": "beginner"}],
    )
    assert result[0].change == "improved"


def test_skill_diff_treats_non_list_input_as_empty() -> None:
    result = compare_technical_skills(None, [{"skill": "Go", "proficiency": "beginner"}])
    assert [(item.skill, item.change) for item in result] == [("Go", "added")]


def test_array_diff_of_identical_arrays_is_all_unchanged() -> None:
    items = ["ownership", "mentoring", "testing"]
    result = compare_array_fields(items, list(items))

    assert result.added == []
    assert result.removed == []
    assert result.unchanged == items


def test_array_diff_preserves_order_and_ignores_non_string_arrays() -> None:
    result = compare_array_fields(["a", "b", "c"], ["c", "d", "a"])
    assert result.added == ["d"]
    assert result.removed == ["b"]
    assert result.unchanged == ["a", "c"]

    mixed = compare_array_fields(["a", 1], "not-a-list")
    assert (mixed.added, mixed.removed, mixed.unchanged) == ([], [], [])


def test_compare_profiles_reports_every_dimension(profile_data) -> None:
    before = _snapshot(
        1,
        profile_data(skills=[("Python", "intermediate")], culture=60, leadership=50, readiness=30),
        score="62.5",
        strengths=["coding"],
        concerns=["communication"],
        gaps=["no interview evidence"],
        data_sources=["resume"],
    )
    after = _snapshot(
        2,
        profile_data(
            skills=[("Python", "advanced"), ("Docker", "beginner")],
            soft_skills=["Communication", "Mentoring"],
            total_years=6,
            culture=72,
            leadership=50,
            readiness=45,
        ),
        score=71,
        strengths=["coding", "system design"],
        concerns=[],
        gaps=[],
        data_sources=["resume", "interview round 1"],
    )

    result = compare_profiles(before, after)

    assert result.valid is True
    assert result.overall.trend == "up"
    assert result.overall.delta == 8.5
    assert [(item.skill, item.change) for item in result.technical_skills] == [
        ("Docker", "added"),
        ("Python", "improved"),
    ]
    assert result.soft_skills.added == ["Mentoring"]
    assert result.strengths.added == ["system design"]
    assert result.concerns.removed == ["communication"]
    assert result.data_sources.added == ["interview round 1"]
    assert result.experience.total_years.delta == 1
    assert result.organizational_fit.culture.trend == "up"
    assert result.organizational_fit.leadership.trend == "stable"
    assert result.organizational_fit.readiness.delta == 15
    assert result.warnings == []


def test_compare_profiles_refuses_invalid_payloads(profile_data) -> None:
    broken = profile_data()
    broken["technicalSkills"][0]["proficiency"] = "wizard"
    del broken["experience"]

    result = compare_profiles(_snapshot(1, profile_data()), _snapshot(2, broken))

    assert result.valid is False
    assert result.invalid_versions == [2]
    assert result.overall is None
    assert result.technical_skills == []
    assert any(error.startswith("version 2: experience") for error in result.errors)


def test_compare_profiles_flags_both_versions_when_neither_parses() -> None:
    result = compare_profiles(_snapshot(3, None), _snapshot(4, {"technicalSkills": "nope"}))

    assert result.valid is False
    assert result.invalid_versions == [3, 4]
    assert "version 3: profile data must be an object" in result.errors


def test_compare_profiles_flags_unparseable_overall_score(profile_data) -> None:
    result = compare_profiles(_snapshot(1, profile_data(), score="pending"), _snapshot(2, profile_data(), score=55))

    assert result.valid is True
    assert result.overall.score_a == 0
    assert result.overall.percentage == "0.0%"
    assert result.warnings


def test_out_of_range_sub_scores_are_clamped_not_rejected(profile_data) -> None:
    result = compare_profiles(
        _snapshot(1, profile_data(culture=70, readiness=40)),
        _snapshot(2, profile_data(culture=105, readiness=120)),
    )

    assert result.valid is True
    assert result.invalid_versions == []
    assert result.organizational_fit.culture.score_b == 100
    assert result.organizational_fit.culture.delta == 30
    assert result.organizational_fit.readiness.score_b == 100
    assert result.organizational_fit.readiness.delta == 60
