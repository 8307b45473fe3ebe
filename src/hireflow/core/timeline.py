from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from hireflow.core.comparator import ScoreComparison, compare_scores
from hireflow.core.snapshot import ProfileSnapshot, clamp_score, stage_label, validate_profile_data

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TimelineEntry:
    profile_id: int | str
    version: int
    stage: str
    stage_label: str
    score: float
    previous_score: float | None = None
    score_delta: ScoreComparison | None = None
    is_latest: bool = False
    created_at: str | None = None


@dataclass(slots=True)
class Timeline:
    entries: list[TimelineEntry] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.entries

    @property
    def latest(self) -> TimelineEntry | None:
        return self.entries[-1] if self.entries else None


def build_timeline(profiles: Iterable[ProfileSnapshot]) -> Timeline:
    """Order versions ascending and compute per-step score deltas.

    Ordering is by ``version`` only; ``created_at`` and ``stage`` are labels.
    """
    ordered = sorted(profiles, key=lambda profile: profile.version)
    warnings: list[str] = []
    entries: list[TimelineEntry] = []

    previous: float | None = None
    for profile in ordered:
        score = clamp_score(profile.overall_score, label=f"version {profile.version} score", warnings=warnings)
        entries.append(
            TimelineEntry(
                profile_id=profile.id,
                version=profile.version,
                stage=profile.stage,
                stage_label=stage_label(profile.stage),
                score=score,
                previous_score=previous,
                score_delta=compare_scores(previous, score) if previous is not None else None,
                created_at=profile.created_at.isoformat() if profile.created_at else None,
            )
        )
        previous = score

    if entries:
        entries[-1].is_latest = True
    return Timeline(entries=entries, warnings=warnings)


class TimelineCursor:
    """Selection state over a built timeline, mirroring list keyboard navigation."""

    def __init__(
        self,
        timeline: Timeline,
        on_select: Callable[[TimelineEntry], None] | None = None,
        selected_id: int | str | None = None,
    ):
        self.timeline = timeline
        self.on_select = on_select
        self.index: int | None = None
        if selected_id is not None:
            self.select(selected_id)

    @property
    def selected(self) -> TimelineEntry | None:
        if self.index is None:
            return None
        return self.timeline.entries[self.index]

    def select(self, profile_id: int | str) -> TimelineEntry | None:
        for index, entry in enumerate(self.timeline.entries):
            if entry.profile_id == profile_id:
                self.index = index
                return entry
        logger.debug("Profile %s not on timeline; selection unchanged", profile_id)
        return self.selected

    def move_down(self) -> TimelineEntry | None:
        if self.timeline.empty:
            return None
        if self.index is None:
            self.index = 0
        elif self.index < len(self.timeline.entries) - 1:
            self.index += 1
        return self.selected

    def move_up(self) -> TimelineEntry | None:
        if self.timeline.empty:
            return None
        if self.index is None:
            self.index = 0
        elif self.index > 0:
            self.index -= 1
        return self.selected

    def activate(self) -> TimelineEntry | None:
        entry = self.selected
        if entry is not None and self.on_select is not None:
            self.on_select(entry)
        return entry

    def handle_key(self, key: str) -> TimelineEntry | None:
        if key in {"Enter", " "}:
            return self.activate()
        if key == "ArrowDown":
            return self.move_down()
        if key == "ArrowUp":
            return self.move_up()
        return self.selected


@dataclass(slots=True)
class FitTrendPoint:
    version: int
    stage_label: str
    culture: float
    leadership: float
    overall: float


def organizational_fit_trend(profiles: Iterable[ProfileSnapshot]) -> list[FitTrendPoint]:
    points: list[FitTrendPoint] = []
    for profile in sorted(profiles, key=lambda item: item.version):
        data, errors = validate_profile_data(profile.profile_data)
        if data is None:
            logger.warning("Skipping version %s in fit trend: %s", profile.version, "; ".join(errors[:3]))
            continue
        fit = data.organizational_fit
        culture = fit.culture_assessment.overall_score if fit and fit.culture_assessment else 0
        leadership = fit.leadership_assessment.overall_score if fit and fit.leadership_assessment else 0
        points.append(
            FitTrendPoint(
                version=profile.version,
                stage_label=stage_label(profile.stage),
                culture=clamp_score(culture),
                leadership=clamp_score(leadership),
                overall=clamp_score(profile.overall_score),
            )
        )
    return points


def analyze_trend(scores: list[float]) -> str:
    if len(scores) < 2:
        return "insufficient_data"
    change = scores[-1] - scores[-2]
    if change > 5:
        return "significant_improvement"
    if change > 0:
        return "improving"
    if change == 0:
        return "stable"
    if change > -5:
        return "slight_decline"
    return "significant_decline"
