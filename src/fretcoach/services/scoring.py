"""
Mastery scoring for individual practice check-ins.

Learning phase  (tempo < target): Tempo 50% + Time 50%
Mastery phase   (tempo >= target): Tempo ~33% + Time ~33% + Quality ~33%

Scores are never stored. Every query rescores from the current exercise
targets, so editing a target tempo changes how old check-ins read.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

DEFAULT_PLANNED_DURATION_SEC = 300
DEFAULT_TARGET_TEMPO = 120

RATING_STARS = {"easy": 5, "good": 3, "hard": 1}


@dataclass(frozen=True)
class CheckIn:
    """One recorded practice attempt at one exercise."""
    timestamp: datetime
    tempo: int = 0
    actual_duration: int = 0
    planned_duration: int = 0
    rating: Optional[str] = None
    confidence: Optional[int] = None
    session_id: Optional[str] = None
    exercise_id: str = ""
    previous_tempo: Optional[int] = None


class Phase(Enum):
    """Scoring phase. Each member carries its (tempo, time, quality) caps."""
    LEARNING = ("Learning", 50.0, 50.0, 0.0)
    MASTERY = ("Mastery", 33.3, 33.3, 33.3)

    def __init__(self, label: str, tempo_cap: float, time_cap: float, quality_cap: float):
        self.label = label
        self.tempo_cap = tempo_cap
        self.time_cap = time_cap
        self.quality_cap = quality_cap


@dataclass(frozen=True)
class ScoreBreakdown:
    total_score: float
    tempo_component: float
    time_component: float
    quality_component: float
    phase: Phase

    @property
    def rounded_total(self) -> int:
        return int(round(self.total_score))

    @property
    def is_mastery_phase(self) -> bool:
        return self.phase is Phase.MASTERY


def select_phase(current_tempo: float, target_tempo: float) -> Phase:
    """Mastery once the target is reached. A non-positive target has no ceiling."""
    if target_tempo <= 0:
        return Phase.MASTERY
    return Phase.MASTERY if current_tempo >= target_tempo else Phase.LEARNING


def resolve_target_tempo(target_bpm=None, original_bpm=None, current_bpm=None) -> int:
    return target_bpm or original_bpm or current_bpm or DEFAULT_TARGET_TEMPO


def quality_stars(rating: Optional[str], confidence: Optional[int]) -> int:
    """Self-rated quality on a 0-5 scale. An explicit confidence always wins."""
    if rating == "manual":
        return confidence if confidence is not None else 5
    if confidence is not None:
        return confidence
    return RATING_STARS.get(rating or "", 0)


def has_quality_signal(rating: Optional[str], confidence: Optional[int]) -> bool:
    return confidence is not None or rating in RATING_STARS or rating == "manual"


def tempo_ratio(current_tempo: float, target_tempo: float) -> float:
    return current_tempo / target_tempo if target_tempo > 0 else 1.0


def time_ratio(actual_duration: float, planned_duration: float) -> float:
    # Missing duration data earns no time credit.
    if actual_duration > 0 and planned_duration > 0:
        return actual_duration / planned_duration
    return 0.0


def compute_components(phase: Phase, tempo_r: float, time_r: float, stars: float) -> ScoreBreakdown:
    tempo_points = min(phase.tempo_cap, max(0.0, tempo_r) * phase.tempo_cap)
    time_points = min(phase.time_cap, max(0.0, time_r) * phase.time_cap)
    quality_points = min(phase.quality_cap, max(0.0, stars / 5) * phase.quality_cap)
    total = min(100.0, tempo_points + time_points + quality_points)
    return ScoreBreakdown(
        total_score=total,
        tempo_component=tempo_points,
        time_component=time_points,
        quality_component=quality_points,
        phase=phase,
    )


def score_check_in(check_in: CheckIn, target_tempo: float,
                   planned_duration_fallback: Optional[int] = None) -> ScoreBreakdown:
    """
    Score one check-in against the exercise's current target.

    Never raises: a missing tempo, duration or rating simply earns zero
    credit for that component.
    """
    current = check_in.tempo or 0
    planned = check_in.planned_duration or planned_duration_fallback or DEFAULT_PLANNED_DURATION_SEC
    phase = select_phase(current, target_tempo)
    return compute_components(
        phase,
        tempo_ratio(current, target_tempo),
        time_ratio(check_in.actual_duration or 0, planned),
        quality_stars(check_in.rating, check_in.confidence),
    )
