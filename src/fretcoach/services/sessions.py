"""
Session reconstruction from the flat check-in log.

Check-ins recorded during a live practice run carry a session id and are
grouped by it. Older, untagged check-ins are grouped by a time-gap heuristic:
a new sitting starts after more than 45 minutes without a check-in. The
heuristic can merge two short back-to-back sittings or split one sitting with
a long pause, which is why those sessions are labelled "Legacy" in the UI.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from fretcoach.services.scoring import (  # type: ignore
    CheckIn, ScoreBreakdown, has_quality_signal, quality_stars, score_check_in,
)

SESSION_GAP = timedelta(minutes=45)


@dataclass
class Session:
    anchor_time: datetime
    check_ins: list = field(default_factory=list)
    is_explicit: bool = True

    def add(self, item):
        if item.timestamp < self.anchor_time:
            self.anchor_time = item.timestamp
        self.check_ins.append(item)


@dataclass(frozen=True)
class ScoredCheckIn:
    """A check-in paired with the exercise context it was scored against."""
    check_in: CheckIn
    breakdown: ScoreBreakdown
    target_tempo: int
    title: str = "Unknown Exercise"

    @property
    def timestamp(self) -> datetime:
        return self.check_in.timestamp

    @property
    def session_id(self) -> Optional[str]:
        return self.check_in.session_id

    @property
    def bpm_percent(self) -> float:
        if self.target_tempo <= 0:
            return 0.0
        return (self.check_in.tempo or 0) / self.target_tempo * 100

    @property
    def stars(self) -> int:
        return quality_stars(self.check_in.rating, self.check_in.confidence)

    @property
    def has_quality(self) -> bool:
        return has_quality_signal(self.check_in.rating, self.check_in.confidence)


@dataclass
class SessionSummary:
    anchor_time: datetime
    is_explicit: bool
    count: int
    tempo_component: float
    time_component: float
    quality_component: float
    mastery: float
    bpm_percent: float
    total_time: int
    avg_stars: Optional[float]
    titles: List[str]

    @property
    def quality_label(self) -> str:
        return f"{self.avg_stars:.1f}★" if self.avg_stars is not None else "-"


def score_items(check_ins, target_tempo: int, planned_duration: int, title: str) -> List[ScoredCheckIn]:
    return [
        ScoredCheckIn(c, score_check_in(c, target_tempo, planned_duration), target_tempo, title)
        for c in check_ins
    ]


def group_by_session_id(items) -> List[Session]:
    """Group tagged items strictly by session id, whatever the gaps between them."""
    sessions = {}
    for item in items:
        if item.session_id not in sessions:
            sessions[item.session_id] = Session(anchor_time=item.timestamp, is_explicit=True)
        sessions[item.session_id].add(item)
    return list(sessions.values())


def group_by_gap(items, gap: timedelta = SESSION_GAP) -> List[Session]:
    """Partition items into sittings, splitting wherever consecutive items are more than `gap` apart."""
    sessions: List[Session] = []
    current = None
    last_time = None
    for item in sorted(items, key=lambda i: i.timestamp):
        if current is None or item.timestamp - last_time > gap:
            current = Session(anchor_time=item.timestamp, is_explicit=False)
            sessions.append(current)
        current.add(item)
        last_time = item.timestamp
    return sessions


def aggregate(items, gap_strategy: Callable = group_by_gap) -> List[Session]:
    """
    Rebuild practice sessions, oldest first.

    Explicit and legacy groupings are built independently and then merged on
    anchor time. Every input item lands in exactly one session.
    """
    tagged = [i for i in items if i.session_id]
    untagged = [i for i in items if not i.session_id]
    sessions = group_by_session_id(tagged) + gap_strategy(untagged)
    sessions.sort(key=lambda s: s.anchor_time)
    return sessions


def _mean(values) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def summarize(session: Session) -> SessionSummary:
    """
    Average each score component over the members, then sum the averages.

    Averaging per component keeps a session of many short exercises from
    diluting the balance each phase established.
    """
    members = session.check_ins
    tempo = _mean(m.breakdown.tempo_component for m in members)
    time_c = _mean(m.breakdown.time_component for m in members)
    quality = _mean(m.breakdown.quality_component for m in members)

    any_rated = any(m.has_quality for m in members)
    titles = []
    for m in members:
        if m.title not in titles:
            titles.append(m.title)

    return SessionSummary(
        anchor_time=session.anchor_time,
        is_explicit=session.is_explicit,
        count=len(members),
        tempo_component=tempo,
        time_component=time_c,
        quality_component=quality,
        mastery=min(100.0, tempo + time_c + quality),
        bpm_percent=_mean(m.bpm_percent for m in members),
        total_time=sum(m.check_in.actual_duration or 0 for m in members),
        avg_stars=_mean(m.stars for m in members) if any_rated else None,
        titles=titles,
    )
