"""
Chart and KPI projections over the scored practice history.
"""
from datetime import date, timedelta
from typing import Dict, List, Optional

from fretcoach.services.sessions import aggregate, score_items, summarize  # type: ignore

CATEGORIES = ["Technique", "Songs", "Theory", "Exercises"]
ESTIMATED_CHECKIN_SEC = 5 * 60
CHECKINS_PER_LEVEL = 25


def categorize(path: str) -> str:
    path = path or ""
    for name in ("Technique", "Songs", "Theory"):
        if name in path:
            return name
    return "Exercises"


def checkin_seconds(check_in) -> int:
    """Actual practiced time, or the fixed estimate for check-ins without a timer."""
    return check_in.actual_duration if check_in.actual_duration and check_in.actual_duration > 0 \
        else ESTIMATED_CHECKIN_SEC


def scored_history(history, category_filter: Optional[str] = None, exercise_id: Optional[str] = None) -> list:
    """
    Flatten (exercise, check_ins) pairs into scored items.

    Each exercise is scored against its *current* target and planned duration.
    """
    items = []
    for exercise, check_ins in history:
        if exercise_id and exercise.id != exercise_id:
            continue
        if category_filter and exercise.category != category_filter:
            continue
        items.extend(score_items(check_ins, exercise.target_tempo, exercise.planned_duration, exercise.title))
    return items


def project_trend(items, single_title: Optional[str] = None) -> List[Dict]:
    """Sessions as chart-ready records, indexed from 1 in chronological order."""
    records = []
    for index, session in enumerate(aggregate(items), start=1):
        summary = summarize(session)
        if single_title:
            title = single_title
        else:
            title = f"Session #{index}" + ("" if summary.is_explicit else " (Legacy)")
        records.append({
            "index": index,
            "date": summary.anchor_time.strftime("%Y-%m-%d"),
            "timeLabel": summary.anchor_time.strftime("%H:%M"),
            "mastery": min(100, int(round(summary.mastery))),
            "title": title,
            "bpmPercent": int(round(summary.bpm_percent)),
            "time": summary.total_time,
            "quality": summary.quality_label,
            "isLegacy": not summary.is_explicit,
            "checkIns": summary.count,
        })
    return records


def total_hours(check_ins) -> float:
    return round(sum(checkin_seconds(c) for c in check_ins) / 3600, 1)


def days_active(check_ins) -> int:
    return len({c.timestamp.date() for c in check_ins})


def current_streak(check_ins, today: Optional[date] = None) -> int:
    """
    Consecutive practice days counting back from today.

    A day without practice *yet* does not break the streak: when today has no
    check-in the count starts from yesterday.
    """
    days = {c.timestamp.date() for c in check_ins}
    day = today or date.today()
    if day not in days:
        day -= timedelta(days=1)
    streak = 0
    while day in days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def level(total_checkins: int) -> int:
    return max(0, total_checkins) // CHECKINS_PER_LEVEL + 1


def heatmap(check_ins) -> List[Dict]:
    counts: Dict[str, int] = {}
    for c in check_ins:
        key = c.timestamp.strftime("%Y-%m-%d")
        counts[key] = counts.get(key, 0) + 1
    return [{"date": d, "count": counts[d]} for d in sorted(counts)]


def category_breakdown(history) -> List[Dict]:
    """Check-in count, hours and summed tempo growth per library category."""
    stats = {name: {"count": 0, "seconds": 0, "growth": 0} for name in CATEGORIES}
    for exercise, check_ins in history:
        if not check_ins:
            continue
        bucket = stats.setdefault(exercise.category, {"count": 0, "seconds": 0, "growth": 0})
        bucket["count"] += len(check_ins)
        bucket["seconds"] += sum(checkin_seconds(c) for c in check_ins)
        tempos = [c.tempo or 0 for c in check_ins]
        growth = max(tempos) - min(tempos)
        if growth > 0:
            bucket["growth"] += growth

    return [
        {
            "name": name,
            "sessions": s["count"],
            "hours": round(s["seconds"] / 3600, 1),
            "growth": s["growth"],
        }
        for name, s in stats.items()
    ]
