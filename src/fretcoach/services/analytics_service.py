"""
AnalyticsService: progress analytics exposed to the QML progress views.

Every query reads the full check-in log, rescores it against the current
catalog targets and rebuilds sessions from scratch. Nothing derived is cached,
so an edited target tempo is reflected immediately in old history.

Store failures never reach the UI: each query logs the error and returns an
empty result so a corrupt history cannot block the rest of the app.
"""
import sqlite3
from PySide6.QtCore import QObject, Property, Signal, Slot  # type: ignore

from fretcoach.services import trend  # type: ignore
from fretcoach.services.scoring import RATING_STARS  # type: ignore
from fretcoach.services.sessions import score_items  # type: ignore

STORE_ERRORS = (sqlite3.Error, ValueError)


class AnalyticsService(QObject):
    statsChanged = Signal()
    historyCleared = Signal()

    def __init__(self, db_manager, library):
        super().__init__()
        self.db = db_manager
        self.library = library

    def _load_history(self) -> list:
        """(Exercise, check-ins) pairs for every exercise the store knows about."""
        stored = {ex["id"]: ex for ex in self.db.get_all_exercises()}
        history = []
        for exercise_id, check_ins in self.db.get_history_by_exercise().items():
            exercise = self.library.resolve(exercise_id, stored.get(exercise_id))
            history.append((exercise, check_ins))
        return history

    # ── Level 1: global KPIs ─────────────────────────────────────────

    @Slot(result="QVariantMap")
    def get_global_stats(self) -> dict:
        """Hours, check-ins, level, active days, streak and average check-in score."""
        try:
            history = self._load_history()
            total_checkins = self.db.get_total_checkins()
        except STORE_ERRORS as e:
            print(f"AnalyticsService: Failed to read practice history: {e}")
            return {"totalHours": 0, "totalCheckins": 0, "level": 1,
                    "daysActive": 0, "streak": 0, "averageScore": 0}

        check_ins = [c for _, items in history for c in items]
        scored = trend.scored_history(history)
        average = (sum(s.breakdown.total_score for s in scored) / len(scored)) if scored else 0

        return {
            "totalHours": trend.total_hours(check_ins),
            "totalCheckins": total_checkins,
            "level": trend.level(total_checkins),
            "daysActive": trend.days_active(check_ins),
            "streak": trend.current_streak(check_ins),
            "averageScore": int(round(average)),
        }

    @Slot(result="QVariantList")
    def get_global_history(self) -> list:
        """Flat chronological log of every check-in across all exercises."""
        try:
            history = self._load_history()
        except STORE_ERRORS as e:
            print(f"AnalyticsService: Failed to read practice history: {e}")
            return []

        entries = []
        for exercise, check_ins in history:
            for item in score_items(check_ins, exercise.target_tempo, exercise.planned_duration, exercise.title):
                c = item.check_in
                entries.append({
                    "title": exercise.title,
                    "exerciseId": exercise.id,
                    "date": c.timestamp.isoformat(),
                    "tempo": c.tempo,
                    "previousTempo": c.previous_tempo,
                    "rating": c.rating,
                    "confidence": c.confidence,
                    "actualDuration": c.actual_duration,
                    "plannedDuration": c.planned_duration,
                    "sessionId": c.session_id,
                    "score": item.breakdown.rounded_total,
                    "phase": item.breakdown.phase.label,
                })
        entries.sort(key=lambda e: e["date"])
        return entries

    @Slot(result="QVariantList")
    def get_heatmap_data(self) -> list:
        try:
            check_ins = self.db.get_check_ins()
        except STORE_ERRORS as e:
            print(f"AnalyticsService: Failed to read practice history: {e}")
            return []
        return trend.heatmap(check_ins)

    # ── Level 2: categories ──────────────────────────────────────────

    @Slot(result="QVariantList")
    def get_category_breakdown(self) -> list:
        try:
            history = self._load_history()
        except STORE_ERRORS as e:
            print(f"AnalyticsService: Failed to read practice history: {e}")
            return []
        return trend.category_breakdown(history)

    # ── Level 3: mastery trend ───────────────────────────────────────

    @Slot(result="QVariantList")
    @Slot(str, result="QVariantList")
    @Slot(str, str, result="QVariantList")
    def get_mastery_trend(self, category_filter: str | None = None, exercise_id: str | None = None) -> list:
        """
        Session trend, optionally narrowed to a category or a single exercise.
        QML passes empty strings for "no filter".
        """
        category_filter = category_filter or None
        exercise_id = exercise_id or None
        try:
            history = self._load_history()
        except STORE_ERRORS as e:
            print(f"AnalyticsService: Failed to read practice history: {e}")
            return []

        items = trend.scored_history(history, category_filter, exercise_id)
        single_title = None
        if exercise_id:
            single_title = next((ex.title for ex, _ in history if ex.id == exercise_id), None)
        return trend.project_trend(items, single_title)

    @Slot(str, result="QVariantList")
    def get_item_history(self, exercise_id: str) -> list:
        """Raw per-check-in history for the drill-down view."""
        try:
            check_ins = self.db.get_check_ins(exercise_id)
        except STORE_ERRORS as e:
            print(f"AnalyticsService: Failed to read history for {exercise_id}: {e}")
            return []

        return [{
            "date": c.timestamp.strftime("%Y-%m-%d"),
            "tempo": c.tempo,
            "rating": c.rating,
            "confidence": c.confidence or RATING_STARS.get(c.rating or "", 1),
        } for c in check_ins]

    # ── Reset ────────────────────────────────────────────────────────

    @Slot(result="QVariantMap")
    def clear_history(self) -> dict:
        """Irreversibly delete all check-ins and the global counter. Callers must confirm first."""
        try:
            self.db.clear_history()
        except sqlite3.Error as e:
            print(f"AnalyticsService: Failed to clear history: {e}")
            return {"success": False}
        print("AnalyticsService: Practice history cleared")
        self.historyCleared.emit()
        self.statsChanged.emit()
        return {"success": True}

    # ── QML Properties ───────────────────────────────────────────────

    @Property("QVariantMap", notify=statsChanged)
    def globalStats(self) -> dict:
        return self.get_global_stats()

    @Property("QVariantList", notify=statsChanged)
    def masteryTrend(self) -> list:
        return self.get_mastery_trend()

    @Property("QVariantList", notify=statsChanged)
    def categoryBreakdown(self) -> list:
        return self.get_category_breakdown()

    @Slot()
    def refresh(self):
        self.statsChanged.emit()
