"""
PracticeSessionService: the live practice run.

While a session is active every check-in is tagged with its session id, so the
analytics view later counts the whole run as one session no matter how long
the player pauses between exercises.
"""
import sqlite3
import time
import uuid
from PySide6.QtCore import QObject, Property, Signal, Slot  # type: ignore


class PracticeSessionService(QObject):
    sessionChanged = Signal()
    checkInRecorded = Signal(str, int)  # exercise id, new tempo

    def __init__(self, db_manager, library=None):
        super().__init__()
        self.db = db_manager
        self.library = library
        self._session_id: str = ""
        self._session_start_time: float = 0.0
        self._session_checkins: int = 0

    @Property(bool, notify=sessionChanged)
    def isActive(self) -> bool:
        return bool(self._session_id)

    @Property(str, notify=sessionChanged)
    def sessionId(self) -> str:
        return self._session_id

    @Property(int, notify=sessionChanged)
    def sessionCheckins(self) -> int:
        return self._session_checkins

    @Slot(result=str)
    def start_session(self) -> str:
        """Begin a live run. Starting while a run is active ends the old one first."""
        if self._session_id:
            self.end_session()
        self._session_id = uuid.uuid4().hex
        self._session_start_time = time.time()
        self._session_checkins = 0
        print(f"PracticeSessionService: Session {self._session_id} started")
        self.sessionChanged.emit()
        return self._session_id

    @Slot(result="QVariantMap")
    def end_session(self) -> dict:
        if not self._session_id:
            return {"sessionId": "", "checkins": 0, "elapsedSec": 0}

        summary = {
            "sessionId": self._session_id,
            "checkins": self._session_checkins,
            "elapsedSec": int(time.time() - self._session_start_time),
        }
        print(f"PracticeSessionService: Session {self._session_id} ended, "
              f"{summary['checkins']} check-ins, {summary['elapsedSec']}s")
        self._session_id = ""
        self._session_start_time = 0.0
        self._session_checkins = 0
        self.sessionChanged.emit()
        return summary

    def record_check_in(self, exercise_id: str, rating: str, explicit_bpm: int | None = None,
                        confidence: int | None = None, baseline_bpm: int | None = None,
                        actual_duration: int = 0, planned_duration: int = 0, timestamp=None) -> dict:
        """
        Store one check-in, tagged with the active session if there is one.
        Returns {"success": bool, "newBpm": int}.
        """
        title = None
        if self.library is not None:
            item = self.library.get_item(exercise_id)
            title = item.get("title") if item else None

        try:
            result = self.db.record_check_in(
                exercise_id, rating,
                explicit_bpm=explicit_bpm,
                confidence=confidence,
                baseline_bpm=baseline_bpm,
                actual_duration=actual_duration,
                planned_duration=planned_duration,
                session_id=self._session_id or None,
                title=title,
                timestamp=timestamp,
            )
        except sqlite3.Error as e:
            print(f"PracticeSessionService: Failed to record check-in for {exercise_id}: {e}")
            return {"success": False, "newBpm": baseline_bpm or 0}

        if self._session_id:
            self._session_checkins += 1
            self.sessionChanged.emit()
        print(f"PracticeSessionService: Check-in recorded for {exercise_id} ({rating}) → {result['newBpm']} BPM")
        self.checkInRecorded.emit(exercise_id, result["newBpm"])
        return result

    @Slot(str, str, int, int, int, int, int, result="QVariantMap")
    def checkIn(self, exercise_id: str, rating: str, explicit_bpm: int, confidence: int,
                baseline_bpm: int, actual_duration: int, planned_duration: int) -> dict:
        """QML entry point; zeros mean "not provided"."""
        return self.record_check_in(
            exercise_id, rating,
            explicit_bpm=explicit_bpm or None,
            confidence=confidence or None,
            baseline_bpm=baseline_bpm or None,
            actual_duration=actual_duration,
            planned_duration=planned_duration,
        )
