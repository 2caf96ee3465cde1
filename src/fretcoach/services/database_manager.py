import sqlite3
import threading
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Optional

from fretcoach.services.scoring import CheckIn  # type: ignore

MIN_TEMPO = 40
TEMPO_STEP = 2
DEFAULT_BASELINE_TEMPO = 100


def next_tempo(current: int, rating: Optional[str], explicit_tempo: Optional[int] = None) -> int:
    """Tempo the exercise moves to after a check-in with the given rating."""
    if rating == "manual" and explicit_tempo:
        return explicit_tempo
    if rating == "easy":
        return current + TEMPO_STEP
    if rating == "hard":
        return max(MIN_TEMPO, current - TEMPO_STEP)
    return current


def _local_naive(dt: datetime) -> datetime:
    """Aware datetimes become naive local time so stored and parsed values stay comparable."""
    if dt.tzinfo is not None:
        return dt.astimezone().replace(tzinfo=None)
    return dt


def _parse_timestamp(value) -> datetime:
    try:
        # Older exports end in "Z", which fromisoformat only accepts from 3.11
        if isinstance(value, str) and value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return _local_naive(datetime.fromisoformat(value))
    except (TypeError, ValueError):
        print(f"DatabaseManager: Malformed check-in timestamp {value!r}, anchoring at epoch")
        return datetime.fromtimestamp(0)


class DatabaseManager:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        # Ensure directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._write_lock = threading.Lock()
        self._init_db()

    def _get_connection(self):
        return sqlite3.connect(self.db_path)

    def _init_db(self):
        with self._get_connection() as conn:
            cursor = conn.cursor()

            # Single-row profile holding the global check-in counter
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS profile (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    name TEXT NOT NULL DEFAULT '',
                    total_checkins INTEGER NOT NULL DEFAULT 0
                )
            ''')
            cursor.execute("INSERT OR IGNORE INTO profile (id, name, total_checkins) VALUES (1, '', 0)")

            # Exercises table
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS exercises (
                    id TEXT PRIMARY KEY,
                    title TEXT,
                    bpm INTEGER NOT NULL,
                    last_success_bpm INTEGER,
                    last_played TIMESTAMP
                )
            ''')

            # Check-in log, append only
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS check_ins (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_id TEXT NOT NULL,
                    timestamp TIMESTAMP NOT NULL,
                    bpm INTEGER DEFAULT 0,
                    old_bpm INTEGER,
                    rating TEXT,
                    confidence INTEGER,
                    actual_duration INTEGER DEFAULT 0,
                    planned_duration INTEGER DEFAULT 0
                )
            ''')

            # Simple Migration: session ids arrived after the first releases
            try:
                cursor.execute("ALTER TABLE check_ins ADD COLUMN session_id TEXT")
            except sqlite3.OperationalError:
                pass # Already exists

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_check_ins_exercise ON check_ins (exercise_id, timestamp)")
            conn.commit()

    # ── Profile ──────────────────────────────────────────────────────

    def set_profile_name(self, name: str):
        with self._write_lock, self._get_connection() as conn:
            conn.execute("UPDATE profile SET name = ? WHERE id = 1", (name,))
            conn.commit()

    def get_total_checkins(self) -> int:
        with self._get_connection() as conn:
            row = conn.execute("SELECT total_checkins FROM profile WHERE id = 1").fetchone()
            return row[0] if row and row[0] else 0

    # ── Check-ins ────────────────────────────────────────────────────

    def record_check_in(self, exercise_id: str, rating: str, explicit_bpm: Optional[int] = None,
                        confidence: Optional[int] = None, baseline_bpm: Optional[int] = None,
                        actual_duration: int = 0, planned_duration: int = 0,
                        session_id: Optional[str] = None, title: Optional[str] = None,
                        timestamp: Optional[datetime] = None) -> dict:
        """
        Appends a check-in, moves the exercise's tempo and bumps the global counter.
        The stored check-in tempo is the tempo *after* progression.
        """
        now = _local_naive(timestamp or datetime.now()).isoformat()
        with self._write_lock, self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute('SELECT bpm FROM exercises WHERE id = ?', (exercise_id,))
            row = cursor.fetchone()

            # Create the exercise on its first check-in
            if row:
                old_bpm = row[0] or baseline_bpm or DEFAULT_BASELINE_TEMPO
            else:
                old_bpm = baseline_bpm or DEFAULT_BASELINE_TEMPO
                cursor.execute('''
                    INSERT INTO exercises (id, title, bpm) VALUES (?, ?, ?)
                ''', (exercise_id, title, old_bpm))

            new_bpm = next_tempo(old_bpm, rating, explicit_bpm)

            cursor.execute('''
                INSERT INTO check_ins
                (exercise_id, timestamp, bpm, old_bpm, rating, confidence, actual_duration, planned_duration, session_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (exercise_id, now, new_bpm, old_bpm, rating, confidence or None,
                  actual_duration or 0, planned_duration or 0, session_id))

            cursor.execute('''
                UPDATE exercises
                SET bpm = ?, last_success_bpm = ?, last_played = ?, title = COALESCE(?, title)
                WHERE id = ?
            ''', (new_bpm, baseline_bpm or old_bpm, now, title, exercise_id))

            cursor.execute("UPDATE profile SET total_checkins = total_checkins + 1 WHERE id = 1")
            conn.commit()

        return {"success": True, "newBpm": new_bpm}

    def _row_to_check_in(self, row) -> CheckIn:
        return CheckIn(
            timestamp=_parse_timestamp(row["timestamp"]),
            tempo=row["bpm"] or 0,
            actual_duration=row["actual_duration"] or 0,
            planned_duration=row["planned_duration"] or 0,
            rating=row["rating"],
            confidence=row["confidence"],
            session_id=row["session_id"] or None,
            exercise_id=row["exercise_id"],
            previous_tempo=row["old_bpm"],
        )

    def get_check_ins(self, exercise_id: Optional[str] = None) -> List[CheckIn]:
        """Returns check-ins in recording order, optionally for one exercise."""
        with self._get_connection() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            if exercise_id:
                cursor.execute('''
                    SELECT * FROM check_ins WHERE exercise_id = ? ORDER BY timestamp ASC, id ASC
                ''', (exercise_id,))
            else:
                cursor.execute('SELECT * FROM check_ins ORDER BY timestamp ASC, id ASC')
            check_ins = [self._row_to_check_in(row) for row in cursor.fetchall()]
        # Rows imported with a UTC offset only sort correctly once parsed
        check_ins.sort(key=lambda c: c.timestamp)
        return check_ins

    def get_history_by_exercise(self) -> Dict[str, List[CheckIn]]:
        """Every exercise's check-in log keyed by exercise id, including exercises with no history."""
        history: Dict[str, List[CheckIn]] = {ex["id"]: [] for ex in self.get_all_exercises()}
        for check_in in self.get_check_ins():
            history.setdefault(check_in.exercise_id, []).append(check_in)
        return history

    def get_all_exercises(self) -> list:
        with self._get_connection() as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM exercises ORDER BY id ASC')
            return [dict(row) for row in cursor.fetchall()]

    def get_exercise(self, exercise_id: str) -> Optional[dict]:
        with self._get_connection() as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute('SELECT * FROM exercises WHERE id = ?', (exercise_id,)).fetchone()
            return dict(row) if row else None

    def clear_history(self):
        """Delete every check-in and reset the global counter. Exercises and their tempos stay."""
        with self._write_lock, self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('DELETE FROM check_ins;')
            cursor.execute('UPDATE profile SET total_checkins = 0 WHERE id = 1')
            conn.commit()
