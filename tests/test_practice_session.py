import unittest
import json
import sqlite3
import shutil
import tempfile
import sys
from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import patch

# Add src to path
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root / "src"))

from fretcoach.services.database_manager import DatabaseManager
from fretcoach.services.library_service import LibraryService
from fretcoach.services.analytics_service import AnalyticsService
from fretcoach.services.practice_session_service import PracticeSessionService


class TestPracticeSessionService(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        catalog_file = self.test_dir / "catalog.json"
        with open(catalog_file, "w", encoding="utf-8") as f:
            json.dump({"items": [
                {"id": "ex-legato", "title": "Legato Runs", "path": "Technique/Legato", "targetBPM": 120},
                {"id": "ex-sweep", "title": "Sweep Arpeggios", "path": "Technique/Sweep", "targetBPM": 90},
            ]}, f)

        self.db = DatabaseManager(self.test_dir / "test.db")
        self.library = LibraryService(catalog_file)
        self.service = PracticeSessionService(self.db, self.library)
        self.analytics = AnalyticsService(self.db, self.library)

    def tearDown(self):
        del self.service
        del self.analytics
        del self.db
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_check_ins_without_session_are_untagged(self):
        self.assertFalse(self.service.isActive)
        result = self.service.record_check_in("ex-legato", "easy", baseline_bpm=100)
        self.assertEqual(result, {"success": True, "newBpm": 102})
        self.assertIsNone(self.db.get_check_ins()[0].session_id)
        self.assertEqual(self.db.get_exercise("ex-legato")["title"], "Legato Runs")

    def test_live_session_tags_every_check_in(self):
        session_id = self.service.start_session()
        self.assertTrue(self.service.isActive)
        self.assertEqual(self.service.sessionId, session_id)

        t0 = datetime(2026, 3, 1, 18, 0)
        self.service.record_check_in("ex-legato", "good", baseline_bpm=120, actual_duration=300, timestamp=t0)
        # A two hour break does not split a live session
        self.service.record_check_in("ex-sweep", "hard", baseline_bpm=90, actual_duration=300,
                                     timestamp=t0 + timedelta(hours=2))
        self.assertEqual(self.service.sessionCheckins, 2)

        summary = self.service.end_session()
        self.assertEqual(summary["sessionId"], session_id)
        self.assertEqual(summary["checkins"], 2)
        self.assertFalse(self.service.isActive)

        self.assertEqual({c.session_id for c in self.db.get_check_ins()}, {session_id})
        trend = self.analytics.get_mastery_trend()
        self.assertEqual(len(trend), 1)
        self.assertFalse(trend[0]["isLegacy"])

    def test_new_session_gets_new_id(self):
        first = self.service.start_session()
        second = self.service.start_session()
        self.assertNotEqual(first, second)
        self.assertEqual(self.service.end_session()["sessionId"], second)
        self.assertEqual(self.service.end_session(), {"sessionId": "", "checkins": 0, "elapsedSec": 0})

    def test_qml_check_in_treats_zero_as_missing(self):
        result = self.service.checkIn("ex-sweep", "manual", 110, 0, 0, 0, 0)
        self.assertEqual(result["newBpm"], 110)
        stored = self.db.get_check_ins("ex-sweep")[0]
        self.assertIsNone(stored.confidence)
        self.assertEqual(stored.previous_tempo, 100)

    def test_store_failure_is_reported(self):
        with patch.object(self.db, "record_check_in", side_effect=sqlite3.OperationalError("locked")):
            result = self.service.record_check_in("ex-legato", "easy", baseline_bpm=100)
        self.assertEqual(result, {"success": False, "newBpm": 100})


if __name__ == "__main__":
    unittest.main()
