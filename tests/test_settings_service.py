import unittest
import json
import os
import shutil
import tempfile
import sys
from pathlib import Path
from unittest.mock import patch

# Add src to path
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root / "src"))

from fretcoach.services.database_manager import DatabaseManager
from fretcoach.services.library_service import LibraryService
from fretcoach.services.analytics_service import AnalyticsService
from fretcoach.services import settings_service
from fretcoach.services.settings_service import SettingsService, load_env_file


class TestSettingsService(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())
        self.env_patch = patch.dict(os.environ, {}, clear=False)
        self.env_patch.start()
        for key in (settings_service.DB_PATH_KEY, settings_service.LIBRARY_FILE_KEY,
                    settings_service.PROFILE_NAME_KEY):
            os.environ.pop(key, None)

        self.db = DatabaseManager(self.test_dir / "test.db")
        self.library = LibraryService(self.test_dir / "missing.json")
        self.analytics = AnalyticsService(self.db, self.library)
        self.service = SettingsService(self.db, self.test_dir, self.library, self.analytics)

    def tearDown(self):
        self.env_patch.stop()
        del self.service
        del self.analytics
        del self.db
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_profile_name_persists_to_env_file(self):
        self.assertEqual(self.service.profileName, "Guitarist")
        self.service.profileName = "Ada"
        self.assertEqual(self.service.profileName, "Ada")
        with open(self.test_dir / ".env", "r", encoding="utf-8") as f:
            self.assertIn(f"{settings_service.PROFILE_NAME_KEY}=Ada\n", f.readlines())

    def test_existing_env_entry_is_rewritten_in_place(self):
        key = settings_service.PROFILE_NAME_KEY
        with open(self.test_dir / ".env", "w", encoding="utf-8") as f:
            f.write(f"# profile\n{key} = Old\nOTHER=1\n")
        self.service.profileName = "Ada"
        with open(self.test_dir / ".env", "r", encoding="utf-8") as f:
            self.assertEqual(f.read(), f"# profile\n{key}=Ada\nOTHER=1\n")

    def test_library_file_reloads_catalog(self):
        self.assertEqual(self.library.items, [])
        catalog = self.test_dir / "catalog.json"
        with open(catalog, "w", encoding="utf-8") as f:
            json.dump({"items": [{"id": "a", "title": "Arpeggios", "path": "Technique/Arps"}]}, f)
        self.service.libraryFile = str(catalog)
        self.assertEqual(len(self.library.items), 1)
        self.assertEqual(self.library.resolve("a").category, "Technique")

    def test_reset_requires_confirmation(self):
        self.db.record_check_in("ex-1", "easy")
        self.assertTrue(self.service.hasPracticeHistory)

        self.assertFalse(self.service.resetHistory(False))
        self.assertEqual(self.service.totalCheckins, 1)

        self.assertTrue(self.service.resetHistory(True))
        self.assertEqual(self.service.totalCheckins, 0)
        self.assertFalse(self.service.hasPracticeHistory)

    def test_default_paths_and_env_loading(self):
        self.assertEqual(settings_service.db_path(self.test_dir), self.test_dir / "database" / "userdata.db")
        self.assertEqual(settings_service.library_file(self.test_dir), self.test_dir / "library" / "catalog.json")

        env_file = self.test_dir / "custom.env"
        with open(env_file, "w", encoding="utf-8") as f:
            f.write("# local overrides\n")
            f.write(f"{settings_service.DB_PATH_KEY}={self.test_dir / 'other.db'}\n")
        load_env_file(env_file)
        self.assertEqual(settings_service.db_path(self.test_dir), self.test_dir / "other.db")


class TestLibraryCatalog(unittest.TestCase):
    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp())

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def test_malformed_catalog_is_empty(self):
        catalog = self.test_dir / "catalog.json"
        catalog.write_text("{not json", encoding="utf-8")
        self.assertEqual(LibraryService(catalog).items, [])

    def test_resolution(self):
        catalog = self.test_dir / "catalog.json"
        with open(catalog, "w", encoding="utf-8") as f:
            json.dump({"items": [
                {"id": "t", "title": "Tremolo", "path": "Technique/Tremolo", "targetBPM": 160, "bpm": 120},
                {"id": "s", "title": "Blackbird", "path": "Songs/Blackbird", "originalBpm": 94, "duration": 420},
                {"id": "x", "title": "Warmup", "path": "Misc/Warmup"},
            ]}, f)
        library = LibraryService(catalog)

        t = library.resolve("t")
        self.assertEqual((t.target_tempo, t.planned_duration, t.category), (160, 300, "Technique"))
        s = library.resolve("s")
        self.assertEqual((s.target_tempo, s.planned_duration, s.category), (94, 420, "Songs"))
        x = library.resolve("x", {"bpm": 75})
        self.assertEqual((x.target_tempo, x.category), (75, "Exercises"))
        orphan = library.resolve("gone", {"title": "Old Drill", "bpm": 0})
        self.assertEqual((orphan.title, orphan.target_tempo, orphan.category), ("Old Drill", 120, "Exercises"))


if __name__ == "__main__":
    unittest.main()
