import sys
from pathlib import Path
from datetime import datetime, timedelta

# Add src to the path
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root / "src"))

from fretcoach.services.database_manager import DatabaseManager # type: ignore
from fretcoach.services.library_service import LibraryService # type: ignore
from fretcoach.services.analytics_service import AnalyticsService # type: ignore

def main():
    db_path = project_root / "database" / "demo_userdata.db"

    # Clean up previous runs
    if db_path.exists():
        db_path.unlink()

    print("Seeding demo practice history...")
    db = DatabaseManager(db_path)
    library = LibraryService(project_root / "library" / "catalog.json")
    analytics = AnalyticsService(db, library)

    # 1. Legacy check-ins from last week (no session id, 20 minutes apart)
    last_week = datetime.now() - timedelta(days=7)
    print("Inserting legacy check-ins from a week ago...")
    db.record_check_in("technique-alternate-picking", "good", baseline_bpm=90,
                       actual_duration=300, planned_duration=300, timestamp=last_week)
    db.record_check_in("songs-wonderwall", "easy", baseline_bpm=80,
                       actual_duration=240, timestamp=last_week + timedelta(minutes=20))

    # 2. A second legacy sitting the same evening, more than 45 minutes later
    db.record_check_in("technique-alternate-picking", "hard", actual_duration=150,
                       planned_duration=300, timestamp=last_week + timedelta(hours=3))

    # 3. Today's live run, with a long pause in the middle
    today = datetime.now() - timedelta(hours=2)
    print("Inserting today's live session...")
    db.record_check_in("technique-alternate-picking", "manual", explicit_bpm=120, confidence=4,
                       actual_duration=300, planned_duration=300, session_id="demo-run",
                       timestamp=today)
    db.record_check_in("theory-modes", "good", confidence=3, actual_duration=600,
                       session_id="demo-run", timestamp=today + timedelta(minutes=80))

    print("\nGlobal stats:")
    print(analytics.get_global_stats())

    print("\nMastery trend:")
    for row in analytics.get_mastery_trend():
        print(f"- {row['title']:<22} {row['date']} {row['timeLabel']}  mastery {row['mastery']:>3}%  "
              f"tempo {row['bpmPercent']:>3}%  quality {row['quality']}")

    print("\nCategories:")
    for row in analytics.get_category_breakdown():
        print(f"- {row['name']}: {row['sessions']} check-ins, {row['hours']}h, +{row['growth']} BPM")

    trend = analytics.get_mastery_trend()
    if len(trend) != 3:
        print(f"ERROR: Expected 3 sessions, got {len(trend)}.")
        sys.exit(1)

    print("\nDemo completed successfully.")

if __name__ == "__main__":
    main()
