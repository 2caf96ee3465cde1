"""
FretCoach Companion - Main Entry Point

Wires the practice store, library catalog and analytics services into the
QML progress dashboard. REAPER and the tab viewer are driven by their own
integrations and are not started from here.
"""
from PySide6.QtGui import QGuiApplication # type: ignore
from PySide6.QtQml import QQmlApplicationEngine # type: ignore
from PySide6.QtCore import QObject, Property # type: ignore
import sys
import os
from pathlib import Path

# --- Frozen vs Dev Environment ---
if getattr(sys, 'frozen', False):
    project_root = Path(sys._MEIPASS)
    ui_dir = project_root / "ui"
else:
    project_root = Path(__file__).parent.parent
    ui_dir = project_root / "src" / "ui"

from fretcoach.services.database_manager import DatabaseManager # type: ignore
from fretcoach.services.library_service import LibraryService # type: ignore
from fretcoach.services.analytics_service import AnalyticsService # type: ignore
from fretcoach.services.practice_session_service import PracticeSessionService # type: ignore
from fretcoach.services.settings_service import SettingsService, load_env_file, db_path, library_file # type: ignore


class AppState(QObject):
    def __init__(self):
        super().__init__()
        self.db = DatabaseManager(db_path(project_root))
        self.library = LibraryService(library_file(project_root))
        self.analytics = AnalyticsService(self.db, self.library)
        self.practice = PracticeSessionService(self.db, self.library)
        self.settings = SettingsService(self.db, project_root, self.library, self.analytics)

        # Refresh charts after every check-in and whenever the catalog changes
        self.practice.checkInRecorded.connect(lambda *_: self.analytics.refresh())
        self.settings.libraryChanged.connect(self.analytics.refresh)
        print(f"AppState: Practice store at {self.db.db_path}")

    @Property(QObject, constant=True)
    def analyticsService(self):
        return self.analytics

    @Property(QObject, constant=True)
    def practiceSession(self):
        return self.practice

    @Property(QObject, constant=True)
    def settingsService(self):
        return self.settings


def main():
    # Load env vars manually for local testing
    load_env_file(project_root / ".env")

    # Use the Basic style to allow full customization of UI components (removes native warnings)
    os.environ["QT_QUICK_CONTROLS_STYLE"] = "Basic"

    app = QGuiApplication(sys.argv)
    engine = QQmlApplicationEngine()

    app_state = AppState()
    engine.rootContext().setContextProperty("appState", app_state)
    engine.addImportPath(str(ui_dir))
    engine.load(os.fspath(ui_dir / "Main.qml"))

    if not engine.rootObjects():
        sys.exit(-1)

    sys.exit(app.exec())

if __name__ == "__main__":
    main()
