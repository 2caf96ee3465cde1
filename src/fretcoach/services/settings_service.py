import os
from pathlib import Path
from PySide6.QtCore import QObject, Property, Slot, Signal # type: ignore

DB_PATH_KEY = "FRETCOACH_DB_PATH"
LIBRARY_FILE_KEY = "FRETCOACH_LIBRARY_FILE"
PROFILE_NAME_KEY = "FRETCOACH_PROFILE_NAME"


def _read_env_lines(env_file: Path) -> list:
    if not env_file.exists():
        return []
    try:
        return env_file.read_text(encoding="utf-8").splitlines()
    except UnicodeDecodeError:
        # Files saved by Notepad on Windows
        return env_file.read_text(encoding="utf-16").splitlines()


def _parse_env_line(line: str):
    """(key, value) for a KEY=value line, None for blanks and comments."""
    line = line.strip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, val = line.split("=", 1)
    return key.strip(), val.strip()


def load_env_file(env_file: Path):
    """Populate os.environ from a KEY=value file without overriding variables already set."""
    for line in _read_env_lines(env_file):
        entry = _parse_env_line(line)
        if entry:
            os.environ.setdefault(*entry)


def db_path(project_root: Path) -> Path:
    return Path(os.environ.get(DB_PATH_KEY) or project_root / "database" / "userdata.db")


def library_file(project_root: Path) -> Path:
    return Path(os.environ.get(LIBRARY_FILE_KEY) or project_root / "library" / "catalog.json")


class SettingsService(QObject):
    profileChanged = Signal()
    libraryChanged = Signal()
    statsChanged = Signal()

    def __init__(self, db_manager, project_root, library=None, analytics=None):
        super().__init__()
        self.db = db_manager
        self.library = library
        self.analytics = analytics
        self.env_file = project_root / ".env"

    # ── Generic .env helpers ──────────────────────────────────────────

    def _get_env(self, key: str, default: str = "") -> str:
        return os.environ.get(key, default)

    def _set_env(self, key: str, val: str):
        """Update the process environment and rewrite the matching .env entry in place."""
        if os.environ.get(key) == val:
            return
        os.environ[key] = val
        entry = f"{key}={val}"
        try:
            lines = _read_env_lines(self.env_file)
            keys = [(_parse_env_line(line) or (None,))[0] for line in lines]
            if key in keys:
                lines[keys.index(key)] = entry
            else:
                lines.append(entry)
            self.env_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as e:
            print(f"SettingsService: Failed to write {key} to .env: {e}")

    # ── Profile ───────────────────────────────────────────────────────

    @Property(str, notify=profileChanged)
    def profileName(self) -> str:
        return self._get_env(PROFILE_NAME_KEY, "Guitarist")

    @profileName.setter # type: ignore
    def profileName(self, val: str):
        if self._get_env(PROFILE_NAME_KEY) != val:
            self._set_env(PROFILE_NAME_KEY, val)
            self.db.set_profile_name(val)
            self.profileChanged.emit()

    # ── Library ───────────────────────────────────────────────────────

    @Property(str, notify=libraryChanged)
    def libraryFile(self) -> str:
        return self._get_env(LIBRARY_FILE_KEY, "")

    @libraryFile.setter # type: ignore
    def libraryFile(self, val: str):
        self._set_env(LIBRARY_FILE_KEY, val)
        if self.library is not None:
            self.library.reload(Path(val))
        self.libraryChanged.emit()
        self.statsChanged.emit()

    # ── Stats & Reset ─────────────────────────────────────────────────

    @Property(int, notify=statsChanged)
    def totalCheckins(self) -> int:
        return self.db.get_total_checkins()

    @Property(bool, notify=statsChanged)
    def hasPracticeHistory(self) -> bool:
        return self.db.get_total_checkins() > 0

    @Slot(bool, result=bool)
    def resetHistory(self, confirmed: bool) -> bool:
        """Wipe all practice history. Does nothing unless the user confirmed."""
        if not confirmed:
            print("SettingsService: History reset requested without confirmation, ignoring")
            return False
        if self.analytics is not None:
            ok = self.analytics.clear_history().get("success", False)
        else:
            self.db.clear_history()
            ok = True
        self.statsChanged.emit()
        return ok
