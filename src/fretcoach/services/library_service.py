"""
LibraryService: read-only view of the exercise catalog.

The catalog is a JSON file produced by the library browser:

    {"items": [{"id": "...", "title": "...", "path": "Technique/Alternate Picking",
                "targetBPM": 140, "originalBpm": 120, "bpm": 90, "duration": 300}]}

Lookups by id are O(1); the analytics queries call them once per exercise.
"""
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from fretcoach.services.scoring import (  # type: ignore
    DEFAULT_PLANNED_DURATION_SEC, resolve_target_tempo,
)
from fretcoach.services.trend import categorize  # type: ignore


@dataclass(frozen=True)
class Exercise:
    id: str
    title: str
    category: str
    target_tempo: int
    planned_duration: int
    path: str = ""


class LibraryService:
    def __init__(self, catalog_file: Path):
        self._catalog_file = catalog_file
        self._items: Dict[str, dict] = {}
        self.reload()

    def reload(self, catalog_file: Optional[Path] = None):
        """(Re)load the catalog. A missing or unreadable file leaves an empty catalog."""
        if catalog_file is not None:
            self._catalog_file = catalog_file
        self._items = {}
        if not self._catalog_file.exists():
            print(f"LibraryService: WARNING: {self._catalog_file} not found, using empty catalog")
            return
        try:
            with open(self._catalog_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            print(f"LibraryService: Failed to read catalog {self._catalog_file}: {e}")
            return

        items = data.get("items", []) if isinstance(data, dict) else data
        for item in items:
            if isinstance(item, dict) and item.get("id"):
                self._items[str(item["id"])] = item
        print(f"LibraryService: Loaded {len(self._items)} catalog items")

    @property
    def items(self) -> list:
        return list(self._items.values())

    def get_item(self, exercise_id: str) -> Optional[dict]:
        return self._items.get(exercise_id)

    def resolve(self, exercise_id: str, stored: Optional[dict] = None) -> Exercise:
        """
        Exercise context used for scoring: current target tempo, planned
        duration and category. Exercises missing from the catalog fall back to
        what the practice store knows about them, so their history still counts.
        """
        item = self._items.get(exercise_id)
        stored = stored or {}
        if item is None:
            return Exercise(
                id=exercise_id,
                title=stored.get("title") or "Unknown Exercise",
                category="Exercises",
                target_tempo=resolve_target_tempo(None, None, stored.get("bpm")),
                planned_duration=DEFAULT_PLANNED_DURATION_SEC,
            )

        path = item.get("path", "")
        return Exercise(
            id=exercise_id,
            title=item.get("title") or stored.get("title") or "Unknown Exercise",
            category=categorize(path),
            target_tempo=resolve_target_tempo(
                item.get("targetBPM"),
                item.get("originalBpm") or item.get("originalBPM"),
                item.get("bpm") or stored.get("bpm"),
            ),
            planned_duration=item.get("duration") or DEFAULT_PLANNED_DURATION_SEC,
            path=path,
        )
