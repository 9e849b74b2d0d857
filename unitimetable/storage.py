"""
Persistent storage for the user's timetable settings.

Two keys are kept in one JSON document:

    timetableUrls  -> list of timetable sources ({url, name, programType, maxYears})
    programYears   -> {program name: number of study years} manual overrides

The key-value store is injected into SettingsStore instead of living in a
module global, so tests (and the proxy) can hand in their own file or an
in-memory store. The file is read once by load() and written back on every
change.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from unitimetable.model import ProgramType, TimetableSource


logger = logging.getLogger(__name__)

TIMETABLE_URLS_KEY = "timetableUrls"
PROGRAM_YEARS_KEY = "programYears"

DEFAULT_SOURCES = (
    TimetableSource(
        url="https://corsi.unibo.it/2cycle/DigitalTransformationManagement/timetable/@@orario_reale_json",
        name="Digital Transformation Management",
        program_type=ProgramType.MASTER,
        max_years=2,
    ),
)


def _default_settings_path() -> Path:
    """
    Return the default settings file inside the user's home directory.

    Using a function instead of a constant makes testing easier,
    because tests can override the path.
    """
    return Path.home() / ".unitimetable" / "settings.json"


class KeyValueStore:
    """In-memory key-value store with explicit load/save hooks."""

    def __init__(self, data: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def load(self) -> None:
        pass

    def save(self) -> None:
        pass

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.save()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self.save()


class JsonFileStore(KeyValueStore):
    """
    Key-value store persisted as a single JSON object.

    A missing or corrupted file loads as an empty store: the application
    never crashes because of its own settings file.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        super().__init__()
        self.path = Path(path) if path is not None else _default_settings_path()

    def load(self) -> None:
        self._data = {}
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return
        if isinstance(data, dict):
            self._data = data
        else:
            logger.warning(f"Ignoring settings file {self.path}: expected a JSON object")

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._data, indent=2, ensure_ascii=False), encoding="utf-8")


class SettingsStore:
    """Timetable sources and per-program year overrides."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    @classmethod
    def open(cls, path: str | Path | None = None) -> "SettingsStore":
        store = JsonFileStore(path)
        store.load()
        return cls(store)

    # -- sources --------------------------------------------------------

    def sources(self) -> list[TimetableSource]:
        """
        Return the saved sources, or the default list if none were ever saved.

        Malformed entries are skipped.
        """
        raw = self.store.get(TIMETABLE_URLS_KEY)
        if raw is None:
            return list(DEFAULT_SOURCES)
        if not isinstance(raw, list):
            return []

        out: list[TimetableSource] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            try:
                out.append(TimetableSource.from_dict(item))
            except ValueError as e:
                logger.warning(f"Skipping saved timetable source: {e}")
        return out

    def save_sources(self, sources: Iterable[TimetableSource]) -> None:
        self.store.set(TIMETABLE_URLS_KEY, [s.to_dict() for s in sources])

    def add_source(self, source: TimetableSource) -> bool:
        """
        Add a source. Returns False if one with the same name already exists.
        """
        sources = self.sources()
        if any(s.name == source.name for s in sources):
            return False
        sources.append(source)
        self.save_sources(sources)
        return True

    def remove_source(self, name: str) -> bool:
        """
        Remove the source called ``name``.

        The program's year override goes with it once no source uses the
        name anymore.
        """
        sources = self.sources()
        remaining = [s for s in sources if s.name != name]
        if len(remaining) == len(sources):
            return False
        self.save_sources(remaining)

        if not any(s.name == name for s in remaining):
            self.clear_program_years(name)
        return True

    # -- year overrides -------------------------------------------------

    def program_years(self) -> dict[str, int]:
        raw = self.store.get(PROGRAM_YEARS_KEY)
        if not isinstance(raw, dict):
            return {}
        out: dict[str, int] = {}
        for program, years in raw.items():
            try:
                n = int(years)
            except (TypeError, ValueError):
                continue
            if n > 0:
                out[str(program)] = n
        return out

    def set_program_years(self, program: str, years: int) -> None:
        if years <= 0:
            raise ValueError(f"Year count must be positive, got {years}")
        overrides = self.program_years()
        overrides[program] = int(years)
        self.store.set(PROGRAM_YEARS_KEY, overrides)

    def clear_program_years(self, program: str) -> bool:
        overrides = self.program_years()
        if program not in overrides:
            return False
        del overrides[program]
        self.store.set(PROGRAM_YEARS_KEY, overrides)
        return True
