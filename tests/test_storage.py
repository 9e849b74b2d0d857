"""
Unit tests for the settings store.

Storage contract:
- Missing/invalid file -> default sources, no overrides
- JSON schema: {"timetableUrls": [...], "programYears": {...}}
- Every change is written back immediately
- Removing the last source of a program drops its year override
"""

import json
import tempfile
import unittest
from pathlib import Path

from unitimetable.model import ProgramType, TimetableSource
from unitimetable.storage import DEFAULT_SOURCES, JsonFileStore, KeyValueStore, SettingsStore


def _source(name: str, url: str = "https://corsi.unibo.it/laurea/x/orario-lezioni/@@orario_reale_json") -> TimetableSource:
    return TimetableSource(url=url, name=name, program_type=ProgramType.BACHELOR, max_years=3)


class TestJsonFileStore(unittest.TestCase):
    def test_load_missing_file_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            store = JsonFileStore(Path(d) / "missing.json")
            store.load()
            self.assertIsNone(store.get("timetableUrls"))

    def test_corrupted_file_loads_empty(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "settings.json"
            p.write_text("{not json", encoding="utf-8")
            store = JsonFileStore(p)
            store.load()
            self.assertIsNone(store.get("programYears"))

    def test_set_and_delete_persist(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "nested" / "settings.json"
            store = JsonFileStore(p)
            store.set("programYears", {"X": 4})
            self.assertEqual(json.loads(p.read_text(encoding="utf-8")), {"programYears": {"X": 4}})

            store.delete("programYears")
            self.assertEqual(json.loads(p.read_text(encoding="utf-8")), {})


class TestSettingsStore(unittest.TestCase):
    def test_defaults_when_nothing_saved(self) -> None:
        settings = SettingsStore(KeyValueStore())
        self.assertEqual(settings.sources(), list(DEFAULT_SOURCES))
        self.assertEqual(settings.program_years(), {})

    def test_add_and_reload_roundtrip(self) -> None:
        with tempfile.TemporaryDirectory() as d:
            p = Path(d) / "settings.json"
            settings = SettingsStore.open(p)
            settings.save_sources([])
            self.assertTrue(settings.add_source(_source("Economics")))
            self.assertFalse(settings.add_source(_source("Economics")))

            reloaded = SettingsStore.open(p)
            self.assertEqual([s.name for s in reloaded.sources()], ["Economics"])
            self.assertEqual(reloaded.sources()[0].max_years, 3)

            data = json.loads(p.read_text(encoding="utf-8"))
            self.assertEqual(data["timetableUrls"][0]["programType"], "bachelor")

    def test_remove_last_source_drops_override(self) -> None:
        settings = SettingsStore(KeyValueStore())
        settings.save_sources([_source("A"), _source("B")])
        settings.set_program_years("A", 4)
        settings.set_program_years("B", 2)

        self.assertTrue(settings.remove_source("A"))
        self.assertEqual([s.name for s in settings.sources()], ["B"])
        self.assertEqual(settings.program_years(), {"B": 2})
        self.assertFalse(settings.remove_source("A"))

    def test_malformed_entries_are_skipped(self) -> None:
        settings = SettingsStore(
            KeyValueStore(
                {
                    "timetableUrls": [{"url": "https://x"}, "junk", {"url": "https://y", "name": "Y"}],
                    "programYears": {"Y": "5", "Z": "abc", "W": 0},
                }
            )
        )
        self.assertEqual([s.name for s in settings.sources()], ["Y"])
        self.assertEqual(settings.program_years(), {"Y": 5})

    def test_year_override_must_be_positive(self) -> None:
        settings = SettingsStore(KeyValueStore())
        with self.assertRaises(ValueError):
            settings.set_program_years("X", 0)
        self.assertFalse(settings.clear_program_years("X"))


if __name__ == "__main__":
    unittest.main()
