"""
Central data model definitions used across the project.

This module defines the canonical structure of timetable sources, events and
filter state so that:
- fetching, normalizing, filtering and exporting share the same field names
- derived keys are structured values, never delimiter-joined strings
- the code stays readable and easy to test
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple, Optional


class ProgramType(str, Enum):
    """Degree program kinds known to the Unibo course catalog."""

    BACHELOR = "bachelor"
    MASTER = "master"
    SINGLE_CYCLE = "single-cycle"
    UNRECOGNIZED = "unrecognized"


@dataclass
class TimetableSource:
    """
    One timetable the user tracks, as stored under ``timetableUrls``.

    ``max_years`` is the year count detected when the source was added;
    ``None`` means "derive it from the URL and name".
    """

    url: str
    name: str
    program_type: ProgramType = ProgramType.UNRECOGNIZED
    max_years: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "url": self.url,
            "name": self.name,
            "programType": self.program_type.value,
        }
        if self.max_years is not None:
            data["maxYears"] = self.max_years
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimetableSource":
        """
        Build a source from its persisted (or proxy query) form.

        Raises ValueError if ``url`` or ``name`` is missing.
        """
        url = str(data.get("url", "") or "").strip()
        name = str(data.get("name", "") or "").strip()
        if not url or not name:
            raise ValueError(f"Timetable source needs both url and name: {data!r}")

        try:
            program_type = ProgramType(data.get("programType") or ProgramType.UNRECOGNIZED.value)
        except ValueError:
            program_type = ProgramType.UNRECOGNIZED

        max_years = data.get("maxYears")
        try:
            max_years = int(max_years) if max_years is not None else None
        except (TypeError, ValueError, OverflowError):
            max_years = None
        if max_years is not None and max_years <= 0:
            max_years = None

        return cls(url=url, name=name, program_type=program_type, max_years=max_years)


class CourseKey(NamedTuple):
    """Identity of a course inside one program and year."""

    title: str
    year: int
    program: str


@dataclass(frozen=True)
class CanonicalEvent:
    """
    One validated lecture slot.

    Built from a raw API record by unitimetable.normalize; ``raw`` keeps the
    original record so no field is lost on the way to the views.
    """

    title: str
    start: datetime
    end: datetime
    year: int
    program: str
    instructor: Optional[str] = None
    cfu: Any = None
    rooms: tuple[Any, ...] = ()
    note: Optional[str] = None
    teams_url: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, hash=False, repr=False)

    @property
    def course_key(self) -> CourseKey:
        return CourseKey(self.title, self.year, self.program)


@dataclass(frozen=True)
class CourseInfo:
    key: CourseKey
    title: str
    instructor: Optional[str]
    cfu: Any


@dataclass(frozen=True)
class ProgramFacets:
    """Filter options derived for one program."""

    program: str
    years: tuple[int, ...]
    courses: tuple[CourseInfo, ...]
    configured_years: Optional[int] = None


@dataclass(frozen=True)
class ProgramFilterState:
    """
    Current selection for one program.

    Invariant: every selected course belongs to a selected year.
    """

    selected_years: frozenset[int] = frozenset()
    selected_courses: frozenset[CourseKey] = frozenset()
