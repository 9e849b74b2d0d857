"""
Filtering.

Builds the program -> year -> course hierarchy from the aggregate event list
and computes the visible subset for a given selection.

An event is visible iff:
    its program has a filter state
    AND its year is selected
    AND its course key is selected
"""

from __future__ import annotations

from typing import Iterable, Optional

from unitimetable.model import CanonicalEvent, CourseInfo, CourseKey, ProgramFacets, ProgramFilterState
from unitimetable.normalize import as_utc


def derive_facets(
    events: Iterable[CanonicalEvent],
    overrides: Optional[dict[str, int]] = None,
) -> dict[str, ProgramFacets]:
    """
    Group events by program and collect the years and courses of each.

    A manual year count for a program replaces the observed years with the
    full range 1..count, even for years without events.
    """
    overrides = overrides or {}
    years: dict[str, set[int]] = {}
    courses: dict[str, dict[CourseKey, CourseInfo]] = {}

    for ev in events:
        if not ev.program:
            continue
        years.setdefault(ev.program, set()).add(ev.year)
        program_courses = courses.setdefault(ev.program, {})
        key = ev.course_key
        if key not in program_courses:
            program_courses[key] = CourseInfo(key=key, title=ev.title, instructor=ev.instructor, cfu=ev.cfu)

    facets: dict[str, ProgramFacets] = {}
    for program, seen_years in years.items():
        configured = overrides.get(program)
        if configured:
            program_years = tuple(range(1, configured + 1))
        else:
            program_years = tuple(sorted(seen_years))
        facets[program] = ProgramFacets(
            program=program,
            years=program_years,
            courses=tuple(courses[program].values()),
            configured_years=configured or None,
        )
    return facets


def initial_filter_state(facets: dict[str, ProgramFacets]) -> dict[str, ProgramFilterState]:
    """Select every year and every course of every program."""
    return {
        program: ProgramFilterState(
            selected_years=frozenset(f.years),
            selected_courses=frozenset(c.key for c in f.courses),
        )
        for program, f in facets.items()
    }


def select_years(state: ProgramFilterState, years: Iterable[int]) -> ProgramFilterState:
    """
    Replace the selected years and drop courses of deselected years.
    """
    new_years = frozenset(int(y) for y in years)
    kept = frozenset(k for k in state.selected_courses if k.year in new_years)
    return ProgramFilterState(selected_years=new_years, selected_courses=kept)


def select_courses(state: ProgramFilterState, courses: Iterable[CourseKey]) -> ProgramFilterState:
    """
    Replace the selected courses. Courses of unselected years are ignored.
    """
    kept = frozenset(k for k in courses if k.year in state.selected_years)
    return ProgramFilterState(selected_years=state.selected_years, selected_courses=kept)


def visible_courses(facets: ProgramFacets, state: ProgramFilterState) -> list[CourseInfo]:
    """Courses offered for picking: those of the selected years."""
    return [c for c in facets.courses if c.key.year in state.selected_years]


def filter_events(
    events: Iterable[CanonicalEvent],
    states: dict[str, ProgramFilterState],
) -> list[CanonicalEvent]:
    """Return the visible events, in input order."""
    out: list[CanonicalEvent] = []
    for ev in events:
        state = states.get(ev.program)
        if state is None:
            continue
        if ev.year not in state.selected_years:
            continue
        if ev.course_key not in state.selected_courses:
            continue
        out.append(ev)
    return out


def display_title(event: CanonicalEvent) -> str:
    return f"[{event.program}] {event.title}"


def sort_for_list(events: Iterable[CanonicalEvent]) -> list[CanonicalEvent]:
    return sorted(events, key=lambda ev: as_utc(ev.start))
