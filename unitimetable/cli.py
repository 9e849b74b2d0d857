"""
CLI (Command Line Interface).

This module provides terminal commands for managing timetable sources and for
viewing or exporting the aggregated schedule, e.g.:

    unitimetable sources
    unitimetable add-source <course url> [--name NAME] [--curriculum CODE]
    unitimetable remove-source <name>
    unitimetable set-years <program> <n>
    unitimetable clear-years <program>
    unitimetable facets --years "Economics=1"
    unitimetable list --years "Economics=1,2"
    unitimetable calendar --program Economics
    unitimetable export <file.ics> --course "Economics=Public Economics"
    unitimetable subscribe-url
    unitimetable serve

Note:
- The view commands fetch the timetables live on every run
- Output is plain text; diagnostics go to the log (use --verbose)
"""

from __future__ import annotations

import argparse
import logging
from collections import defaultdict
from typing import Optional

from unitimetable.config import AppSettings, get_settings, setup_logging
from unitimetable.export_ics import export_events_to_ics
from unitimetable.fetch import fetch_schedule
from unitimetable.filters import (
    derive_facets,
    filter_events,
    initial_filter_state,
    select_courses,
    select_years,
    visible_courses,
)
from unitimetable.model import CanonicalEvent, ProgramFacets, ProgramFilterState
from unitimetable.normalize import normalize_events
from unitimetable.programs import InvalidTimetableUrl, make_source, resolve_max_years
from unitimetable.server import subscription_url
from unitimetable.storage import SettingsStore
from unitimetable.views import render_calendar, render_list


logger = logging.getLogger(__name__)


def _split_assignment(text: str) -> tuple[str, str]:
    """
    Split 'PROGRAM=VALUE' at the first '='. Raises ValueError if there is none.
    """
    program, sep, value = text.partition("=")
    if not sep or not program.strip() or not value.strip():
        raise ValueError(f"Expected PROGRAM=VALUE, got {text!r}")
    return program.strip(), value.strip()


def build_filter_states(
    facets: dict[str, ProgramFacets],
    programs: Optional[list[str]] = None,
    years: Optional[list[str]] = None,
    courses: Optional[list[str]] = None,
) -> dict[str, ProgramFilterState]:
    """
    Turn the CLI filter options into per-program filter states.

    Starts from "everything selected", then:
    - --program keeps only the named programs
    - --years PROGRAM=1,2 selects years (pruning courses of other years)
    - --course PROGRAM=TITLE restricts the program to the named courses
    Raises ValueError on malformed options.
    """
    states = initial_filter_state(facets)

    if programs:
        unknown = [p for p in programs if p not in states]
        for p in unknown:
            print(f"Warning: program '{p}' has no events.")
        states = {p: s for p, s in states.items() if p in programs}

    for item in years or []:
        program, value = _split_assignment(item)
        try:
            selected = [int(y) for y in value.split(",") if y.strip()]
        except ValueError as e:
            raise ValueError(f"Years must be integers, got {value!r}") from e
        if program not in states:
            print(f"Warning: program '{program}' is not shown, ignoring --years.")
            continue
        states[program] = select_years(states[program], selected)

    titles_by_program: dict[str, set[str]] = defaultdict(set)
    for item in courses or []:
        program, title = _split_assignment(item)
        titles_by_program[program].add(title)

    for program, titles in titles_by_program.items():
        if program not in states:
            print(f"Warning: program '{program}' is not shown, ignoring --course.")
            continue
        keys = [c.key for c in facets[program].courses if c.title in titles]
        states[program] = select_courses(states[program], keys)

    return states


def _load_events(store: SettingsStore, settings: AppSettings) -> list[CanonicalEvent]:
    raw = fetch_schedule(
        store.sources(),
        store.program_years(),
        timeout=settings.request_timeout_sec,
        max_workers=settings.max_workers,
    )
    return normalize_events(raw)


def _filtered(args: argparse.Namespace, store: SettingsStore, settings: AppSettings) -> list[CanonicalEvent]:
    events = _load_events(store, settings)
    facets = derive_facets(events, store.program_years())
    states = build_filter_states(facets, args.program, args.years, args.course)
    visible = filter_events(events, states)
    logger.debug(f"{len(visible)} of {len(events)} events visible")
    return visible


def _cmd_sources(args: argparse.Namespace, store: SettingsStore) -> int:
    sources = store.sources()
    if not sources:
        print("No timetables configured.")
        return 0

    overrides = store.program_years()
    for s in sources:
        years = resolve_max_years(s, overrides)
        marker = " (manual)" if s.name in overrides else ""
        print(f"{s.name} | {s.program_type.value} | {years} years{marker} | {s.url}")
    return 0


def _cmd_add_source(args: argparse.Namespace, store: SettingsStore) -> int:
    try:
        source = make_source(args.url, name=args.name, curriculum=args.curriculum)
    except InvalidTimetableUrl as e:
        print(f"Error: {e}")
        return 1

    if not store.add_source(source):
        print(f"Already configured: {source.name}")
        return 1

    print(f"Added: {source.name} ({source.program_type.value}, {source.max_years} years)")
    return 0


def _cmd_remove_source(args: argparse.Namespace, store: SettingsStore) -> int:
    name = (args.name or "").strip()
    if not store.remove_source(name):
        print(f"Not configured: {name}")
        return 1
    print(f"Removed: {name}")
    return 0


def _cmd_set_years(args: argparse.Namespace, store: SettingsStore) -> int:
    if args.years <= 0:
        print("Year count must be positive.")
        return 1
    store.set_program_years(args.program, args.years)
    print(f"{args.program}: {args.years} years")
    return 0


def _cmd_clear_years(args: argparse.Namespace, store: SettingsStore) -> int:
    if not store.clear_program_years(args.program):
        print(f"No manual year count for {args.program}")
        return 0
    print(f"{args.program}: year count detected automatically")
    return 0


def _cmd_facets(args: argparse.Namespace, store: SettingsStore, settings: AppSettings) -> int:
    events = _load_events(store, settings)
    facets = derive_facets(events, store.program_years())
    states = build_filter_states(facets, args.program, args.years, args.course)
    if not states:
        print("No events.")
        return 0

    for program, state in states.items():
        years = ", ".join(str(y) for y in sorted(state.selected_years))
        print(f"{program} (years: {years})")
        for c in visible_courses(facets[program], state):
            cfu = f", {c.cfu} CFU" if c.cfu not in (None, "") else ""
            instructor = f" - {c.instructor}" if c.instructor else ""
            hidden = "" if c.key in state.selected_courses else " (hidden)"
            print(f"  [{c.key.year}] {c.title}{instructor}{cfu}{hidden}")
    return 0


def _cmd_list(args: argparse.Namespace, store: SettingsStore, settings: AppSettings) -> int:
    print(render_list(_filtered(args, store, settings)))
    return 0


def _cmd_calendar(args: argparse.Namespace, store: SettingsStore, settings: AppSettings) -> int:
    print(render_calendar(_filtered(args, store, settings)))
    return 0


def _cmd_export(args: argparse.Namespace, store: SettingsStore, settings: AppSettings) -> int:
    out_path = (args.out or "").strip()
    if not out_path:
        print("Please provide output .ics path.")
        return 1

    events = _filtered(args, store, settings)
    if not export_events_to_ics(events, out_path, settings.tzinfo):
        print("Failed to generate calendar file.")
        return 1

    print(f"Exported {len(events)} events to: {out_path}")
    return 0


def _cmd_subscribe_url(args: argparse.Namespace, store: SettingsStore, settings: AppSettings) -> int:
    sources = store.sources()
    if not sources:
        print("No timetables configured.")
        return 1
    print(subscription_url(sources, args.base_url or settings.public_base_url))
    return 0


def _cmd_serve(args: argparse.Namespace, settings: AppSettings) -> int:
    import uvicorn

    from unitimetable.server import create_app

    uvicorn.run(
        create_app(settings),
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def _add_filter_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--program", action="append", help="Only show this program (repeatable)")
    p.add_argument("--years", action="append", metavar="PROGRAM=1,2", help="Selected years of a program")
    p.add_argument("--course", action="append", metavar="PROGRAM=TITLE", help="Only show this course (repeatable)")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="unitimetable", description="Unibo timetable aggregator")
    parser.add_argument("--settings", type=str, default=None, help="Settings file (default: ~/.unitimetable/settings.json)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("sources", help="List configured timetables")

    p_add = sub.add_parser("add-source", help="Add a timetable from a course page URL")
    p_add.add_argument("url", type=str, help="Course URL (e.g. https://corsi.unibo.it/laurea/economia)")
    p_add.add_argument("--name", type=str, default=None, help="Display name (default: derived from URL)")
    p_add.add_argument("--curriculum", type=str, default=None, help="Curriculum code")

    p_remove = sub.add_parser("remove-source", help="Remove a timetable by name")
    p_remove.add_argument("name", type=str, help="Timetable name")

    p_years = sub.add_parser("set-years", help="Set the number of study years of a program")
    p_years.add_argument("program", type=str, help="Program name")
    p_years.add_argument("years", type=int, help="Number of years")

    p_clear = sub.add_parser("clear-years", help="Forget a manual year count")
    p_clear.add_argument("program", type=str, help="Program name")

    p_facets = sub.add_parser("facets", help="Show programs, selected years and their courses")
    _add_filter_options(p_facets)

    p_list = sub.add_parser("list", help="List events sorted by start time")
    _add_filter_options(p_list)

    p_cal = sub.add_parser("calendar", help="Show events grouped by day")
    _add_filter_options(p_cal)

    p_export = sub.add_parser("export", help="Export filtered events to .ics")
    p_export.add_argument("out", type=str, help="Output file path (e.g. out.ics)")
    _add_filter_options(p_export)

    p_sub = sub.add_parser("subscribe-url", help="Print the webcal:// subscription URL")
    p_sub.add_argument("--base-url", type=str, default=None, help="Public URL of the calendar proxy")

    p_serve = sub.add_parser("serve", help="Run the calendar proxy")
    p_serve.add_argument("--host", type=str, default=None)
    p_serve.add_argument("--port", type=int, default=None)

    return parser


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging("DEBUG" if args.verbose else settings.log_level)

    if args.command == "serve":
        raise SystemExit(_cmd_serve(args, settings))

    store = SettingsStore.open(args.settings or settings.settings_path)

    if args.command == "sources":
        raise SystemExit(_cmd_sources(args, store))
    if args.command == "add-source":
        raise SystemExit(_cmd_add_source(args, store))
    if args.command == "remove-source":
        raise SystemExit(_cmd_remove_source(args, store))
    if args.command == "set-years":
        raise SystemExit(_cmd_set_years(args, store))
    if args.command == "clear-years":
        raise SystemExit(_cmd_clear_years(args, store))

    try:
        if args.command == "facets":
            raise SystemExit(_cmd_facets(args, store, settings))
        if args.command == "list":
            raise SystemExit(_cmd_list(args, store, settings))
        if args.command == "calendar":
            raise SystemExit(_cmd_calendar(args, store, settings))
        if args.command == "export":
            raise SystemExit(_cmd_export(args, store, settings))
        if args.command == "subscribe-url":
            raise SystemExit(_cmd_subscribe_url(args, store, settings))
    except ValueError as e:
        print(f"Error: {e}")
        raise SystemExit(1)

    raise SystemExit(2)
