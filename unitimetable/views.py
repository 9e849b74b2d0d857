"""
Plain-text renderings of the filtered schedule.

- render_list: one block per event, sorted by start time
- render_calendar: agenda grouped by day

Both return a string so the CLI decides where it goes. An empty event list
renders as "No events." instead of an empty screen.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable

from unitimetable.filters import display_title, sort_for_list
from unitimetable.model import CanonicalEvent


EMPTY = "No events."


def _time_range(ev: CanonicalEvent) -> str:
    return f"{ev.start:%H:%M} - {ev.end:%H:%M}"


def _room_lines(ev: CanonicalEvent) -> list[str]:
    if not ev.rooms or not isinstance(ev.rooms[0], dict):
        return []
    room = ev.rooms[0]
    lines = []
    building = " - ".join(str(x) for x in (room.get("des_edificio"), room.get("des_piano")) if x)
    if building:
        lines.append(f"    Room: {building}")
    address = room.get("des_indirizzo")
    if address:
        lines.append(f"    Address: {address}")
    return lines


def render_list(events: Iterable[CanonicalEvent]) -> str:
    ordered = sort_for_list(events)
    if not ordered:
        return EMPTY

    blocks: list[str] = []
    for ev in ordered:
        header = f"{ev.start:%Y-%m-%d} {_time_range(ev)}  {display_title(ev)}"
        if ev.cfu not in (None, ""):
            header += f" ({ev.cfu} CFU)"
        lines = [header]
        if ev.instructor:
            lines.append(f"    Teacher: {ev.instructor}")
        lines.extend(_room_lines(ev))
        if ev.teams_url:
            lines.append(f"    Teams: {ev.teams_url}")
        if ev.note:
            lines.append(f"    Notes: {ev.note}")
        blocks.append("\n".join(lines))
    return "\n".join(blocks)


def render_calendar(events: Iterable[CanonicalEvent]) -> str:
    by_day: dict[date, list[CanonicalEvent]] = defaultdict(list)
    for ev in sort_for_list(events):
        by_day[ev.start.date()].append(ev)
    if not by_day:
        return EMPTY

    out: list[str] = []
    for day in sorted(by_day):
        out.append(f"{day:%A %d %B %Y}")
        for ev in by_day[day]:
            out.append(f"  {_time_range(ev)}  {display_title(ev)}")
        out.append("")
    return "\n".join(out).rstrip("\n")
