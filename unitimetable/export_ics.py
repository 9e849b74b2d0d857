"""
iCalendar (.ics) export.

We convert filtered events into a calendar payload that can be imported into
(or subscribed to from):
- Google Calendar
- Outlook
- Apple Calendar

Each event becomes a plain entry dict first (date components, title,
description, location, categories, status), then the whole batch is encoded.
One malformed entry fails the whole batch.
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional

from unitimetable.model import CanonicalEvent
from unitimetable.normalize import as_utc


logger = logging.getLogger(__name__)

PRODID = "-//unitimetable//EN"
STATUSES = {"TENTATIVE", "CONFIRMED", "CANCELLED"}
BUSY_STATUSES = {"FREE", "BUSY", "TENTATIVE", "OOF"}
_UID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://corsi.unibo.it/")


class CalendarEncodeError(ValueError):
    """Raised when an entry cannot be encoded."""


def _ics_escape(text: str) -> str:
    """
    Escape text for ICS fields (very small subset, sufficient for our use).
    """
    return (
        text.replace("\\", "\\\\").replace("\r\n", "\\n").replace("\n", "\\n").replace(";", "\\;").replace(",", "\\,")
    )


def _fold(line: str) -> list[str]:
    """
    Fold a content line at 75 octets without splitting UTF-8 sequences.
    """
    out: list[str] = []
    current = ""
    size = 0
    for ch in line:
        n = len(ch.encode("utf-8"))
        if size + n > 75:
            out.append(current)
            current = " "
            size = 1
        current += ch
        size += n
    out.append(current)
    return out


def _components(value: datetime, tz: Optional[tzinfo] = None) -> tuple[int, int, int, int, int]:
    utc = as_utc(value, tz)
    return (utc.year, utc.month, utc.day, utc.hour, utc.minute)


def _location(event: CanonicalEvent) -> Optional[str]:
    if not event.rooms or not isinstance(event.rooms[0], dict):
        return None
    room = event.rooms[0]
    return f"{room.get('des_ubicazione', '')} - {room.get('des_risorsa', '')}"


def _description(event: CanonicalEvent) -> str:
    text = f"Course: {event.title}\nTeacher: {event.instructor}\nProgram: {event.program}"
    if event.note:
        text += f"\nNotes: {event.note}"
    return text


def _uid(event: CanonicalEvent, occurrence: int = 0) -> str:
    """
    Stable UID for an event.

    The first room and the occurrence number keep records that share
    program, year, title and start (same slot, other room or group) apart.
    """
    room = event.rooms[0] if event.rooms and isinstance(event.rooms[0], dict) else {}
    key = "|".join(
        [
            event.program,
            str(event.year),
            event.title,
            event.start.isoformat(),
            str(room.get("des_risorsa", "")),
            str(occurrence),
        ]
    )
    return str(uuid.uuid5(_UID_NAMESPACE, key))


def event_to_entry(event: CanonicalEvent, tz: Optional[tzinfo] = None, occurrence: int = 0) -> dict[str, Any]:
    """
    Plain entry dict for one event. Naive times are read in ``tz``.
    """
    entry: dict[str, Any] = {
        "start": _components(event.start, tz),
        "end": _components(event.end, tz),
        "title": event.title,
        "description": _description(event),
        "categories": [event.program],
        "status": "CONFIRMED",
        "busy_status": "BUSY",
        "uid": _uid(event, occurrence),
    }
    location = _location(event)
    if location is not None:
        entry["location"] = location
    return entry


def _entry_datetime(entry: dict[str, Any], field: str) -> datetime:
    value = entry.get(field)
    if not isinstance(value, (tuple, list)) or len(value) != 5:
        raise CalendarEncodeError(f"{field} must be (year, month, day, hour, minute), got {value!r}")
    if not all(isinstance(x, int) and not isinstance(x, bool) for x in value):
        raise CalendarEncodeError(f"{field} components must be integers, got {value!r}")
    try:
        return datetime(*value, tzinfo=timezone.utc)
    except ValueError as e:
        raise CalendarEncodeError(f"{field} is not a valid date: {value!r}") from e


def _encode_entry(entry: dict[str, Any], dtstamp: str) -> list[str]:
    start = _entry_datetime(entry, "start")
    end = _entry_datetime(entry, "end")
    if end < start:
        raise CalendarEncodeError(f"end {entry['end']!r} is before start {entry['start']!r}")

    title = entry.get("title")
    if not isinstance(title, str):
        raise CalendarEncodeError(f"title must be a string, got {title!r}")

    status = entry.get("status", "CONFIRMED")
    if status not in STATUSES:
        raise CalendarEncodeError(f"unknown status {status!r}")
    busy_status = entry.get("busy_status", "BUSY")
    if busy_status not in BUSY_STATUSES:
        raise CalendarEncodeError(f"unknown busy status {busy_status!r}")

    categories = entry.get("categories") or []
    if not all(isinstance(c, str) for c in categories):
        raise CalendarEncodeError(f"categories must be strings, got {categories!r}")

    uid = entry.get("uid") or str(uuid.uuid4())

    lines = [
        "BEGIN:VEVENT",
        f"UID:{_ics_escape(uid)}",
        f"DTSTAMP:{dtstamp}",
        f"DTSTART:{start.strftime('%Y%m%dT%H%M00Z')}",
        f"DTEND:{end.strftime('%Y%m%dT%H%M00Z')}",
        f"SUMMARY:{_ics_escape(title)}",
    ]
    description = entry.get("description")
    if description:
        lines.append(f"DESCRIPTION:{_ics_escape(str(description))}")
    location = entry.get("location")
    if location:
        lines.append(f"LOCATION:{_ics_escape(str(location))}")
    if categories:
        lines.append("CATEGORIES:" + ",".join(_ics_escape(c) for c in categories))
    lines.append(f"STATUS:{status}")
    lines.append(f"X-MICROSOFT-CDO-BUSYSTATUS:{busy_status}")
    lines.append("END:VEVENT")
    return lines


def encode_calendar(entries: Iterable[dict[str, Any]]) -> str:
    """
    Encode entries into iCalendar text (CRLF line endings, folded lines).

    Raises CalendarEncodeError if any entry is malformed.
    """
    dtstamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")

    lines: list[str] = []
    lines.append("BEGIN:VCALENDAR")
    lines.append("VERSION:2.0")
    lines.append(f"PRODID:{PRODID}")
    lines.append("CALSCALE:GREGORIAN")
    lines.append("METHOD:PUBLISH")

    for index, entry in enumerate(entries):
        try:
            lines.extend(_encode_entry(entry, dtstamp))
        except CalendarEncodeError as e:
            raise CalendarEncodeError(f"event #{index}: {e}") from e

    lines.append("END:VCALENDAR")

    # ICS standard uses CRLF
    folded = [part for line in lines for part in _fold(line)]
    return "\r\n".join(folded) + "\r\n"


def _entries(events: Iterable[CanonicalEvent], tz: Optional[tzinfo]) -> Iterator[dict[str, Any]]:
    seen: Counter[tuple[str, int, str, datetime]] = Counter()
    for ev in events:
        key = (ev.program, ev.year, ev.title, ev.start)
        yield event_to_entry(ev, tz, occurrence=seen[key])
        seen[key] += 1


def generate_ics(events: Iterable[CanonicalEvent], tz: Optional[tzinfo] = None) -> Optional[str]:
    """
    Build the calendar payload for events. Returns None if encoding fails.
    """
    try:
        return encode_calendar(_entries(events, tz))
    except CalendarEncodeError as e:
        logger.error(f"Error generating ICS file: {e}")
        return None


def export_events_to_ics(
    events: Iterable[CanonicalEvent],
    out_path: str | Path,
    tz: Optional[tzinfo] = None,
) -> bool:
    """
    Export events to an .ics file. Returns False if nothing was written.
    """
    content = generate_ics(events, tz)
    if content is None:
        logger.error("Failed to generate ICS content")
        return False

    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    # newline="" keeps the CRLF line endings intact
    with out.open("w", encoding="utf-8", newline="") as fh:
        fh.write(content)
    return True
