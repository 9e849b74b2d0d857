"""
Normalization (raw API records -> CanonicalEvent).

- Validates and converts each record's start/end timestamps
- Drops records whose timestamps are missing, unparseable or reversed
- Passes every other field through untouched

Important rules:
- 1 raw record = at most 1 event
- A dropped record is logged, never raised
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Iterable, Optional
from zoneinfo import ZoneInfo

from unitimetable.model import CanonicalEvent


logger = logging.getLogger(__name__)

# Zone of the naive wall-clock timestamps the timetable API returns
DEFAULT_TIMEZONE = "Europe/Rome"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp ('2024-09-23T09:00:00', '2024-09-23 09:00',
    '2024-09-23T07:00:00.250Z', '...+02:00'). Returns None if unparseable.
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def as_utc(value: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """
    Aware datetime in UTC.

    Naive values are local times in ``tz`` (Europe/Rome when not given).
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz or ZoneInfo(DEFAULT_TIMEZONE))
    return value.astimezone(timezone.utc)


def _rooms(raw: dict[str, Any]) -> tuple[Any, ...]:
    # Kept positional: readers only look at rooms[0]
    rooms = raw.get("aule")
    if not isinstance(rooms, list):
        return ()
    return tuple(rooms)


def _year(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def normalize_event(raw: dict[str, Any]) -> Optional[CanonicalEvent]:
    """
    Convert one tagged raw record into a CanonicalEvent.

    Returns None (and logs a warning) if start or end is missing or invalid.
    """
    start_raw = raw.get("start")
    end_raw = raw.get("end")
    if not start_raw or not end_raw:
        logger.warning(f"Event missing start/end time: {raw.get('title')!r}")
        return None

    start = parse_timestamp(start_raw)
    end = parse_timestamp(end_raw)
    if start is None or end is None:
        logger.warning(f"Invalid date found in event {raw.get('title')!r}: start={start_raw!r} end={end_raw!r}")
        return None

    try:
        reversed_range = end < start
    except TypeError:
        logger.warning(f"Event {raw.get('title')!r} mixes naive and timezone-aware times")
        return None
    if reversed_range:
        logger.warning(f"Event {raw.get('title')!r} ends before it starts: {start_raw!r} > {end_raw!r}")
        return None

    note = raw.get("note")
    teams = raw.get("teams")

    return CanonicalEvent(
        title=str(raw.get("title") or "").strip(),
        start=start,
        end=end,
        year=_year(raw.get("year")),
        program=str(raw.get("program") or ""),
        instructor=raw.get("docente"),
        cfu=raw.get("cfu"),
        rooms=_rooms(raw),
        note=note if isinstance(note, str) and note.strip() else None,
        teams_url=teams if isinstance(teams, str) and teams.strip() else None,
        raw=dict(raw),
    )


def normalize_events(raws: Iterable[dict[str, Any]]) -> list[CanonicalEvent]:
    # Input order is kept
    events: list[CanonicalEvent] = []
    total = 0
    for raw in raws:
        total += 1
        event = normalize_event(raw)
        if event is not None:
            events.append(event)

    logger.info(f"Processed {len(events)} valid events out of {total} total")
    return events
