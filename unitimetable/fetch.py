from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from unitimetable.model import TimetableSource
from unitimetable.programs import resolve_max_years


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_WORKERS = 8


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------


def build_year_url(url: str, year: int) -> str:
    """
    Return ``url`` with its ``anno`` query parameter set to ``year``.

    Every other parameter, ``curricula`` included, is kept as is.
    """
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != "anno"]
    query.insert(0, ("anno", str(year)))
    return urlunsplit(parts._replace(query=urlencode(query)))


# ---------------------------------------------------------------------------
# Core logic
# ---------------------------------------------------------------------------


def fetch_year(
    http: Any,
    source: TimetableSource,
    year: int,
    timeout: float = DEFAULT_TIMEOUT,
) -> list[dict[str, Any]]:
    """
    Fetch one year of one program and tag every event with year and program.

    ``http`` is anything with a requests-style ``get`` (the ``requests``
    module itself or a session). A response that is not a JSON array
    contributes no events.
    Raises requests.RequestException (or ValueError for bad JSON).
    """
    year_url = build_year_url(source.url, year)
    logger.debug(f"Fetching year {year} for {source.name}: {year_url}")

    resp = http.get(year_url, timeout=timeout)
    resp.raise_for_status()
    data = resp.json()

    if not isinstance(data, list):
        logger.info(f"No events found for {source.name} year {year}")
        return []

    events: list[dict[str, Any]] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        event = dict(item)
        event["year"] = year
        event["program"] = source.name
        event["_timetableUrl"] = year_url
        events.append(event)

    logger.info(f"Found {len(events)} events for {source.name} year {year}")
    return events


def _fetch_slot(
    http: Any,
    source: TimetableSource,
    year: int,
    timeout: float,
) -> list[dict[str, Any]]:
    try:
        return fetch_year(http, source, year, timeout=timeout)
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Error fetching events for {source.name} year {year}: {e}")
        return []


def fetch_schedule(
    sources: list[TimetableSource],
    overrides: Optional[dict[str, int]] = None,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    max_workers: int = DEFAULT_MAX_WORKERS,
    session: Optional[Any] = None,
) -> list[dict[str, Any]]:
    """
    Fetch every year of every source concurrently and flatten the results.

    One task per (source, year). A failing task yields no events and never
    affects its siblings. The output is ordered by source, then year,
    regardless of which request finished first.

    Without ``session`` every request goes through ``requests.get`` so no
    connection state is shared between worker threads. A given ``session``
    is used by all workers and must be safe to share.
    """
    jobs: list[tuple[TimetableSource, int]] = []
    for source in sources:
        max_years = resolve_max_years(source, overrides)
        logger.info(f"Fetching {max_years} years for {source.name}")
        jobs.extend((source, year) for year in range(1, max_years + 1))

    if not jobs:
        return []

    http = session if session is not None else requests
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(_fetch_slot, http, source, year, timeout) for source, year in jobs]
        slots = [f.result() for f in futures]

    events = [event for slot in slots for event in slot]
    logger.info(f"Total events fetched: {len(events)} from {len(sources)} programs")
    return events
