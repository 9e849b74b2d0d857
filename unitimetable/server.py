"""
Calendar proxy.

Serves the aggregated timetable of the requested programs as an .ics file so
calendar apps can subscribe to it:

    GET /calendar.ics?urls=<url-encoded JSON array of {"url", "name"}>

Run with ``unitimetable serve`` (uvicorn).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional
from urllib.parse import quote, unquote, urlsplit

from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.responses import Response

from unitimetable.config import AppSettings, get_settings
from unitimetable.export_ics import generate_ics
from unitimetable.fetch import fetch_schedule
from unitimetable.model import TimetableSource
from unitimetable.normalize import normalize_events
from unitimetable.programs import MAX_YEARS


logger = logging.getLogger(__name__)

main_router = APIRouter()


def parse_urls_param(value: str) -> list[TimetableSource]:
    """
    Decode the ``urls`` query parameter into timetable sources.

    Accepts the JSON directly or still percent-encoded once more (browsers
    that double-encode). Raises ValueError on anything else, including a
    ``maxYears`` above the longest program length.
    """
    try:
        data = json.loads(value)
    except json.JSONDecodeError:
        try:
            data = json.loads(unquote(value))
        except json.JSONDecodeError as e:
            raise ValueError(f"urls is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ValueError("urls must be a JSON array")

    sources: list[TimetableSource] = []
    for item in data:
        if not isinstance(item, dict):
            raise ValueError(f"urls entries must be objects, got {item!r}")
        source = TimetableSource.from_dict(item)
        if source.max_years is not None and source.max_years > MAX_YEARS:
            raise ValueError(f"maxYears must be at most {MAX_YEARS}, got {source.max_years}")
        sources.append(source)
    return sources


def subscription_url(sources: Iterable[TimetableSource], base_url: str) -> str:
    """
    Build the webcal:// link calendar apps subscribe to.
    """
    parts = urlsplit(base_url.rstrip("/"))
    payload = json.dumps([{"url": s.url, "name": s.name} for s in sources], separators=(",", ":"))
    return f"webcal://{parts.netloc}{parts.path}/calendar.ics?urls={quote(payload, safe='')}"


@main_router.get("/health")
def health_check() -> dict:
    """Health check endpoint"""
    return {"status": "ok"}


@main_router.get("/calendar.ics")
def calendar_ics(request: Request, urls: Optional[str] = Query(default=None)) -> Response:
    """
    Fetch every requested program and return all events as one calendar.
    """
    settings: AppSettings = request.app.state.settings

    if not urls:
        raise HTTPException(status_code=400, detail="No calendar URLs provided")

    try:
        sources = parse_urls_param(urls)
    except ValueError as e:
        logger.warning(f"Rejected calendar request: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid calendar URLs: {e}") from e

    logger.info(f"Calendar requested for {len(sources)} programs")
    raw_events = fetch_schedule(
        sources,
        timeout=settings.request_timeout_sec,
        max_workers=settings.max_workers,
    )
    content = generate_ics(normalize_events(raw_events), settings.tzinfo)
    if content is None:
        raise HTTPException(status_code=500, detail="Error generating calendar")

    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{settings.calendar_filename}"'},
    )


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    app = FastAPI(title="unitimetable calendar proxy", version="0.1.0")
    app.state.settings = settings or get_settings()
    app.include_router(main_router)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> Any:
        logger.error(f"Error serving {request.method} {request.url.path}: {exc}", exc_info=True)
        return Response(content="Internal server error", status_code=500, media_type="text/plain")

    return app
