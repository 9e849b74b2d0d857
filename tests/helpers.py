"""
Shared fixtures for the test suite: canonical events and a fake HTTP session.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional
from urllib.parse import parse_qs, urlsplit

import requests

from unitimetable.model import CanonicalEvent


def make_event(
    program: str,
    year: int,
    title: str,
    start: str = "2025-03-10T09:00:00",
    end: str = "2025-03-10T11:00:00",
    **extra: Any,
) -> CanonicalEvent:
    return CanonicalEvent(
        title=title,
        start=datetime.fromisoformat(start),
        end=datetime.fromisoformat(end),
        year=year,
        program=program,
        **extra,
    )


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """
    Stands in for requests.Session.

    ``handler(base_url, year)`` returns a payload, a FakeResponse, or raises.
    """

    def __init__(self, handler: Callable[[str, int], Any]) -> None:
        self.handler = handler
        self.calls: list[tuple[str, Optional[float]]] = []

    def get(self, url: str, timeout: Optional[float] = None) -> FakeResponse:
        self.calls.append((url, timeout))
        parts = urlsplit(url)
        year = int(parse_qs(parts.query)["anno"][0])
        base = f"{parts.scheme}://{parts.netloc}{parts.path}"
        result = self.handler(base, year)
        if isinstance(result, FakeResponse):
            return result
        return FakeResponse(result)

    def close(self) -> None:
        pass
