"""
Program classification and timetable URL handling.

Unibo course pages live under a path whose first segment names the degree
type, e.g.

    https://corsi.unibo.it/2cycle/DigitalTransformationManagement
    https://corsi.unibo.it/laurea/economia-e-commercio/orario-lezioni

The JSON timetable for a program is served at

    <origin>/<type>/<slug>/<timetable|orario-lezioni>/@@orario_reale_json

and takes ``anno`` (year of study) and ``curricula`` query parameters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qs, parse_qsl, urlencode, urlsplit, urlunsplit

from unitimetable.model import ProgramType, TimetableSource


logger = logging.getLogger(__name__)

UNIBO_HOST = "corsi.unibo.it"
JSON_SUFFIX = "@@orario_reale_json"

DEFAULT_YEARS: dict[ProgramType, int] = {
    ProgramType.BACHELOR: 3,
    ProgramType.MASTER: 2,
    ProgramType.SINGLE_CYCLE: 6,
}
FALLBACK_YEARS = 3
# Longest program (single-cycle); caps year counts from untrusted input
MAX_YEARS = max(DEFAULT_YEARS.values())

_PATH_TYPES: dict[str, ProgramType] = {
    "laurea": ProgramType.BACHELOR,
    "1cycle": ProgramType.BACHELOR,
    "magistrale": ProgramType.MASTER,
    "2cycle": ProgramType.MASTER,
    "magistralecu": ProgramType.SINGLE_CYCLE,
    "singlecycle": ProgramType.SINGLE_CYCLE,
}

# Italian program pages use "orario-lezioni", English ones "timetable"
_ITALIAN_PATH_TYPES = {"laurea", "magistralecu"}

_SINGLE_CYCLE_URL_HINTS = ("single-cycle", "ciclo-unico", "ciclounico")
_SINGLE_CYCLE_NAME_HINTS = ("single cycle", "ciclo unico", "6 year", "6-year")


class InvalidTimetableUrl(ValueError):
    """Raised when a URL cannot be turned into a Unibo timetable endpoint."""


def _path_segments(url: str) -> list[str]:
    return [p for p in urlsplit(url).path.split("/") if p]


def classify_program(url: str, name: str = "") -> ProgramType:
    """
    Classify a program by its timetable URL, then by its display name.

    The URL path segment is authoritative. The name is only consulted when
    the URL says nothing, and only recognizes single-cycle hints.
    Anything else is UNRECOGNIZED.
    """
    segments = [s.lower() for s in _path_segments(url)]
    for segment in segments:
        if segment in _PATH_TYPES:
            return _PATH_TYPES[segment]

    lowered_url = url.lower()
    if any(hint in lowered_url for hint in _SINGLE_CYCLE_URL_HINTS):
        return ProgramType.SINGLE_CYCLE

    lowered_name = (name or "").lower()
    if any(hint in lowered_name for hint in _SINGLE_CYCLE_NAME_HINTS):
        return ProgramType.SINGLE_CYCLE

    return ProgramType.UNRECOGNIZED


def default_years(program_type: ProgramType) -> int:
    return DEFAULT_YEARS.get(program_type, FALLBACK_YEARS)


def resolve_max_years(source: TimetableSource, overrides: Optional[dict[str, int]] = None) -> int:
    """
    Number of study years to request for a source.

    Order: per-program override, the year count stored with the source,
    then the classification default.
    """
    override = (overrides or {}).get(source.name)
    if isinstance(override, int) and override > 0:
        return override

    if source.max_years:
        return source.max_years

    program_type = source.program_type
    if program_type is ProgramType.UNRECOGNIZED:
        program_type = classify_program(source.url, source.name)

    if program_type is ProgramType.UNRECOGNIZED:
        logger.warning(
            "Could not classify program %r from %s, assuming %d years",
            source.name,
            source.url,
            FALLBACK_YEARS,
        )
    return default_years(program_type)


def program_name_from_slug(slug: str) -> str:
    """'digital-transformation-management' -> 'Digital Transformation Management'"""
    return " ".join(word[:1].upper() + word[1:].lower() for word in slug.split("-") if word)


@dataclass
class NormalizedUrl:
    url: str
    program_name: str
    program_type: ProgramType
    max_years: int
    anno: Optional[int]
    curricula: Optional[str]


def normalize_timetable_url(url: str) -> NormalizedUrl:
    """
    Turn any Unibo course page URL into its JSON timetable endpoint.

    Raises InvalidTimetableUrl when the URL is not a Unibo degree program
    page or carries an out-of-range ``anno``.
    """
    cleaned = (url or "").strip().rstrip("/")
    parts = urlsplit(cleaned)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidTimetableUrl(f"Invalid URL format: {url!r}")
    if UNIBO_HOST not in parts.netloc:
        raise InvalidTimetableUrl(f"Not a valid Unibo course URL: {url!r}")

    segments = _path_segments(cleaned)
    if not segments:
        raise InvalidTimetableUrl(f"Invalid course URL format: {url!r}")

    type_segment = segments[0].lower()
    program_type = _PATH_TYPES.get(type_segment)
    if program_type is None:
        raise InvalidTimetableUrl(f"Not a valid degree program URL: {url!r}")
    if len(segments) < 2:
        raise InvalidTimetableUrl(f"Invalid course URL format: {url!r}")

    max_years = default_years(program_type)

    query = parse_qs(parts.query)
    curricula = (query.get("curricula") or [None])[0] or None
    anno_raw = (query.get("anno") or [None])[0]
    anno: Optional[int] = None
    if anno_raw:
        try:
            anno = int(anno_raw)
        except ValueError:
            anno = None
        if anno is None or not 1 <= anno <= max_years:
            raise InvalidTimetableUrl(
                f"Invalid year. This is a {max_years}-year program, "
                f"year must be between 1 and {max_years}"
            )

    endpoint = "orario-lezioni" if type_segment in _ITALIAN_PATH_TYPES else "timetable"
    base = f"{parts.scheme}://{parts.netloc}/{segments[0]}/{segments[1]}"
    json_url = f"{base}/{endpoint}/{JSON_SUFFIX}"

    params: list[tuple[str, str]] = []
    if anno is not None:
        params.append(("anno", str(anno)))
    if curricula:
        params.append(("curricula", curricula))
    if params:
        json_url = f"{json_url}?{urlencode(params)}"

    return NormalizedUrl(
        url=json_url,
        program_name=program_name_from_slug(segments[1]),
        program_type=program_type,
        max_years=max_years,
        anno=anno,
        curricula=curricula,
    )


def make_source(url: str, name: Optional[str] = None, curriculum: Optional[str] = None) -> TimetableSource:
    """
    Build a TimetableSource from a user-supplied course URL.

    ``curriculum`` overrides the URL's own ``curricula`` parameter.
    """
    if curriculum:
        parts = urlsplit(url.strip())
        query = [(k, v) for k, v in parse_qsl(parts.query) if k != "curricula"]
        query.append(("curricula", curriculum))
        url = urlunsplit(parts._replace(query=urlencode(query)))

    normalized = normalize_timetable_url(url)

    display = (name or "").strip()
    if not display:
        display = normalized.program_name
        if normalized.curricula:
            display = f"{display} - {normalized.curricula}"

    return TimetableSource(
        url=normalized.url,
        name=display,
        program_type=normalized.program_type,
        max_years=normalized.max_years,
    )
