# travel_notebook/api/parser.py
"""Turn the LLM's plain-text itinerary into a ``StructuredItinerary``.

The expected grammar is the one requested by ``llm.build_itinerary_prompt``::

    ITINERARY TITLE: <title>
    DAY <n> - <YYYY-MM-DD> - <title, optionally with **Region**>
    <day description>
    **<Place Name>** (lat: <float>, lng: <float>)
    <place paragraph, optionally containing [[Short Name]]>

The parser never raises. Anything it cannot read is skipped, and missing
days are padded with placeholders so the result always has ``total_days``
days.
"""

from __future__ import annotations

import logging
import re
from datetime import date, timedelta
from typing import List, Optional

from travel_notebook.api.models import Day, Place, StructuredItinerary

logger = logging.getLogger(__name__)

TITLE_MARKER = "ITINERARY TITLE:"
PLACEHOLDER_DESCRIPTION = "Free time to explore"

_DAY_RE = re.compile(r"^DAY\s+(\d+)\s*-\s*(.+)", re.IGNORECASE)
_PLACE_RE = re.compile(
    r"\*\*(.+?)\*\*\s*\(lat:\s*([-\d.]+),\s*lng:\s*([-\d.]+)\)", re.IGNORECASE
)
_ISO_DATE_RE = re.compile(r"(\d{4}-\d{2}-\d{2})")
_REGION_RE = re.compile(r"\*\*(.+?)\*\*")
_QUOTED_REGION_RE = re.compile(r"\*\*\"([^\"]+)\"(?:\*\*)?")
_SHORT_NAME_RE = re.compile(r"\[\[(.+?)\]\]")
_WHITESPACE_RE = re.compile(r"\s+")

# Scanner states
_IDLE = "idle"
_DAY_DESCRIPTION = "collecting-day-description"
_PLACE_PARAGRAPH = "collecting-place-paragraph"


def calculate_date_for_day(start_date: str, day_offset: int) -> str:
    """Return ``start_date + day_offset`` days as an ISO date string."""
    try:
        start = date.fromisoformat(start_date)
    except (TypeError, ValueError):
        logger.warning(f"Invalid start date {start_date!r}, counting from today")
        start = date.today()
    return (start + timedelta(days=day_offset)).isoformat()


def extract_short_name(paragraph: str) -> tuple[str, str]:
    """Split ``[[Short Name]]`` out of a paragraph.

    Returns ``(paragraph_without_marker, short_name)``; the short name is
    empty when the paragraph carries no marker.
    """
    match = _SHORT_NAME_RE.search(paragraph)
    short_name = match.group(1).strip() if match else ""
    cleaned = _SHORT_NAME_RE.sub("", paragraph)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
    cleaned = re.sub(r"\s+([.,;:!?])", r"\1", cleaned)
    return cleaned, short_name


def _parse_day_header(day_number: int, rest: str, start_date: str):
    """Return ``(date, title, region)`` from the text after ``DAY n -``."""
    date_match = _ISO_DATE_RE.search(rest)
    day_date = date_match.group(1) if date_match else calculate_date_for_day(start_date, day_number - 1)

    title = _ISO_DATE_RE.sub("", rest, count=1)
    title = re.sub(r"\[?\s*Date:\s*\]?", "", title, flags=re.IGNORECASE)
    title = re.sub(r"^[\s\-\[\]]+|[\s\-\[\]]+$", "", title)

    region = None
    region_match = _REGION_RE.search(title)
    if region_match:
        region = region_match.group(1).strip().strip('"') or None
        title = title.replace("**", "").strip()

    return day_date, title or f"Day {day_number}", region


class _DayDraft:
    """Mutable accumulator for a day while its lines are being scanned."""

    def __init__(self, day_number: int, day_date: str, title: str, region: Optional[str]):
        self.day_number = day_number
        self.date = day_date
        self.title = title
        self.region = region
        self.description_parts: List[str] = []
        self.places: List[dict] = []

    def freeze(self, region: Optional[str]) -> Day:
        places = []
        for draft in self.places:
            paragraph, short_name = extract_short_name(" ".join(draft.pop("paragraph_parts")))
            places.append(Place(paragraph=paragraph, short_name=short_name, **draft))
        return Day(
            day_number=self.day_number,
            date=self.date,
            title=self.title,
            description=" ".join(self.description_parts),
            region=region,
            places=tuple(places),
        )


def parse_itinerary_response(
    raw_text: str,
    destination: str,
    start_date: str,
    total_days: int,
) -> StructuredItinerary:
    """Parse raw LLM output into a ``StructuredItinerary`` with ``total_days`` days."""
    lines = [line.strip() for line in (raw_text or "").split("\n")]
    lines = [line for line in lines if line]

    title = f"{destination} Adventure"
    for line in lines:
        marker_at = line.upper().find(TITLE_MARKER)
        if marker_at >= 0:
            title = line[marker_at + len(TITLE_MARKER):].replace("**", "").strip() or title
            break

    logger.debug(f"Parsing itinerary response ({len(lines)} lines)")

    days: List[Day] = []
    last_region: Optional[str] = None
    current: Optional[_DayDraft] = None
    state = _IDLE

    def flush_day() -> None:
        nonlocal last_region
        if current is None:
            return
        region = current.region or last_region
        last_region = region
        days.append(current.freeze(region))
        logger.debug(f"Saved day {current.day_number} with {len(current.places)} places")

    for line in lines:
        day_match = _DAY_RE.match(line)
        if day_match:
            flush_day()
            day_number = int(day_match.group(1))
            day_date, day_title, region = _parse_day_header(day_number, day_match.group(2), start_date)
            current = _DayDraft(day_number, day_date, day_title, region)
            state = _DAY_DESCRIPTION
            continue

        place_match = _PLACE_RE.search(line)
        if place_match and current is not None:
            try:
                lat = float(place_match.group(2))
                lng = float(place_match.group(3))
            except ValueError:
                logger.debug(f"Dropping place with malformed coordinates: {line}")
                continue
            current.places.append({
                "name": place_match.group(1).replace("**", "").strip(),
                "lat": lat,
                "lng": lng,
                "paragraph_parts": [],
            })
            state = _PLACE_PARAGRAPH
            continue

        if TITLE_MARKER in line.upper():
            continue

        if state == _DAY_DESCRIPTION and current is not None:
            quoted = _QUOTED_REGION_RE.search(line)
            if quoted and not current.region:
                current.region = quoted.group(1).strip()
            if line.startswith("**") and quoted is None:
                continue
            text = _QUOTED_REGION_RE.sub(lambda m: m.group(1), line).replace("**", "").strip()
            if text:
                current.description_parts.append(text)
            continue

        if line.startswith("**"):
            continue

        if state == _PLACE_PARAGRAPH and current is not None:
            current.places[-1]["paragraph_parts"].append(line)

    flush_day()

    if len(days) > total_days:
        logger.info(f"Parsed {len(days)} days, truncating to {total_days}")
        days = days[:total_days]

    # Day numbers follow position so they stay contiguous even when the model skips one.
    for index, day in enumerate(days):
        if day.day_number != index + 1:
            logger.debug(f"Renumbering day {day.day_number} to {index + 1}")
            days[index] = Day(
                day_number=index + 1,
                date=day.date,
                title=day.title,
                description=day.description,
                region=day.region,
                places=day.places,
            )

    while len(days) < total_days:
        day_number = len(days) + 1
        days.append(Day(
            day_number=day_number,
            date=calculate_date_for_day(start_date, day_number - 1),
            title=f"Day {day_number}",
            description=PLACEHOLDER_DESCRIPTION,
            region=last_region,
            places=(),
        ))

    logger.info(f"Parsing complete: {len(days)} days, {sum(len(d.places) for d in days)} places")
    return StructuredItinerary(
        title=title,
        destination=destination,
        total_days=total_days,
        days=tuple(days),
    )


__all__ = [
    "parse_itinerary_response",
    "extract_short_name",
    "calculate_date_for_day",
]
