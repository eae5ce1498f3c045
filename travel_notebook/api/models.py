"""Shared data structures for itinerary planning and editing.

Two models live here:

* the structured itinerary (``StructuredItinerary`` → ``Day`` → ``Place``),
  a frozen, read-only projection that is replaced but never mutated, and
* the block document the notebook editor works on (``BlockDocument``), whose
  blocks are decoded once at the JSON boundary into typed variants.

JSON payloads use camelCase keys because they are exchanged with the browser
editor verbatim.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class PlaceStatus(str, Enum):
    """Lookup lifecycle of a place."""

    IDLE = "idle"
    LOADING = "loading"
    FOUND = "found"
    FREE_TEXT = "free-text"
    ERROR = "error"


class PlaceType(str, Enum):
    """Which block variant represents a place in the document."""

    PLACE = "place"
    HOTEL = "hotel"


def _compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is ``None``."""
    return {key: value for key, value in payload.items() if value is not None}


# ---------------------------------------------------------------------------
# Structured itinerary
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Place:
    """A single stop on a trip itinerary."""

    name: str
    lat: float
    lng: float
    paragraph: Optional[str] = None
    short_name: Optional[str] = None
    linked_paragraph_id: Optional[str] = None
    place_id: Optional[str] = None
    address: Optional[str] = None
    rating: Optional[float] = None
    photo_references: Tuple[str, ...] = ()
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    status: PlaceStatus = PlaceStatus.IDLE
    type: PlaceType = PlaceType.PLACE
    uid: Optional[str] = None
    driving_time_from_previous: int = 0  # minutes
    driving_distance_from_previous: int = 0  # metres
    is_day_finish: bool = False
    hide_in_map: bool = False

    def to_dict(self) -> dict:
        return _compact({
            "uid": self.uid,
            "name": self.name,
            "lat": self.lat,
            "lng": self.lng,
            "paragraph": self.paragraph,
            "shortName": self.short_name,
            "linkedParagraphId": self.linked_paragraph_id,
            "placeId": self.place_id,
            "address": self.address,
            "rating": self.rating,
            "photoReferences": list(self.photo_references),
            "description": self.description,
            "thumbnailUrl": self.thumbnail_url,
            "status": self.status.value,
            "type": self.type.value,
            "drivingTimeFromPrevious": self.driving_time_from_previous,
            "drivingDistanceFromPrevious": self.driving_distance_from_previous,
            "isDayFinish": self.is_day_finish,
            "hideInMap": self.hide_in_map,
        })


@dataclass(frozen=True)
class Day:
    """One day of the trip and its ordered places."""

    day_number: int  # 1-based
    date: str  # ISO calendar date
    title: str
    description: str = ""
    region: Optional[str] = None
    places: Tuple[Place, ...] = ()

    def to_dict(self) -> dict:
        return _compact({
            "dayNumber": self.day_number,
            "date": self.date,
            "title": self.title,
            "description": self.description,
            "region": self.region,
            "places": [place.to_dict() for place in self.places],
        })


@dataclass(frozen=True)
class StructuredItinerary:
    """Title, destination and the ordered days of a trip."""

    title: str
    destination: str
    total_days: int
    days: Tuple[Day, ...] = ()

    @property
    def total_places(self) -> int:
        return sum(len(day.places) for day in self.days)

    def get_day(self, day_number: int) -> Optional[Day]:
        for day in self.days:
            if day.day_number == day_number:
                return day
        return None

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "destination": self.destination,
            "totalDays": self.total_days,
            "days": [day.to_dict() for day in self.days],
        }


# ---------------------------------------------------------------------------
# Trip metadata, directions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TripMetadata:
    """The form fields a trip was generated from."""

    destination: str
    start_date: str
    end_date: str
    interests: Tuple[str, ...] = ()
    travel_style: str = "mid-range"
    additional_notes: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({
            "destination": self.destination,
            "startDate": self.start_date,
            "endDate": self.end_date,
            "interests": list(self.interests),
            "travelStyle": self.travel_style,
            "additionalNotes": self.additional_notes,
        })

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TripMetadata":
        return cls(
            destination=payload.get("destination") or "",
            start_date=payload.get("startDate") or "",
            end_date=payload.get("endDate") or "",
            interests=tuple(payload.get("interests") or ()),
            travel_style=payload.get("travelStyle") or "mid-range",
            additional_notes=payload.get("additionalNotes"),
        )


@dataclass(frozen=True)
class DirectionsData:
    """Route for one day, as rendered on the map."""

    day_index: int  # 0-based
    color: str
    directions_result: Dict[str, Any]

    @property
    def is_fallback_straight_line(self) -> bool:
        return bool(self.directions_result.get("isFallbackStraightLine"))

    def to_dict(self) -> dict:
        return {
            "dayIndex": self.day_index,
            "color": self.color,
            "directionsResult": self.directions_result,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DirectionsData":
        return cls(
            day_index=payload.get("dayIndex"),
            color=payload.get("color"),
            directions_result=payload.get("directionsResult"),
        )


# ---------------------------------------------------------------------------
# Block document
# ---------------------------------------------------------------------------

@dataclass
class Block(ABC):
    """Common shape of every editor block."""

    id: str
    type: str

    @abstractmethod
    def data_dict(self) -> Dict[str, Any]:
        """The block's ``data`` payload."""

    def to_dict(self) -> dict:
        return {"id": self.id, "type": self.type, "data": self.data_dict()}


@dataclass
class HeaderBlock(Block):
    text: str = ""
    level: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def data_dict(self) -> Dict[str, Any]:
        return {**self.extra, **_compact({"text": self.text, "level": self.level})}


@dataclass
class ParagraphBlock(Block):
    text: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    def data_dict(self) -> Dict[str, Any]:
        return {**self.extra, "text": self.text}


@dataclass
class DayBlock(Block):
    day_number: Optional[int] = None
    date: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    region: Optional[str] = None
    # Summaries of the places under this day; positional place blocks stay authoritative.
    places: Optional[List[Dict[str, Any]]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def data_dict(self) -> Dict[str, Any]:
        return {**self.extra, **_compact({
            "dayNumber": self.day_number,
            "date": self.date,
            "title": self.title,
            "description": self.description,
            "region": self.region,
            "places": self.places,
        })}


@dataclass
class PlaceBlock(Block):
    """A ``place`` or ``hotel`` block."""

    uid: Optional[str] = None
    name: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    place_id: Optional[str] = None
    short_name: Optional[str] = None
    linked_paragraph_id: Optional[str] = None
    address: Optional[str] = None
    rating: Optional[float] = None
    photo_references: Optional[List[str]] = None
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    status: Optional[str] = None
    notes: Optional[str] = None
    driving_time_from_previous: Optional[int] = None
    driving_distance_from_previous: Optional[int] = None
    is_day_finish: Optional[bool] = None
    hide_in_map: Optional[bool] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _FIELDS = {
        "uid": "uid",
        "name": "name",
        "lat": "lat",
        "lng": "lng",
        "placeId": "place_id",
        "shortName": "short_name",
        "linkedParagraphId": "linked_paragraph_id",
        "address": "address",
        "rating": "rating",
        "photoReferences": "photo_references",
        "description": "description",
        "thumbnailUrl": "thumbnail_url",
        "status": "status",
        "notes": "notes",
        "drivingTimeFromPrevious": "driving_time_from_previous",
        "drivingDistanceFromPrevious": "driving_distance_from_previous",
        "isDayFinish": "is_day_finish",
        "hideInMap": "hide_in_map",
    }

    @property
    def is_hotel(self) -> bool:
        return self.type == PlaceType.HOTEL.value

    @property
    def has_location(self) -> bool:
        return bool(self.name) and self.lat is not None and self.lng is not None

    def data_dict(self) -> Dict[str, Any]:
        known = {key: getattr(self, attr) for key, attr in self._FIELDS.items()}
        return {**self.extra, **_compact(known)}


@dataclass
class UnknownBlock(Block):
    """Any block type the core does not interpret; kept verbatim."""

    data: Dict[str, Any] = field(default_factory=dict)

    def data_dict(self) -> Dict[str, Any]:
        return dict(self.data)


def _split(data: Dict[str, Any], known: Dict[str, str]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    fields_, extra = {}, {}
    for key, value in data.items():
        if key in known:
            fields_[known[key]] = value
        else:
            extra[key] = value
    return fields_, extra


_HEADER_FIELDS = {"text": "text", "level": "level"}
_PARAGRAPH_FIELDS = {"text": "text"}
_DAY_FIELDS = {
    "dayNumber": "day_number",
    "date": "date",
    "title": "title",
    "description": "description",
    "region": "region",
    "places": "places",
}


_NUMERIC_PLACE_FIELDS = ("lat", "lng", "rating")


def coerce_float(value: Any) -> Optional[float]:
    """Numeric value as a float; anything unparseable becomes ``None``."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def decode_block(raw: Dict[str, Any]) -> Block:
    """Turn one JSON block into its typed variant."""
    block_id = raw.get("id") or ""
    block_type = raw.get("type") or ""
    data = raw.get("data")
    if not isinstance(data, dict):
        data = {}

    if block_type == "header":
        fields_, extra = _split(data, _HEADER_FIELDS)
        fields_.setdefault("text", "")
        return HeaderBlock(id=block_id, type=block_type, extra=extra, **fields_)
    if block_type == "paragraph":
        fields_, extra = _split(data, _PARAGRAPH_FIELDS)
        fields_.setdefault("text", "")
        return ParagraphBlock(id=block_id, type=block_type, extra=extra, **fields_)
    if block_type == "day":
        fields_, extra = _split(data, _DAY_FIELDS)
        return DayBlock(id=block_id, type=block_type, extra=extra, **fields_)
    if block_type in (PlaceType.PLACE.value, PlaceType.HOTEL.value):
        fields_, extra = _split(data, PlaceBlock._FIELDS)
        for name in _NUMERIC_PLACE_FIELDS:
            if name in fields_:
                fields_[name] = coerce_float(fields_[name])
        return PlaceBlock(id=block_id, type=block_type, extra=extra, **fields_)
    return UnknownBlock(id=block_id, type=block_type, data=dict(data))


@dataclass
class BlockDocument:
    """The editor's ordered block sequence."""

    blocks: List[Block] = field(default_factory=list)
    version: str = ""
    time: Optional[int] = None

    def to_dict(self) -> dict:
        return _compact({
            "time": self.time,
            "blocks": [block.to_dict() for block in self.blocks],
            "version": self.version,
        })

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> "BlockDocument":
        """Decode editor JSON. Malformed input yields an empty document."""
        if not isinstance(payload, dict):
            return cls()
        raw_blocks = payload.get("blocks")
        if not isinstance(raw_blocks, list):
            raw_blocks = []
        return cls(
            blocks=[decode_block(raw) for raw in raw_blocks if isinstance(raw, dict)],
            version=payload.get("version") or "",
            time=payload.get("time"),
        )


__all__ = [
    "PlaceStatus",
    "PlaceType",
    "Place",
    "Day",
    "StructuredItinerary",
    "TripMetadata",
    "DirectionsData",
    "Block",
    "HeaderBlock",
    "ParagraphBlock",
    "DayBlock",
    "PlaceBlock",
    "UnknownBlock",
    "BlockDocument",
    "decode_block",
    "coerce_float",
]
