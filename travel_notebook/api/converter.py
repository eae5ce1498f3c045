# travel_notebook/api/converter.py
"""Conversion between the structured itinerary and the editor's block document.

Day membership in the block document is positional: a ``day`` block owns
every block after it up to the next ``day`` block. ``group_blocks_by_day`` is
the one traversal that applies that rule; everything else builds on it.
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from travel_notebook.api.config import get_sync_config
from travel_notebook.api.hashing import normalize_text
from travel_notebook.api.models import (
    Block,
    BlockDocument,
    Day,
    DayBlock,
    HeaderBlock,
    ParagraphBlock,
    Place,
    PlaceBlock,
    PlaceStatus,
    PlaceType,
    StructuredItinerary,
    coerce_float,
)

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "My Itinerary"
_SUMMARY_RE = re.compile(r"(\d+)-day trip to (.+)")
_PLACE_UID_RE = re.compile(r"^place_(\d+)_(.+)$")


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------

def generate_block_id() -> str:
    """Return a fresh, unique block id."""
    return f"block_{int(time.time() * 1000)}_{secrets.token_urlsafe(6)}"


def make_place_uid(day_number: int, token) -> str:
    """Place UIDs encode their day: ``place_<dayNumber>_<token>``."""
    return f"place_{day_number}_{token}"


def _split_place_uid(uid: Optional[str]) -> Optional[Tuple[int, str]]:
    match = _PLACE_UID_RE.match(uid or "")
    if not match:
        return None
    return int(match.group(1)), match.group(2)


def day_number_from_uid(uid: Optional[str]) -> Optional[int]:
    """The day number encoded in a place UID, or ``None`` for other ids."""
    parts = _split_place_uid(uid)
    return parts[0] if parts else None


def sequence_from_uid(uid: Optional[str]) -> Optional[int]:
    """The in-day sequence of a place UID when its token is numeric."""
    parts = _split_place_uid(uid)
    if parts is None or not parts[1].isdigit():
        return None
    return int(parts[1])


# ---------------------------------------------------------------------------
# Positional grouping
# ---------------------------------------------------------------------------

@dataclass
class DayGroup:
    """A ``day`` block and the blocks it owns."""

    index: int  # 0-based position among day blocks
    day_block: DayBlock
    blocks: List[Block] = field(default_factory=list)

    @property
    def place_blocks(self) -> List[PlaceBlock]:
        return [block for block in self.blocks if isinstance(block, PlaceBlock)]


def group_blocks_by_day(document: BlockDocument) -> Tuple[List[Block], List[DayGroup]]:
    """Split a document into its preamble and its day groups.

    The preamble holds every block before the first ``day`` block.
    """
    preamble: List[Block] = []
    groups: List[DayGroup] = []
    for block in document.blocks:
        if isinstance(block, DayBlock):
            groups.append(DayGroup(index=len(groups), day_block=block))
        elif groups:
            groups[-1].blocks.append(block)
        else:
            preamble.append(block)
    return preamble, groups


# ---------------------------------------------------------------------------
# Itinerary → document
# ---------------------------------------------------------------------------

def _place_block(place: Place, day_number: int, index: int, paragraph_id: Optional[str]) -> PlaceBlock:
    return PlaceBlock(
        id=generate_block_id(),
        type=place.type.value,
        uid=place.uid or make_place_uid(day_number, index),
        name=place.name,
        lat=place.lat,
        lng=place.lng,
        place_id=place.place_id or "",
        short_name=place.short_name or "",
        linked_paragraph_id=paragraph_id or "",
        address=place.address or "",
        rating=place.rating or 0,
        photo_references=list(place.photo_references),
        description=place.description or "",
        thumbnail_url=place.thumbnail_url or "",
        status=place.status.value,
        notes="",
        driving_time_from_previous=place.driving_time_from_previous,
        driving_distance_from_previous=place.driving_distance_from_previous,
        is_day_finish=place.is_day_finish,
        hide_in_map=place.hide_in_map,
    )


def itinerary_to_document(itinerary: StructuredItinerary, version: Optional[str] = None) -> BlockDocument:
    """Lay an itinerary out as editor blocks.

    Order: title header, trip summary paragraph, then per day a ``day`` block,
    its description paragraph and each place/hotel block followed by its
    narrative paragraph.
    """
    blocks: List[Block] = [
        HeaderBlock(id=generate_block_id(), type="header", text=itinerary.title, level=1),
        ParagraphBlock(
            id=generate_block_id(),
            type="paragraph",
            text=f"{itinerary.total_days}-day trip to {itinerary.destination}",
        ),
    ]

    for day in itinerary.days:
        summaries = []
        day_blocks: List[Block] = []
        for index, place in enumerate(day.places):
            paragraph_id = generate_block_id() if place.paragraph and place.paragraph.strip() else None
            place_block = _place_block(place, day.day_number, index, paragraph_id)
            summaries.append({
                "uid": place_block.uid,
                "name": place.name,
                "lat": place.lat,
                "lng": place.lng,
            })
            day_blocks.append(place_block)
            if paragraph_id:
                day_blocks.append(ParagraphBlock(id=paragraph_id, type="paragraph", text=place.paragraph.strip()))

        blocks.append(DayBlock(
            id=generate_block_id(),
            type="day",
            day_number=day.day_number,
            date=day.date,
            title=day.title,
            region=day.region or "",
            places=summaries,
        ))
        if day.description:
            blocks.append(ParagraphBlock(id=generate_block_id(), type="paragraph", text=day.description))
        blocks.extend(day_blocks)

    return BlockDocument(
        blocks=blocks,
        version=version or get_sync_config()["editor_version"],
        time=int(time.time() * 1000),
    )


# ---------------------------------------------------------------------------
# Document → itinerary
# ---------------------------------------------------------------------------

def _coerce_status(value: Optional[str]) -> PlaceStatus:
    try:
        return PlaceStatus(value)
    except ValueError:
        return PlaceStatus.IDLE


def _place_from_block(block: PlaceBlock, paragraph: str) -> Place:
    return Place(
        name=block.name,
        lat=float(block.lat or 0),
        lng=float(block.lng or 0),
        paragraph=paragraph,
        short_name=block.short_name or "",
        linked_paragraph_id=block.linked_paragraph_id or None,
        place_id=block.place_id or None,
        address=block.address or None,
        rating=block.rating or None,
        photo_references=tuple(block.photo_references or ()),
        description=block.description or None,
        thumbnail_url=block.thumbnail_url or None,
        status=_coerce_status(block.status),
        type=PlaceType.HOTEL if block.is_hotel else PlaceType.PLACE,
        uid=block.uid,
        driving_time_from_previous=block.driving_time_from_previous or 0,
        driving_distance_from_previous=block.driving_distance_from_previous or 0,
        is_day_finish=bool(block.is_day_finish),
        hide_in_map=bool(block.hide_in_map),
    )


def _day_from_group(group: DayGroup, inherited_region: Optional[str]) -> Day:
    paragraphs = {block.id: block for block in group.blocks if isinstance(block, ParagraphBlock)}
    description_parts: List[str] = []
    places: List[Place] = []

    seen_place = False
    for position, block in enumerate(group.blocks):
        if isinstance(block, ParagraphBlock):
            # Text before the first place describes the day.
            if not seen_place and block.text:
                description_parts.append(normalize_text(block.text))
            continue
        if not isinstance(block, PlaceBlock):
            continue
        seen_place = True
        if not block.name:
            continue

        linked = paragraphs.get(block.linked_paragraph_id) if block.linked_paragraph_id else None
        if linked is None and position + 1 < len(group.blocks):
            following = group.blocks[position + 1]
            if isinstance(following, ParagraphBlock):
                linked = following
        places.append(_place_from_block(block, linked.text if linked else ""))

    day_block = group.day_block
    day_number = group.index + 1
    return Day(
        day_number=day_number,
        date=day_block.date or "",
        title=day_block.title or f"Day {day_number}",
        description=" ".join(part for part in description_parts if part) or (day_block.description or ""),
        region=day_block.region or inherited_region,
        places=tuple(places),
    )


def document_to_itinerary(document: BlockDocument) -> StructuredItinerary:
    """Project a block document onto a read-only ``StructuredItinerary``."""
    preamble, groups = group_blocks_by_day(document)

    title = DEFAULT_TITLE
    destination = ""
    for block in preamble:
        if isinstance(block, HeaderBlock) and title == DEFAULT_TITLE and normalize_text(block.text):
            title = normalize_text(block.text)
        elif isinstance(block, ParagraphBlock) and not destination:
            match = _SUMMARY_RE.search(normalize_text(block.text))
            if match:
                destination = match.group(2).strip()

    days: List[Day] = []
    region: Optional[str] = None
    for group in groups:
        day = _day_from_group(group, region)
        region = day.region
        days.append(day)

    return StructuredItinerary(
        title=title,
        destination=destination,
        total_days=len(days),
        days=tuple(days),
    )


# ---------------------------------------------------------------------------
# Document edits and checks
# ---------------------------------------------------------------------------

_DETAIL_FIELDS = {
    "placeId": "place_id",
    "name": "name",
    "address": "address",
    "lat": "lat",
    "lng": "lng",
    "rating": "rating",
    "photoReferences": "photo_references",
    "description": "description",
    "thumbnailUrl": "thumbnail_url",
}


def update_place_in_document(document: BlockDocument, uid: str, details: Dict[str, Any]) -> BlockDocument:
    """Return a copy of ``document`` with lookup ``details`` applied to one place.

    The place is matched by uid (or block id) and marked ``found``; the
    owning day block's place summary is updated as well.
    """
    changes = {attr: details[key] for key, attr in _DETAIL_FIELDS.items() if key in details}
    for attr in ("lat", "lng", "rating"):
        if attr in changes:
            changes[attr] = coerce_float(changes[attr])
    blocks: List[Block] = []
    for block in document.blocks:
        if isinstance(block, PlaceBlock) and uid in (block.uid, block.id):
            block = replace(block, status=PlaceStatus.FOUND.value, **changes)
        elif isinstance(block, DayBlock) and block.places:
            summaries = []
            for summary in block.places:
                if summary.get("uid") == uid:
                    summary = {**summary, **{k: details[k] for k in ("name", "lat", "lng") if k in details}}
                summaries.append(summary)
            block = replace(block, places=summaries)
        blocks.append(block)
    return replace(document, blocks=blocks, time=int(time.time() * 1000))


def validate_document(document: BlockDocument) -> List[str]:
    """Return structural problems with a document; empty when valid."""
    errors: List[str] = []
    if not any(isinstance(block, HeaderBlock) for block in document.blocks):
        errors.append("Editor data must have at least one header block")

    day_blocks = [block for block in document.blocks if isinstance(block, DayBlock)]
    if not day_blocks:
        errors.append("Editor data must have at least one day block")

    for block in day_blocks:
        if not block.day_number or not block.date:
            errors.append(f"Day block {block.id} is missing required fields")

    day_numbers = [block.day_number for block in day_blocks]
    if len(day_numbers) != len(set(day_numbers)):
        errors.append("Duplicate day numbers found")

    return errors


__all__ = [
    "DayGroup",
    "generate_block_id",
    "make_place_uid",
    "day_number_from_uid",
    "sequence_from_uid",
    "group_blocks_by_day",
    "itinerary_to_document",
    "document_to_itinerary",
    "update_place_in_document",
    "validate_document",
]
