# travel_notebook/api/services/itinerary_service.py
"""Service layer for itinerary generation."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from travel_notebook.api.config import get_sync_config
from travel_notebook.api.converter import itinerary_to_document, validate_document
from travel_notebook.api.directions import generate_directions_with_times
from travel_notebook.api.errors import GenerationError, ValidationError
from travel_notebook.api.llm import SYSTEM_PROMPT, build_itinerary_prompt, complete
from travel_notebook.api.models import BlockDocument, DirectionsData, StructuredItinerary, TripMetadata
from travel_notebook.api.parser import parse_itinerary_response
from travel_notebook.api.places import enrich_itinerary

logger = logging.getLogger(__name__)

TRAVEL_STYLES = (
    "budget",
    "mid-range",
    "luxury",
    "backpacker",
    "family",
    "business",
    "adventure",
    "romantic",
)
MAX_DESTINATION_LENGTH = 100
MAX_INTERESTS = 15
MAX_NOTES_LENGTH = 1000


@dataclass
class GenerationRequest:
    """The trip form as submitted by the user."""

    destination: str
    start_date: str
    end_date: str
    interests: List[str] = field(default_factory=list)
    travel_style: str = "mid-range"
    additional_notes: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "GenerationRequest":
        interests = payload.get("interests") or []
        if isinstance(interests, str):
            interests = [part.strip() for part in interests.split(",") if part.strip()]
        return cls(
            destination=(payload.get("destination") or "").strip(),
            start_date=payload.get("startDate") or "",
            end_date=payload.get("endDate") or "",
            interests=list(interests),
            travel_style=payload.get("travelStyle") or "mid-range",
            additional_notes=payload.get("additionalNotes") or None,
        )

    def to_metadata(self) -> TripMetadata:
        return TripMetadata(
            destination=self.destination,
            start_date=self.start_date,
            end_date=self.end_date,
            interests=tuple(self.interests),
            travel_style=self.travel_style,
            additional_notes=self.additional_notes,
        )


@dataclass
class GenerationResult:
    """Everything a fresh itinerary needs to be opened in the editor."""

    itinerary: StructuredItinerary
    document: BlockDocument
    directions: List[DirectionsData]
    metadata: TripMetadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "itinerary": self.itinerary.to_dict(),
            "editorData": self.document.to_dict(),
            "directions": [d.to_dict() for d in self.directions],
            "metadata": self.metadata.to_dict(),
        }


def _parse_date(value: str, label: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a date in YYYY-MM-DD format")


class ItineraryService:
    """Handles itinerary generation."""

    @staticmethod
    def validate_request(request: GenerationRequest, today: Optional[date] = None) -> Tuple[date, date]:
        """Validate a generation request.

        Args:
            request: The submitted trip form
            today: Reference date for the "not in the past" rule

        Returns:
            The parsed ``(start, end)`` dates

        Raises:
            ValidationError: If any field is invalid
        """
        today = today or date.today()

        if not request.destination:
            raise ValidationError("Destination is required")
        if len(request.destination) > MAX_DESTINATION_LENGTH:
            raise ValidationError(f"Destination must be at most {MAX_DESTINATION_LENGTH} characters")

        start = _parse_date(request.start_date, "Start date")
        end = _parse_date(request.end_date, "End date")
        if start < today:
            raise ValidationError("Start date cannot be in the past")
        if end < start:
            raise ValidationError("End date must be on or after the start date")

        max_days = get_sync_config()["max_trip_days"]
        if (end - start).days + 1 > max_days:
            raise ValidationError(f"Trips can be at most {max_days} days long")

        if not request.interests:
            raise ValidationError("Select at least one interest")
        if len(request.interests) > MAX_INTERESTS:
            raise ValidationError(f"Select at most {MAX_INTERESTS} interests")

        if request.travel_style not in TRAVEL_STYLES:
            raise ValidationError(f"Unknown travel style: {request.travel_style}")

        if request.additional_notes and len(request.additional_notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"Additional notes must be at most {MAX_NOTES_LENGTH} characters")

        return start, end

    @staticmethod
    def generate_itinerary(request: GenerationRequest) -> GenerationResult:
        """Generate a new itinerary for the given trip form.

        Args:
            request: The submitted trip form

        Returns:
            The enriched itinerary, its block document, directions and metadata

        Raises:
            ValidationError: If the request is invalid
            GenerationError: If the LLM call fails or returns nothing
        """
        start, end = ItineraryService.validate_request(request)
        total_days = (end - start).days + 1

        logger.info(f"Generating itinerary for {request.destination}, {total_days} days")
        prompt = build_itinerary_prompt(
            destination=request.destination,
            start_date=request.start_date,
            end_date=request.end_date,
            total_days=total_days,
            interests=request.interests,
            travel_style=request.travel_style,
            additional_notes=request.additional_notes,
        )
        raw_text = complete(SYSTEM_PROMPT, prompt)
        if not raw_text.strip():
            raise GenerationError("The model returned an empty itinerary")

        itinerary = parse_itinerary_response(raw_text, request.destination, request.start_date, total_days)
        itinerary = enrich_itinerary(itinerary)

        directions: List[DirectionsData] = []
        try:
            directions, itinerary = generate_directions_with_times(itinerary)
        except Exception as e:
            # Directions are optional; the itinerary is still usable without them
            logger.error(f"Failed to generate directions (continuing anyway): {e}")

        document = itinerary_to_document(itinerary)
        for problem in validate_document(document):
            logger.warning(f"Generated document: {problem}")
        logger.info(
            f"Generated '{itinerary.title}': {len(itinerary.days)} days, "
            f"{itinerary.total_places} places, {len(directions)} routes"
        )
        return GenerationResult(
            itinerary=itinerary,
            document=document,
            directions=directions,
            metadata=request.to_metadata(),
        )


# Export for use in other modules
__all__ = ["ItineraryService", "GenerationRequest", "GenerationResult", "TRAVEL_STYLES"]
