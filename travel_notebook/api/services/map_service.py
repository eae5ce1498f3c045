# travel_notebook/api/services/map_service.py
"""Service layer for map-related operations."""

import logging
from typing import Any, Dict, List

from travel_notebook.api.converter import group_blocks_by_day
from travel_notebook.api.directions import get_day_color
from travel_notebook.api.models import BlockDocument, PlaceBlock

logger = logging.getLogger(__name__)

UNASSIGNED_COLOR = "#6B7280"


class MapService:
    """Projects the block document onto what the map renders."""

    @staticmethod
    def validate_coordinates(lat: float, lng: float) -> bool:
        """Validate that coordinates are within valid ranges.

        Args:
            lat: Latitude
            lng: Longitude

        Returns:
            True if valid, False otherwise
        """
        return -90 <= lat <= 90 and -180 <= lng <= 180

    @staticmethod
    def _is_mappable(block: PlaceBlock) -> bool:
        if not block.has_location or block.hide_in_map:
            return False
        # A place still at 0,0 has never been positioned
        if block.lat == 0 and block.lng == 0:
            return False
        return MapService.validate_coordinates(block.lat, block.lng)

    @staticmethod
    def _map_place(block: PlaceBlock, day_index: int, number: int) -> Dict[str, Any]:
        place = {
            "uid": block.uid,
            "name": block.name,
            "type": block.type,
            "coordinates": {"lat": block.lat, "lng": block.lng},
            "dayIndex": day_index,
            "placeNumberInDay": number,
            "color": get_day_color(day_index),
            "placeId": block.place_id,
            "thumbnailUrl": block.thumbnail_url,
            "drivingTimeFromPrevious": block.driving_time_from_previous,
            "drivingDistanceFromPrevious": block.driving_distance_from_previous,
        }
        return {key: value for key, value in place.items() if value is not None}

    @staticmethod
    def document_to_map_data(document: BlockDocument) -> Dict[str, List[Dict[str, Any]]]:
        """Build the day list and the numbered place markers for the map.

        Args:
            document: The editor's block document

        Returns:
            ``{"days": [...], "places": [...]}``; places without a name or
            position, and hidden places, are left out
        """
        _, groups = group_blocks_by_day(document)
        days = []
        places = []

        for group in groups:
            days.append({
                "index": group.index,
                "title": group.day_block.title or f"Day {group.index + 1}",
                "date": group.day_block.date,
                "color": get_day_color(group.index),
            })

            number = 0
            for block in group.place_blocks:
                if not MapService._is_mappable(block):
                    logger.debug(f"Skipping unmapped place: {block.name!r}")
                    continue
                number += 1
                places.append(MapService._map_place(block, group.index, number))

        logger.debug(f"Map data: {len(days)} days, {len(places)} places")
        return {"days": days, "places": places}

    @staticmethod
    def calculate_bounds(map_data: Dict[str, Any]) -> Dict[str, Any]:
        """Calculate bounding box for all places in map data.

        Args:
            map_data: Output of ``document_to_map_data``

        Returns:
            Dictionary with north, south, east, west bounds
        """
        lats = [place["coordinates"]["lat"] for place in map_data.get("places", [])]
        lngs = [place["coordinates"]["lng"] for place in map_data.get("places", [])]

        if not lats or not lngs:
            return {}

        return {
            "north": max(lats),
            "south": min(lats),
            "east": max(lngs),
            "west": min(lngs),
        }


def document_to_map_data(document: BlockDocument) -> Dict[str, List[Dict[str, Any]]]:
    return MapService.document_to_map_data(document)


# Export for use in other modules
__all__ = ["MapService", "document_to_map_data"]
