# travel_notebook/api/directions.py
"""Driving directions per day, with a straight-line fallback.

Each day is routed through its visible places in order. From day 2 on the
route starts at the previous day's ending place, so the first stop of a day
carries a driving time from where the traveller finished the day before.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from googlemaps.exceptions import Timeout, TransportError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from travel_notebook.api.converter import make_place_uid
from travel_notebook.api.errors import EnrichmentError
from travel_notebook.api.models import DirectionsData, Place, PlaceType, StructuredItinerary
from travel_notebook.api.places import _get_client, haversine_km

logger = logging.getLogger(__name__)

DAY_COLORS = (
    "#3B82F6",  # blue
    "#10B981",  # emerald
    "#F59E0B",  # amber
    "#EF4444",  # red
    "#8B5CF6",  # violet
    "#F97316",  # orange
    "#06B6D4",  # cyan
    "#84CC16",  # lime
    "#EC4899",  # pink
    "#6B7280",  # gray
    "#14B8A6",  # teal
    "#F43F5E",  # rose
    "#8B5A3C",  # brown
    "#2563EB",  # dark blue
    "#DC2626",  # dark red
)

Coordinate = Dict[str, Any]  # {"lat", "lng", "uid", "name"}
DirectionsFn = Callable[[List[Coordinate]], Dict[str, Any]]


def get_day_color(day_index: int) -> str:
    """Colour for a 0-based day index; the palette wraps around."""
    return DAY_COLORS[day_index % len(DAY_COLORS)]


# ────────────────────────────────────────────────────────────────────────────────
# Provider calls
# ────────────────────────────────────────────────────────────────────────────────

def _latlng(coordinate: Coordinate) -> Tuple[float, float]:
    return coordinate["lat"], coordinate["lng"]


def _request_summary(coordinates: Sequence[Coordinate]) -> Dict[str, Any]:
    return {
        "origin": {"lat": coordinates[0]["lat"], "lng": coordinates[0]["lng"]},
        "destination": {"lat": coordinates[-1]["lat"], "lng": coordinates[-1]["lng"]},
        "waypoints": [
            {"location": {"lat": c["lat"], "lng": c["lng"]}} for c in coordinates[1:-1]
        ],
        "travelMode": "driving",
        "unitSystem": "metric",
    }


def build_straight_line_response(coordinates: Sequence[Coordinate]) -> Dict[str, Any]:
    """Directions-shaped response joining the stops with straight lines.

    Leg distances are great-circle metres; durations are zero since there is
    no travel time to report.
    """
    legs = []
    for start, end in zip(coordinates, coordinates[1:]):
        metres = haversine_km(start["lat"], start["lng"], end["lat"], end["lng"]) * 1000
        legs.append({
            "distance": {"text": f"{metres / 1000:.1f} km", "value": round(metres)},
            "duration": {"text": "0 min", "value": 0},
            "start_location": {"lat": start["lat"], "lng": start["lng"]},
            "end_location": {"lat": end["lat"], "lng": end["lng"]},
        })

    return {
        "routes": [{
            "legs": legs,
            # Raw coordinates rather than an encoded polyline
            "overview_polyline": {"points": "|".join(f"{c['lat']},{c['lng']}" for c in coordinates)},
        }],
        "status": "OK",
        "isFallbackStraightLine": True,
        "request": _request_summary(coordinates),
    }


@retry(
    retry=retry_if_exception_type((Timeout, TransportError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, max=4),
    reraise=True,
)
def _fetch_routes(client, coordinates: Sequence[Coordinate]) -> List[Dict[str, Any]]:
    return client.directions(
        _latlng(coordinates[0]),
        _latlng(coordinates[-1]),
        mode="driving",
        waypoints=[_latlng(c) for c in coordinates[1:-1]] or None,
        units="metric",
    )


def calculate_directions(coordinates: Sequence[Coordinate]) -> Dict[str, Any]:
    """Driving route through ``coordinates`` in order.

    Args:
        coordinates: At least two stops, each with ``lat`` and ``lng``

    Returns:
        A directions response. When no driving route exists the straight-line
        fallback is returned, tagged ``isFallbackStraightLine``.

    Raises:
        ValueError: If fewer than two stops are given
        EnrichmentError: If no Google Maps client is configured
    """
    if len(coordinates) < 2:
        raise ValueError("At least two places are needed for directions")

    client = _get_client()
    if client is None:
        raise EnrichmentError("No Google Maps client available")

    logger.debug(f"Requesting directions for {len(coordinates)} places")
    routes = _fetch_routes(client, coordinates)
    if not routes:
        logger.warning(f"No driving route for {len(coordinates)} places, using straight-line fallback")
        return build_straight_line_response(coordinates)

    return {
        "routes": routes,
        "status": "OK",
        "isFallbackStraightLine": False,
        "request": _request_summary(coordinates),
    }


def _legs(response: Dict[str, Any]) -> Optional[List[Dict[str, Any]]]:
    routes = response.get("routes") or []
    if not routes:
        return None
    return routes[0].get("legs") or []


def extract_driving_times(response: Dict[str, Any], coordinates: Sequence[Coordinate]) -> List[int]:
    """Minutes from the previous stop, one entry per stop (first is 0)."""
    legs = _legs(response)
    if legs is None:
        logger.warning("No routes found in directions response")
        return [0] * len(coordinates)
    return [0] + [int(leg["duration"]["value"] / 60 + 0.5) for leg in legs]


def extract_driving_distances(response: Dict[str, Any], coordinates: Sequence[Coordinate]) -> List[int]:
    """Metres from the previous stop, one entry per stop (first is 0)."""
    legs = _legs(response)
    if legs is None:
        return [0] * len(coordinates)
    return [0] + [int(leg["distance"]["value"]) for leg in legs]


# ────────────────────────────────────────────────────────────────────────────────
# Day rules
# ────────────────────────────────────────────────────────────────────────────────

def is_routable(place: Place) -> bool:
    """Visible places with a name and a real position take part in routing."""
    return bool(place.name) and not place.hide_in_map and not (place.lat == 0 and place.lng == 0)


def find_day_ending_place(places: Sequence[Place]) -> Optional[Place]:
    """Where the day finishes.

    The place flagged ``is_day_finish`` wins; otherwise the last place that
    is not a hotel; otherwise the last place. Hidden places never count.
    """
    visible = [place for place in places if not place.hide_in_map]
    if not visible:
        return None

    for place in visible:
        if place.is_day_finish:
            return place

    non_hotels = [place for place in visible if place.type != PlaceType.HOTEL]
    return non_hotels[-1] if non_hotels else visible[-1]


def _coordinate(place: Place, uid: str) -> Coordinate:
    return {"lat": place.lat, "lng": place.lng, "uid": uid, "name": place.name}


def generate_directions_with_times(
    itinerary: StructuredItinerary,
    directions_fn: Optional[DirectionsFn] = None,
) -> Tuple[List[DirectionsData], StructuredItinerary]:
    """Route every day and write driving times back onto the places.

    A day that fails to route is logged and skipped; the others still
    get directions.

    Returns:
        ``(directions, updated_itinerary)``
    """
    directions_fn = directions_fn or calculate_directions
    directions: List[DirectionsData] = []
    timings: Dict[Tuple[int, int], Tuple[int, int]] = {}
    previous_end: Optional[Coordinate] = None

    for day_index, day in enumerate(itinerary.days):
        stops = [(index, place) for index, place in enumerate(day.places) if is_routable(place)]
        route = [
            _coordinate(place, place.uid or make_place_uid(day.day_number, index))
            for index, place in stops
        ]
        origin = previous_end if day_index > 0 else None

        ending = find_day_ending_place([place for _, place in stops])
        previous_end = _coordinate(ending, ending.uid or ending.name) if ending else None

        if origin is not None and route:
            route = [origin] + route
        if len(route) < 2:
            logger.debug(f"Day {day.day_number}: {len(route)} stop(s), skipping directions")
            continue

        try:
            response = directions_fn(route)
            times = extract_driving_times(response, route)
            distances = extract_driving_distances(response, route)
        except Exception as exc:
            logger.error(f"Day {day.day_number}: error calculating directions: {exc}")
            continue

        offset = 1 if origin is not None else 0
        for position, (index, _) in enumerate(stops):
            slot = position + offset
            if slot < len(times):
                timings[(day_index, index)] = (times[slot], distances[slot] if slot < len(distances) else 0)

        route_type = "straight-line fallback" if response.get("isFallbackStraightLine") else "driving route"
        logger.info(f"Day {day.day_number}: {route_type} calculated")
        directions.append(DirectionsData(
            day_index=day_index,
            color=get_day_color(day_index),
            directions_result=response,
        ))

    days = []
    for day_index, day in enumerate(itinerary.days):
        places = []
        for index, place in enumerate(day.places):
            if (day_index, index) in timings:
                minutes, metres = timings[(day_index, index)]
                place = replace(
                    place,
                    driving_time_from_previous=minutes,
                    driving_distance_from_previous=metres,
                )
            places.append(place)
        days.append(replace(day, places=tuple(places)))

    fallbacks = sum(1 for d in directions if d.is_fallback_straight_line)
    logger.info(f"Generated {len(directions)} routes ({fallbacks} straight-line fallbacks)")
    return directions, replace(itinerary, days=tuple(days))


__all__ = [
    "DAY_COLORS",
    "get_day_color",
    "calculate_directions",
    "build_straight_line_response",
    "extract_driving_times",
    "extract_driving_distances",
    "find_day_ending_place",
    "generate_directions_with_times",
]
