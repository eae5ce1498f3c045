# travel_notebook/api/places.py
"""Google Places lookups and itinerary enrichment."""
from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import replace
from functools import lru_cache
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import googlemaps
from googlemaps.exceptions import Timeout, TransportError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from travel_notebook.api.config import get_google_maps_config, get_sync_config
from travel_notebook.api.errors import EnrichmentError
from travel_notebook.api.models import Day, Place, PlaceStatus, StructuredItinerary

logger = logging.getLogger(__name__)

PHOTO_URL = "https://maps.googleapis.com/maps/api/place/photo"
FIND_PLACE_FIELDS = ["place_id", "name", "formatted_address", "geometry", "rating", "photos"]
MAX_PHOTOS = 4
PHOTO_WIDTH = 400
THUMBNAIL_WIDTH = 150
EARTH_RADIUS_KM = 6371.0

PlaceLookup = Callable[[str], Optional[Dict[str, Any]]]

_gmaps: googlemaps.Client | None = None


def _get_client() -> googlemaps.Client | None:
    """Return a cached googlemaps.Client instance."""
    global _gmaps
    if _gmaps is None:
        cfg = get_google_maps_config()
        api_key = cfg.get("api_key", "")
        if not api_key:
            logger.error("No Google Maps API key found in config")
            return None
        logger.info(f"Initializing Google Maps client with key: {api_key[:10]}...")
        _gmaps = googlemaps.Client(key=api_key)
    return _gmaps


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two coordinates in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def build_photo_url(photo_reference: str, max_width: int = PHOTO_WIDTH) -> str:
    """Places Photo URL for a photo reference."""
    params = {
        "maxwidth": max_width,
        "photo_reference": photo_reference,
        "key": get_google_maps_config().get("api_key", ""),
    }
    return f"{PHOTO_URL}?{urlencode(params)}"


@retry(
    retry=retry_if_exception_type((Timeout, TransportError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, max=4),
    reraise=True,
)
def _find_place(client: googlemaps.Client, query: str) -> Optional[Dict[str, Any]]:
    response = client.find_place(query, "textquery", fields=FIND_PLACE_FIELDS, language="en")
    candidates = response.get("candidates") or []
    if not candidates:
        return None

    candidate = candidates[0]
    details = client.place(candidate["place_id"], language="en").get("result") or {}
    return {**candidate, **details}


@lru_cache(maxsize=1000)
def _lookup_place(query: str) -> Optional[Dict[str, Any]]:
    client = _get_client()
    if client is None:
        raise EnrichmentError("No Google Maps client available")

    place = _find_place(client, query)
    if place is None:
        logger.warning(f"No results found for place: {query}")
        return None

    location = (place.get("geometry") or {}).get("location") or {}
    photos = place.get("photos") or []
    editorial = place.get("editorial_summary") or {}
    return {
        "placeId": place.get("place_id"),
        "name": place.get("name"),
        "address": place.get("formatted_address"),
        "lat": location.get("lat"),
        "lng": location.get("lng"),
        "rating": place.get("rating"),
        "photoReferences": [build_photo_url(p["photo_reference"]) for p in photos[:MAX_PHOTOS]],
        "description": editorial.get("overview"),
        "thumbnailUrl": build_photo_url(photos[0]["photo_reference"], THUMBNAIL_WIDTH) if photos else None,
    }


def find_place_by_name(query: str) -> Optional[Dict[str, Any]]:
    """Look a free-text place name up in Google Places.

    Returns the place data, or ``None`` when nothing matches or the provider
    call fails; failed calls are logged and not cached. Raises
    ``EnrichmentError`` when no client can be created.
    """
    query = (query or "").strip()
    if len(query) < 2:
        return None

    try:
        return _lookup_place(query)
    except (googlemaps.exceptions.ApiError, Timeout, TransportError) as exc:
        logger.error(f"Place lookup failed for '{query}': {exc}")
        return None


# ────────────────────────────────────────────────────────────────────────────────
# Itinerary enrichment
# ────────────────────────────────────────────────────────────────────────────────

def apply_lookup_result(place: Place, result: Dict[str, Any], max_distance_km: float) -> Place:
    """Attach lookup metadata to a place, gating the coordinates on distance.

    Provider coordinates replace the generated ones only within
    ``max_distance_km``; metadata is attached either way.
    """
    lat, lng = place.lat, place.lng
    if result.get("lat") is not None and result.get("lng") is not None:
        distance = haversine_km(place.lat, place.lng, result["lat"], result["lng"])
        if distance <= max_distance_km:
            lat, lng = result["lat"], result["lng"]
        else:
            logger.warning(
                f"Lookup for '{place.name}' is {distance:.0f} km away, keeping generated coordinates"
            )

    return replace(
        place,
        lat=lat,
        lng=lng,
        place_id=result.get("placeId"),
        address=result.get("address"),
        rating=result.get("rating"),
        photo_references=tuple(result.get("photoReferences") or ()),
        description=result.get("description"),
        thumbnail_url=result.get("thumbnailUrl"),
        status=PlaceStatus.FOUND,
    )


async def _enrich_place(place: Place, region: Optional[str], lookup: PlaceLookup, max_distance_km: float) -> Place:
    query = f"{place.name}, {region}" if region else place.name
    try:
        result = await asyncio.to_thread(lookup, query)
    except Exception as exc:
        logger.error(f"Error enriching place {place.name}: {exc}")
        return replace(place, status=PlaceStatus.ERROR)

    if not result:
        logger.debug(f"No place data for '{query}', keeping as free text")
        return replace(place, status=PlaceStatus.FREE_TEXT)

    logger.debug(f"Found place data for '{query}'")
    return apply_lookup_result(place, result, max_distance_km)


async def _enrich_day(day: Day, lookup: PlaceLookup, max_distance_km: float) -> Day:
    places = await asyncio.gather(
        *[_enrich_place(place, day.region, lookup, max_distance_km) for place in day.places]
    )
    return replace(day, places=tuple(places))


async def enrich_places(
    itinerary: StructuredItinerary,
    lookup: Optional[PlaceLookup] = None,
    max_distance_km: Optional[float] = None,
) -> StructuredItinerary:
    """Look every place up concurrently and return the enriched itinerary.

    Day and place order are preserved; a failed lookup only affects its own
    place.
    """
    lookup = lookup or find_place_by_name
    if max_distance_km is None:
        max_distance_km = get_sync_config()["enrichment_max_distance_km"]

    start_time = time.time()
    days = await asyncio.gather(*[_enrich_day(day, lookup, max_distance_km) for day in itinerary.days])

    duration = time.time() - start_time
    logger.info(f"Enriched {itinerary.total_places} places in {duration:.2f}s")
    return replace(itinerary, days=tuple(days))


def enrich_itinerary(itinerary: StructuredItinerary, lookup: Optional[PlaceLookup] = None) -> StructuredItinerary:
    """Blocking wrapper around ``enrich_places`` for request handlers."""
    return asyncio.run(enrich_places(itinerary, lookup=lookup))


# Re-export for clean imports elsewhere
__all__ = [
    "find_place_by_name",
    "haversine_km",
    "build_photo_url",
    "apply_lookup_result",
    "enrich_places",
    "enrich_itinerary",
]
