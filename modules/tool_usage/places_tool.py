"""
modules/tool_usage/places_tool.py
----------------------------------
Searches nearby places through the OpenStreetMap Overpass API (no API key
required) and normalizes them into PlaceCandidate records.

OSM elements carry no visit duration, price or crowd information, so these
are estimated per category / hour of day. Unnamed elements are dropped;
results are sorted by rating (highest first).

Transport failures and malformed payloads raise PlacesFetchError.
"""

from __future__ import annotations
import logging
import math
from datetime import datetime
from typing import Optional

import requests

from core.enums import ActivityCategory
from core.exceptions import PlacesFetchError
from schemas.context import PlaceCandidate
import config

logger = logging.getLogger(__name__)

C = ActivityCategory

# Category → the OSM (key, value) tag that identifies it
OSM_TAGS: dict[ActivityCategory, tuple[str, str]] = {
    C.MUSEUM:     ("tourism", "museum"),
    C.PARK:       ("leisure", "park"),
    C.RESTAURANT: ("amenity", "restaurant"),
    C.CAFE:       ("amenity", "cafe"),
    C.MONUMENT:   ("historic", "monument"),
    C.ART:        ("tourism", "gallery"),
    C.SHOPPING:   ("shop", "mall"),
    C.HOTEL:      ("tourism", "hotel"),
    C.NIGHTLIFE:  ("amenity", "nightclub"),
    C.SPA:        ("amenity", "spa"),
    C.THEATER:    ("amenity", "theatre"),
}
FALLBACK_CATEGORY = C.MONUMENT

DURATION_MIN: dict[ActivityCategory, int] = {
    C.MUSEUM: 120, C.PARK: 60, C.RESTAURANT: 75, C.CAFE: 30, C.MONUMENT: 45,
    C.ART: 90, C.SHOPPING: 90, C.NIGHTLIFE: 120, C.THEATER: 120, C.SPA: 90,
}
COST_USD: dict[ActivityCategory, float] = {
    C.MUSEUM: 15, C.PARK: 0, C.RESTAURANT: 35, C.CAFE: 10, C.MONUMENT: 0,
    C.ART: 12, C.SHOPPING: 50, C.NIGHTLIFE: 25, C.THEATER: 30, C.SPA: 50,
}
DEFAULT_COST_USD = 10.0
OUTDOOR_CATEGORIES = frozenset({C.PARK, C.MONUMENT})
DEFAULT_OSM_RATING = 4.0

# Typical footfall by hour of day (0–23)
HOURLY_CROWD = (
    0.3, 0.2, 0.2, 0.2, 0.2, 0.2, 0.3, 0.4, 0.6, 0.7, 0.85, 0.95,
    0.95, 0.9, 0.8, 0.8, 0.9, 0.95, 0.9, 0.75, 0.6, 0.5, 0.4, 0.3,
)

EARTH_RADIUS_M = 6_371_000
METERS_PER_DEGREE = 111_000


# ── Helpers ───────────────────────────────────────────────────────────────────

def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> int:
    """Great-circle distance in whole metres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
         * math.sin(d_lon / 2) ** 2)
    return round(EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a)))


def bounding_box(lat: float, lon: float, radius_m: float) -> tuple[float, float, float, float]:
    """(south, west, north, east) around a point."""
    lat_off = radius_m / METERS_PER_DEGREE
    lon_off = radius_m / (METERS_PER_DEGREE * math.cos(math.radians(lat)))
    return lat - lat_off, lon - lon_off, lat + lat_off, lon + lon_off


def crowd_estimate(hour: int) -> float:
    return HOURLY_CROWD[hour % 24]


def resolve_category(tags: dict) -> ActivityCategory:
    for category, (key, value) in OSM_TAGS.items():
        if tags.get(key) == value:
            return category
    return FALLBACK_CATEGORY


def format_address(tags: dict) -> str:
    parts: list[str] = []
    street = tags.get("addr:street")
    if street:
        number = tags.get("addr:housenumber")
        parts.append(f"{street} {number}" if number else street)
    town = tags.get("addr:city") or tags.get("addr:town") or tags.get("addr:village")
    if town:
        parts.append(town)
    if parts:
        return ", ".join(parts)
    return tags.get("description") or tags.get("name:en") or "Location in area"


def build_query(lat: float, lon: float, radius_m: float,
                categories: Optional[list[ActivityCategory]] = None) -> str:
    south, west, north, east = bounding_box(lat, lon, radius_m)
    lines = [
        f'  node["{key}"="{value}"]({south},{west},{north},{east});'
        for key, value in (OSM_TAGS[c] for c in (categories or list(OSM_TAGS)))
    ]
    return "[out:json][timeout:25];\n(\n" + "\n".join(lines) + "\n);\nout body;"


# ── Tool ──────────────────────────────────────────────────────────────────────

class PlacesTool:
    """
    Wraps the Overpass interpreter endpoint.

    With use_stub=True no request is made and a fixed pool around the
    requested point is returned.
    """

    def __init__(
        self,
        api_url: str = config.PLACES_API_URL,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
        use_stub: bool = config.USE_STUB_PLACES,
    ) -> None:
        self.api_url = api_url
        self.timeout = timeout
        self.use_stub = use_stub

    def search(
        self,
        lat: float,
        lon: float,
        radius_m: float = config.PLACES_SEARCH_RADIUS_M,
        categories: Optional[list[ActivityCategory]] = None,
        now: Optional[datetime] = None,
    ) -> list[PlaceCandidate]:
        """
        Raises:
            PlacesFetchError: request failed or the payload is unusable.
        """
        now = now or datetime.now()
        if self.use_stub:
            logger.debug("PlacesTool stub for (%.4f, %.4f)", lat, lon)
            return self._stub(lat, lon, now.hour)

        query = build_query(lat, lon, radius_m, categories)
        try:
            response = requests.post(
                self.api_url, data=query,
                headers={"Content-Type": "text/plain"}, timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise PlacesFetchError(f"OSM API error: {exc}") from exc

        if not isinstance(data, dict):
            raise PlacesFetchError("Malformed OSM payload")
        try:
            places = [
                self._parse_element(el, lat, lon, now.hour)
                for el in data.get("elements", [])
                if (el.get("tags") or {}).get("name")
            ]
        except (KeyError, TypeError, ValueError) as exc:
            raise PlacesFetchError(f"Malformed OSM element: {exc}") from exc

        places.sort(key=lambda p: -(p.rating or 0))
        logger.info("PlacesTool: %d named places within %dm", len(places), radius_m)
        return places

    @staticmethod
    def _parse_element(element: dict, lat: float, lon: float, hour: int) -> PlaceCandidate:
        tags = element.get("tags") or {}
        category = resolve_category(tags)
        p_lat = element.get("lat") or lat
        p_lon = element.get("lon") or lon
        return PlaceCandidate(
            id=f"{element['id']}-{category.value}",
            name=tags["name"],
            category=category,
            rating=DEFAULT_OSM_RATING,
            duration_min=DURATION_MIN.get(category, config.DEFAULT_DURATION_MIN),
            cost_usd=COST_USD.get(category, DEFAULT_COST_USD),
            is_indoor=category not in OUTDOOR_CATEGORIES,
            crowd_level=crowd_estimate(hour),
            distance_from_prev_m=haversine_m(lat, lon, p_lat, p_lon),
            address=format_address(tags),
            lat=p_lat,
            lon=p_lon,
        )

    @staticmethod
    def _stub(lat: float, lon: float, hour: int) -> list[PlaceCandidate]:
        rows = [
            ("stub-museum-1",  "City History Museum",   C.MUSEUM,     4.6, 0.004, 0.002),
            ("stub-cafe-1",    "Corner Roastery",       C.CAFE,       4.3, 0.001, 0.001),
            ("stub-rest-1",    "Harbour Kitchen",       C.RESTAURANT, 4.4, -0.002, 0.003),
            ("stub-park-1",    "Riverside Gardens",     C.PARK,       4.5, 0.006, -0.004),
            ("stub-mon-1",     "Old Clock Tower",       C.MONUMENT,   4.2, 0.003, -0.001),
            ("stub-art-1",     "Modern Art Gallery",    C.ART,        4.1, -0.004, -0.002),
            ("stub-shop-1",    "Central Arcade",        C.SHOPPING,   3.9, -0.001, 0.005),
            ("stub-rest-2",    "Night Market Grill",    C.RESTAURANT, 4.0, 0.002, 0.006),
            ("stub-night-1",   "Blue Note Club",        C.NIGHTLIFE,  4.2, -0.005, 0.004),
            ("stub-theater-1", "Royal Playhouse",       C.THEATER,    4.5, 0.005, 0.005),
            ("stub-cafe-2",    "Tea & Pages",           C.CAFE,       4.0, -0.003, -0.005),
            ("stub-spa-1",     "Thermal Baths",         C.SPA,        4.3, 0.007, 0.001),
        ]
        crowd = crowd_estimate(hour)
        return [
            PlaceCandidate(
                id=pid, name=name, category=cat, rating=rating,
                duration_min=DURATION_MIN.get(cat, config.DEFAULT_DURATION_MIN),
                cost_usd=COST_USD.get(cat, DEFAULT_COST_USD),
                is_indoor=cat not in OUTDOOR_CATEGORIES,
                crowd_level=crowd,
                distance_from_prev_m=haversine_m(lat, lon, lat + d_lat, lon + d_lon),
                address="Location in area",
                lat=lat + d_lat, lon=lon + d_lon,
            )
            for pid, name, cat, rating, d_lat, d_lon in rows
        ]
