"""Geospatial helpers."""
from __future__ import annotations

import math
from typing import Any, Dict

from . import config
from .models import Coordinate, ViewerLocation


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    r = config.EARTH_RADIUS_KM
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return r * c


def distance_km(a: Coordinate, b: Coordinate) -> float:
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)


def is_number(value: Any) -> bool:
    # bool is an int subclass; the source data never stores coordinates as booleans
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_sentinel(lat: float, lon: float) -> bool:
    """(0, 0) is how the data service marks a record with no location set."""
    if config.DROP_ANY_ZERO_COORDINATE:
        return lat == 0 or lon == 0
    return lat == 0 and lon == 0


def is_valid_coordinate(lat: Any, lon: Any) -> bool:
    if not is_number(lat) or not is_number(lon):
        return False
    if not math.isfinite(lat) or not math.isfinite(lon):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


def region_bbox(viewer: ViewerLocation) -> Dict[str, float]:
    """Bounding box of the visible map region around the viewer."""
    lat = viewer.coordinate.latitude
    lon = viewer.coordinate.longitude
    half_lat = abs(viewer.latitude_delta) / 2
    half_lon = abs(viewer.longitude_delta) / 2
    return {
        "lat_min": max(-90.0, lat - half_lat),
        "lat_max": min(90.0, lat + half_lat),
        "lon_min": max(-180.0, lon - half_lon),
        "lon_max": min(180.0, lon + half_lon),
    }


def in_bbox(coordinate: Coordinate, bbox: Dict[str, float]) -> bool:
    return (
        bbox["lat_min"] <= coordinate.latitude <= bbox["lat_max"]
        and bbox["lon_min"] <= coordinate.longitude <= bbox["lon_max"]
    )
