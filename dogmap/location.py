"""Viewer location resolution with a fallback default."""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Tuple

from . import config
from .errors import PermissionDeniedError
from .geo import is_valid_coordinate
from .models import Coordinate, ViewerLocation

logger = logging.getLogger(__name__)


class LocationProvider(Protocol):
    def get_current_location(self) -> Coordinate:
        ...


class FixedLocationProvider:
    """Reports a fixed position; used by the CLI and in tests."""

    def __init__(self, coordinate: Coordinate) -> None:
        self.coordinate = coordinate

    def get_current_location(self) -> Coordinate:
        return self.coordinate


class DeniedLocationProvider:
    def get_current_location(self) -> Coordinate:
        raise PermissionDeniedError("Location permission denied")


def default_coordinate() -> Coordinate:
    lat, lon = config.DEFAULT_LOCATION
    return Coordinate(float(lat), float(lon))


def resolve_viewer_location(
    provider: Optional[LocationProvider],
    default: Optional[Coordinate] = None,
    delta: Optional[float] = None,
) -> Tuple[ViewerLocation, bool]:
    """Return the viewer location and whether the default had to be used.

    A denied permission or an unusable position never reaches the caller as
    an error: discovery proceeds from ``default`` instead.
    """
    if default is None:
        default = default_coordinate()
    if delta is None:
        delta = config.DEFAULT_REGION_DELTA

    coordinate: Optional[Coordinate] = None
    if provider is not None:
        try:
            coordinate = provider.get_current_location()
        except PermissionDeniedError as exc:
            logger.warning("Location unavailable (%s); using default location", exc)
            coordinate = None

    if coordinate is not None and not _usable(coordinate):
        logger.warning("Provider returned unusable location %s; using default", coordinate)
        coordinate = None

    if coordinate is None:
        return ViewerLocation(default, delta, delta), True
    return ViewerLocation(coordinate, delta, delta), False


def _usable(coordinate: Coordinate) -> bool:
    lat = coordinate.latitude
    lon = coordinate.longitude
    return is_valid_coordinate(lat, lon) and not (lat == 0 and lon == 0)
