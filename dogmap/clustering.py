"""Marker clustering for dense result sets."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Set, Tuple, Union

from . import config
from .models import Coordinate, DiscoverableEntity


@dataclass(frozen=True)
class MarkerCluster:
    id: str
    coordinate: Coordinate
    items: Tuple[DiscoverableEntity, ...]

    @property
    def point_count(self) -> int:
        return len(self.items)


Marker = Union[DiscoverableEntity, MarkerCluster]


def planar_distance_deg(a: Coordinate, b: Coordinate) -> float:
    return math.hypot(a.latitude - b.latitude, a.longitude - b.longitude)


def marker_key(entity: DiscoverableEntity) -> str:
    return f"{entity.kind}:{entity.id}"


def centroid(items: Sequence[DiscoverableEntity]) -> Coordinate:
    lat = sum(i.coordinate.latitude for i in items) / len(items)
    lon = sum(i.coordinate.longitude for i in items) / len(items)
    return Coordinate(lat, lon)


def cluster_markers(
    entities: Sequence[DiscoverableEntity],
    radius_deg: Optional[float] = None,
) -> List[Marker]:
    """Greedy clustering in input order.

    Each entity not yet absorbed gathers every other unabsorbed entity within
    ``radius_deg`` of it. Groups of two or more become a cluster placed at
    their centroid; the rest stay single markers.
    """
    if radius_deg is None:
        radius_deg = config.CLUSTER_RADIUS_DEG
    markers: List[Marker] = []
    processed: Set[str] = set()

    for item in entities:
        key = marker_key(item)
        if key in processed:
            continue
        nearby = [
            other
            for other in entities
            if marker_key(other) not in processed
            and marker_key(other) != key
            and planar_distance_deg(item.coordinate, other.coordinate) < radius_deg
        ]
        processed.add(key)
        if not nearby:
            markers.append(item)
            continue
        for other in nearby:
            processed.add(marker_key(other))
        group = (item, *nearby)
        markers.append(
            MarkerCluster(id=f"cluster-{item.id}", coordinate=centroid(group), items=group)
        )
    return markers
