"""Proximity filtering and nearest-first ranking."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from .geo import distance_km
from .models import (
    ANIMAL_CATEGORIES,
    AnimalRecord,
    DiscoverableEntity,
    DiscoveryQuery,
    EmergencyRecord,
    ViewerLocation,
)

logger = logging.getLogger(__name__)


def discover(
    entities: Iterable[DiscoverableEntity],
    viewer: ViewerLocation,
    query: DiscoveryQuery,
    rejections: Optional[Dict[str, int]] = None,
) -> List[DiscoverableEntity]:
    """Annotate distances, apply every filter of ``query`` and rank nearest first.

    Filters are conjunctive. The sort is stable so entities at equal distance
    keep their input order, which makes truncation to ``max_results``
    deterministic.
    """
    if not query.radius_km > 0:
        return []

    needle = normalize_search_text(query.search_text)
    kept: List[DiscoverableEntity] = []
    for entity in entities:
        annotated = entity.with_distance(distance_km(viewer.coordinate, entity.coordinate))
        reason = rejection_reason(annotated, query, needle)
        if reason:
            if rejections is not None:
                rejections[reason] = rejections.get(reason, 0) + 1
            continue
        kept.append(annotated)

    ranked = sorted(kept, key=discovery_sort_key)
    if query.max_results is not None:
        ranked = ranked[: query.max_results]
    logger.debug(
        "Discovery kept %s entities within %.1f km (filter=%s, search=%r)",
        len(ranked),
        query.radius_km,
        query.category_filter,
        needle,
    )
    return ranked


def rejection_reason(
    entity: DiscoverableEntity, query: DiscoveryQuery, needle: str
) -> Optional[str]:
    if entity.distance_km is None or entity.distance_km > query.radius_km:
        return "too_far"
    if needle and not matches_search(entity, needle):
        return "search_mismatch"
    if not matches_category(entity, query.category_filter):
        return "category_mismatch"
    if isinstance(entity, EmergencyRecord):
        if query.severity_filter != "all" and entity.severity != query.severity_filter:
            return "severity_mismatch"
    elif query.size_filter != "all" and entity.size != query.size_filter:
        return "size_mismatch"
    return None


def normalize_search_text(text: Optional[str]) -> str:
    return (text or "").strip().casefold()


def matches_search(entity: DiscoverableEntity, needle: str) -> bool:
    if not needle:
        return True
    for value in entity.search_fields():
        if value and needle in value.casefold():
            return True
    return False


def matches_category(entity: DiscoverableEntity, category_filter: str) -> bool:
    if category_filter == "all":
        return True
    if category_filter == "dogs":
        return isinstance(entity, AnimalRecord)
    if category_filter == "emergencies":
        return isinstance(entity, EmergencyRecord)
    if category_filter in ANIMAL_CATEGORIES:
        return isinstance(entity, AnimalRecord) and entity.category == category_filter
    raise ValueError(f"Unknown category filter: {category_filter}")


def discovery_sort_key(entity: DiscoverableEntity) -> float:
    return entity.distance_km if entity.distance_km is not None else float("inf")


def count_by_kind(entities: Iterable[DiscoverableEntity]) -> Dict[str, int]:
    counts = {"dogs": 0, "emergencies": 0}
    for entity in entities:
        if isinstance(entity, AnimalRecord):
            counts["dogs"] += 1
        else:
            counts["emergencies"] += 1
    return counts
