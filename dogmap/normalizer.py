"""Validation and defaulting of raw records from the data service.

Malformed records are dropped rather than raised: the map favours showing
whatever is usable over failing the whole cycle. Drop reasons are counted
into an optional ``rejections`` dict so callers can log or report them.
"""
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .geo import is_number, is_sentinel, is_valid_coordinate
from .models import (
    ANIMAL_CATEGORIES,
    ANIMAL_SIZES,
    SEVERITIES,
    AnimalRecord,
    Behavior,
    Compatibility,
    Coordinate,
    DiscoverableEntity,
    EmergencyRecord,
    RatingAggregate,
    WalkingPreferences,
)

logger = logging.getLogger(__name__)

# Values used when the source record omits the field or holds null.
ANIMAL_DEFAULTS: Dict[str, Any] = {
    "name": "",
    "breed": "",
    "size": "medium",
    "dog_type": "owned",
    "owner_name": "",
    "description": "",
    "is_available_for_walks": False,
    "rating_average": 3.0,
    "rating_count": 0,
    "energy_level": 3,
    "friendliness": 3,
    "playfulness": 3,
    "trainability": 3,
    "good_with_kids": True,
    "good_with_dogs": True,
    "good_with_cats": False,
    "walking_pace": "moderate",
    "preferred_walk_duration": None,
}

EMERGENCY_DEFAULTS: Dict[str, Any] = {
    "emergency_type": "other",
    "severity": "medium",
    "description": "",
    "volunteers_needed": 1,
    "volunteers_responded": 0,
    "contact_info": "",
    "status": "open",
}

BEHAVIOR_FIELDS = ("energy_level", "friendliness", "playfulness", "trainability")

# Source data also uses "critical"; the core only distinguishes three levels.
SEVERITY_ALIASES = {"critical": "high", "urgent": "high", "moderate": "medium"}


def normalize_animals(
    records: Iterable[Dict[str, Any]],
    rejections: Optional[Dict[str, int]] = None,
) -> List[AnimalRecord]:
    return _normalize(records, parse_animal_record, rejections)


def normalize_emergencies(
    records: Iterable[Dict[str, Any]],
    rejections: Optional[Dict[str, int]] = None,
) -> List[EmergencyRecord]:
    return _normalize(records, parse_emergency_record, rejections)


def normalize_entities(
    animals: Iterable[Dict[str, Any]],
    emergencies: Iterable[Dict[str, Any]],
    rejections: Optional[Dict[str, int]] = None,
) -> List[DiscoverableEntity]:
    """Normalize both raw lists into one entity list, animals first."""
    entities: List[DiscoverableEntity] = []
    entities.extend(normalize_animals(animals, rejections))
    entities.extend(normalize_emergencies(emergencies, rejections))
    return entities


def _normalize(records, parser, rejections):
    out = []
    seen: Set[str] = set()
    for raw in records or []:
        reason = record_rejection_reason(raw)
        entity = None
        if reason is None:
            entity = parser(raw)
            if entity.id in seen:
                reason = "duplicate_id"
        if reason is not None:
            if rejections is not None:
                rejections[reason] = rejections.get(reason, 0) + 1
            logger.debug("Dropping record id=%s: %s", _raw_id(raw), reason)
            continue
        seen.add(entity.id)
        out.append(entity)
    return out


def record_rejection_reason(raw: Any) -> Optional[str]:
    if not isinstance(raw, dict):
        return "not_a_record"
    if _raw_id(raw) is None:
        return "missing_id"
    lat = raw.get("latitude")
    lon = raw.get("longitude")
    if lat is None or lon is None:
        return "missing_location"
    if not is_number(lat) or not is_number(lon):
        return "non_numeric_location"
    if not is_valid_coordinate(lat, lon):
        return "invalid_location"
    if is_sentinel(lat, lon):
        return "sentinel_location"
    return None


def parse_animal_record(raw: Dict[str, Any]) -> AnimalRecord:
    values = _with_defaults(raw, ANIMAL_DEFAULTS)
    if "is_available_for_walks" not in raw or raw.get("is_available_for_walks") is None:
        if raw.get("is_available") is not None:
            values["is_available_for_walks"] = raw["is_available"]
    if raw.get("dog_type") is None and raw.get("category") is not None:
        values["dog_type"] = raw["category"]

    category = _lower(values["dog_type"])
    if category not in ANIMAL_CATEGORIES:
        category = ANIMAL_DEFAULTS["dog_type"]
    size = _lower(values["size"])
    if size not in ANIMAL_SIZES:
        size = ANIMAL_DEFAULTS["size"]

    behavior = Behavior(
        **{name: _clamp_score(values[name], ANIMAL_DEFAULTS[name]) for name in BEHAVIOR_FIELDS}
    )
    rating_average = _as_float(values["rating_average"], ANIMAL_DEFAULTS["rating_average"])
    return AnimalRecord(
        id=str(_raw_id(raw)),
        coordinate=Coordinate(float(raw["latitude"]), float(raw["longitude"])),
        name=_text(values["name"]),
        category=category,
        breed=_text(values["breed"]),
        size=size,
        owner_name=_text(values["owner_name"]),
        description=_text(values["description"]),
        media=_media(raw),
        is_available=bool(values["is_available_for_walks"]),
        rating=RatingAggregate(
            average=max(0.0, min(5.0, rating_average)),
            count=_non_negative_int(values["rating_count"], ANIMAL_DEFAULTS["rating_count"]),
        ),
        behavior=behavior,
        compatibility=Compatibility(
            good_with_kids=bool(values["good_with_kids"]),
            good_with_dogs=bool(values["good_with_dogs"]),
            good_with_cats=bool(values["good_with_cats"]),
        ),
        walking=WalkingPreferences(
            pace=_text(values["walking_pace"]) or ANIMAL_DEFAULTS["walking_pace"],
            preferred_duration_min=_optional_int(values["preferred_walk_duration"]),
        ),
        age_years=_age_years(raw),
    )


def parse_emergency_record(raw: Dict[str, Any]) -> EmergencyRecord:
    values = _with_defaults(raw, EMERGENCY_DEFAULTS)
    severity = _lower(values["severity"])
    severity = SEVERITY_ALIASES.get(severity, severity)
    if severity not in SEVERITIES:
        severity = EMERGENCY_DEFAULTS["severity"]
    return EmergencyRecord(
        id=str(_raw_id(raw)),
        coordinate=Coordinate(float(raw["latitude"]), float(raw["longitude"])),
        emergency_type=_text(values["emergency_type"]) or EMERGENCY_DEFAULTS["emergency_type"],
        severity=severity,
        description=_text(values["description"]),
        volunteers_needed=_non_negative_int(
            values["volunteers_needed"], EMERGENCY_DEFAULTS["volunteers_needed"]
        ),
        volunteers_responded=_non_negative_int(
            values["volunteers_responded"], EMERGENCY_DEFAULTS["volunteers_responded"]
        ),
        created_at=parse_timestamp(raw.get("created_at")),
        contact_info=_text(values["contact_info"]),
        status=_lower(values["status"]) or EMERGENCY_DEFAULTS["status"],
    )


def parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


# Helpers

def _raw_id(raw: Any) -> Optional[str]:
    if not isinstance(raw, dict):
        return None
    value = raw.get("id")
    if value is None or value == "":
        return None
    return str(value)


def _with_defaults(raw: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    values = dict(defaults)
    for key in defaults:
        if raw.get(key) is not None:
            values[key] = raw[key]
    return values


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _lower(value: Any) -> str:
    return _text(value).lower()


def _as_float(value: Any, default: float) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(result):
        return default
    return result


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _non_negative_int(value: Any, default: int) -> int:
    result = _optional_int(value)
    if result is None:
        return default
    return max(0, result)


def _clamp_score(value: Any, default: int) -> int:
    result = _optional_int(value)
    if result is None:
        return default
    return max(1, min(5, result))


def _media(raw: Dict[str, Any]) -> Tuple[str, ...]:
    media: List[str] = []
    primary = raw.get("profile_image_url")
    if isinstance(primary, str) and primary.strip():
        media.append(primary.strip())
    for extra in raw.get("additional_images") or []:
        if isinstance(extra, str) and extra.strip() and extra.strip() not in media:
            media.append(extra.strip())
    return tuple(media)


def _age_years(raw: Dict[str, Any]) -> Optional[float]:
    years = raw.get("age_years")
    months = raw.get("age_months")
    if years is None and months is None:
        return None
    total = _as_float(years, 0.0) + _as_float(months, 0.0) / 12
    return round(total, 2)
