"""Value types for discoverable entities, viewer location and queries."""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import ClassVar, FrozenSet, Optional, Tuple, Union

from . import config

ANIMAL_CATEGORIES: FrozenSet[str] = frozenset({"owned", "stray", "rescue", "foster"})
ANIMAL_SIZES: FrozenSet[str] = frozenset({"small", "medium", "large"})
SEVERITIES: Tuple[str, ...] = ("low", "medium", "high")

CATEGORY_FILTERS: FrozenSet[str] = frozenset({"all", "dogs", "emergencies"}) | ANIMAL_CATEGORIES
SEVERITY_FILTERS: FrozenSet[str] = frozenset({"all"}) | frozenset(SEVERITIES)
SIZE_FILTERS: FrozenSet[str] = frozenset({"all"}) | ANIMAL_SIZES


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


def _default_region_delta() -> float:
    return float(config.DEFAULT_REGION_DELTA)


@dataclass(frozen=True)
class ViewerLocation:
    coordinate: Coordinate
    latitude_delta: float = field(default_factory=_default_region_delta)
    longitude_delta: float = field(default_factory=_default_region_delta)

    @classmethod
    def at(cls, latitude: float, longitude: float, delta: Optional[float] = None) -> "ViewerLocation":
        if delta is None:
            delta = config.DEFAULT_REGION_DELTA
        return cls(Coordinate(latitude, longitude), delta, delta)


@dataclass(frozen=True)
class RatingAggregate:
    average: float = 3.0
    count: int = 0


@dataclass(frozen=True)
class Behavior:
    """Temperament scores, each on a 1-5 scale."""

    energy_level: int = 3
    friendliness: int = 3
    playfulness: int = 3
    trainability: int = 3


@dataclass(frozen=True)
class Compatibility:
    good_with_kids: bool = True
    good_with_dogs: bool = True
    good_with_cats: bool = False


@dataclass(frozen=True)
class WalkingPreferences:
    pace: str = "moderate"
    preferred_duration_min: Optional[int] = None


@dataclass(frozen=True)
class AnimalRecord:
    id: str
    coordinate: Coordinate
    name: str = ""
    category: str = "owned"
    breed: str = ""
    size: str = "medium"
    owner_name: str = ""
    description: str = ""
    media: Tuple[str, ...] = ()
    is_available: bool = False
    rating: RatingAggregate = field(default_factory=RatingAggregate)
    behavior: Behavior = field(default_factory=Behavior)
    compatibility: Compatibility = field(default_factory=Compatibility)
    walking: WalkingPreferences = field(default_factory=WalkingPreferences)
    age_years: Optional[float] = None
    distance_km: Optional[float] = None

    kind: ClassVar[str] = "animal"

    def search_fields(self) -> Tuple[str, ...]:
        return (self.name, self.breed, self.owner_name, self.category, self.description)

    def with_distance(self, distance_km: float) -> "AnimalRecord":
        return replace(self, distance_km=distance_km)


@dataclass(frozen=True)
class EmergencyRecord:
    id: str
    coordinate: Coordinate
    emergency_type: str = ""
    severity: str = "medium"
    description: str = ""
    volunteers_needed: int = 1
    volunteers_responded: int = 0
    created_at: Optional[datetime] = None
    contact_info: str = ""
    status: str = "open"
    distance_km: Optional[float] = None

    kind: ClassVar[str] = "emergency"

    @property
    def name(self) -> str:
        return self.emergency_type.replace("_", " ")

    @property
    def volunteers_missing(self) -> int:
        return max(0, self.volunteers_needed - self.volunteers_responded)

    def search_fields(self) -> Tuple[str, ...]:
        return (self.emergency_type, self.severity, self.description)

    def with_distance(self, distance_km: float) -> "EmergencyRecord":
        return replace(self, distance_km=distance_km)


DiscoverableEntity = Union[AnimalRecord, EmergencyRecord]


def _default_radius_km() -> float:
    return float(config.DEFAULT_RADIUS_KM)


@dataclass(frozen=True)
class DiscoveryQuery:
    radius_km: float = field(default_factory=_default_radius_km)
    search_text: str = ""
    category_filter: str = "all"
    severity_filter: str = "all"
    size_filter: str = "all"
    max_results: Optional[int] = None

    def __post_init__(self) -> None:
        if isinstance(self.radius_km, bool) or not math.isfinite(self.radius_km):
            raise ValueError(f"radius_km must be a finite number, got {self.radius_km!r}")
        if self.category_filter not in CATEGORY_FILTERS:
            raise ValueError(f"Unknown category filter: {self.category_filter}")
        if self.severity_filter not in SEVERITY_FILTERS:
            raise ValueError(f"Unknown severity filter: {self.severity_filter}")
        if self.size_filter not in SIZE_FILTERS:
            raise ValueError(f"Unknown size filter: {self.size_filter}")
        if self.max_results is not None and self.max_results < 0:
            raise ValueError("max_results must be >= 0")


@dataclass(frozen=True)
class SubmissionResult:
    ok: bool
    reason: Optional[str] = None
