"""Workflow payloads submitted for a selected animal."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from .errors import PayloadError

WALK_DURATION_OPTIONS = (15, 30, 45, 60, 90)
WALK_TYPES = ("casual", "exercise", "training")
WALK_ROUTES = ("park", "neighborhood", "trail", "beach")
REVIEW_CATEGORIES = ("behavior", "friendliness", "energy", "obedience")


@dataclass(frozen=True)
class WalkRequest:
    dog_id: str
    scheduled_time: datetime
    duration: int = 30
    walk_type: str = "casual"
    route: str = "park"
    special_instructions: str = ""
    emergency_contact: bool = True

    kind = "walk_request"

    def to_row(self) -> Dict[str, Any]:
        return {
            "dog_id": self.dog_id,
            "scheduled_time": _iso(self.scheduled_time),
            "duration_minutes": self.duration,
            "walk_type": self.walk_type,
            "route": self.route,
            "special_instructions": self.special_instructions,
            "emergency_contact": self.emergency_contact,
            "status": "pending",
        }


@dataclass(frozen=True)
class DogReview:
    dog_id: str
    title: str
    comment: str
    rating: int = 5
    photos: Tuple[str, ...] = ()
    categories: Mapping[str, int] = field(default_factory=dict)

    kind = "dog_review"

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "dog_id": self.dog_id,
            "rating": self.rating,
            "title": self.title,
            "comment": self.comment,
            "photos": list(self.photos),
        }
        for name in REVIEW_CATEGORIES:
            row[f"{name}_rating"] = (self.categories or {}).get(name, 5)
        return row


WorkflowPayload = Union[WalkRequest, DogReview]


def build_walk_request(
    dog_id: str,
    scheduled_time: datetime,
    duration: int = 30,
    walk_type: str = "casual",
    route: str = "park",
    special_instructions: str = "",
    emergency_contact: bool = True,
) -> WalkRequest:
    request = WalkRequest(
        dog_id=str(dog_id) if dog_id else "",
        scheduled_time=scheduled_time,
        duration=duration,
        walk_type=walk_type,
        route=route,
        special_instructions=(special_instructions or "").strip(),
        emergency_contact=bool(emergency_contact),
    )
    check_walk_request(request)
    return request


def build_dog_review(
    dog_id: str,
    title: str,
    comment: str,
    rating: int = 5,
    photos: Iterable[str] = (),
    categories: Optional[Mapping[str, int]] = None,
) -> DogReview:
    merged = {name: 5 for name in REVIEW_CATEGORIES}
    for name, value in (categories or {}).items():
        if name not in merged:
            raise PayloadError(f"Unknown review category: {name}")
        merged[name] = value

    review = DogReview(
        dog_id=str(dog_id) if dog_id else "",
        title=(title or "").strip(),
        comment=(comment or "").strip(),
        rating=rating,
        photos=tuple(p for p in photos if p),
        categories=merged,
    )
    check_dog_review(review)
    return review


def validate_payload(payload: Any, expected_kind: str) -> None:
    """Check kind and field rules, however the payload was constructed."""
    kind = getattr(payload, "kind", None)
    if kind != expected_kind:
        raise PayloadError(f"Expected a {expected_kind} payload, got {kind or type(payload).__name__}")
    if isinstance(payload, WalkRequest):
        check_walk_request(payload)
    elif isinstance(payload, DogReview):
        check_dog_review(payload)
    else:
        raise PayloadError(f"Unsupported payload type: {type(payload).__name__}")


def check_walk_request(request: WalkRequest) -> None:
    if not request.dog_id:
        raise PayloadError("dog_id is required")
    if not isinstance(request.scheduled_time, datetime):
        raise PayloadError("scheduled_time must be a datetime")
    if isinstance(request.duration, bool) or request.duration not in WALK_DURATION_OPTIONS:
        raise PayloadError(f"duration must be one of {WALK_DURATION_OPTIONS}")
    if request.walk_type not in WALK_TYPES:
        raise PayloadError(f"walk_type must be one of {WALK_TYPES}")
    if request.route not in WALK_ROUTES:
        raise PayloadError(f"route must be one of {WALK_ROUTES}")


def check_dog_review(review: DogReview) -> None:
    if not review.dog_id:
        raise PayloadError("dog_id is required")
    if not (review.title or "").strip() or not (review.comment or "").strip():
        raise PayloadError("Please provide both a title and comment for your review.")
    _check_star(review.rating, "rating")
    for name, value in (review.categories or {}).items():
        if name not in REVIEW_CATEGORIES:
            raise PayloadError(f"Unknown review category: {name}")
        _check_star(value, name)


def _check_star(value: Any, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise PayloadError(f"{name} must be an integer between 1 and 5")


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).replace(microsecond=0).isoformat()
