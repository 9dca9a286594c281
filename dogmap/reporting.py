"""Output reporting helpers."""
from __future__ import annotations

import csv
import json
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, TextIO

from .clustering import Marker, MarkerCluster
from .models import AnimalRecord, DiscoverableEntity

RESULT_FIELDNAMES = [
    "kind",
    "id",
    "name",
    "category",
    "latitude",
    "longitude",
    "distance_km",
    "breed",
    "size",
    "owner_name",
    "is_available",
    "rating_average",
    "rating_count",
    "severity",
    "volunteers_needed",
    "volunteers_responded",
    "description",
]


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def atomic_write_text(path: str, text: str) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        f.write(text)


def build_output_row(entity: DiscoverableEntity) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "kind": entity.kind,
        "id": entity.id,
        "name": entity.name,
        "latitude": entity.coordinate.latitude,
        "longitude": entity.coordinate.longitude,
        "distance_km": round(entity.distance_km, 3) if entity.distance_km is not None else None,
        "description": entity.description,
    }
    if isinstance(entity, AnimalRecord):
        row.update(
            {
                "category": entity.category,
                "breed": entity.breed,
                "size": entity.size,
                "owner_name": entity.owner_name,
                "is_available": entity.is_available,
                "rating_average": entity.rating.average,
                "rating_count": entity.rating.count,
            }
        )
    else:
        row.update(
            {
                "category": entity.emergency_type,
                "severity": entity.severity,
                "volunteers_needed": entity.volunteers_needed,
                "volunteers_responded": entity.volunteers_responded,
            }
        )
    return row


def build_marker_row(marker: Marker) -> Dict[str, Any]:
    if isinstance(marker, MarkerCluster):
        return {
            "kind": "cluster",
            "id": marker.id,
            "latitude": marker.coordinate.latitude,
            "longitude": marker.coordinate.longitude,
            "point_count": marker.point_count,
            "items": [f"{item.kind}:{item.id}" for item in marker.items],
        }
    return build_output_row(marker)


def write_results_csv(path: str, rows: Iterable[Dict[str, Any]]) -> None:
    rows = list(rows)
    if not rows:
        with atomic_writer(path, mode="w", encoding="utf-8", newline="") as f:
            f.write("")
        return

    with atomic_writer(path, mode="w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=RESULT_FIELDNAMES, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)


def write_results_json(path: str, rows: Iterable[Dict[str, Any]]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(list(rows), f, ensure_ascii=False, indent=2)


def write_json_object(path: str, payload: Dict[str, Any]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def render_summary(summary: Dict[str, Any]) -> List[str]:
    lines = [
        f"viewer: {summary.get('latitude')}, {summary.get('longitude')}"
        + (" (default location)" if summary.get("used_fallback_location") else ""),
        f"radius_km: {summary.get('radius_km')}",
        f"dogs: {summary.get('dogs', 0)}",
        f"emergencies: {summary.get('emergencies', 0)}",
    ]
    if summary.get("clusters") is not None:
        lines.append(f"markers: {summary.get('markers')} ({summary.get('clusters')} clusters)")
    if summary.get("error"):
        lines.append(f"error: {summary['error']}")
    return lines
