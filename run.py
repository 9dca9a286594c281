"""CLI entrypoint: run one discovery cycle and write the ranked results."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from dogmap import config
from dogmap.clustering import MarkerCluster
from dogmap.data_source import SupabaseDataSource
from dogmap.discovery import count_by_kind
from dogmap.engine import DiscoveryEngine
from dogmap.http import RequestMetrics
from dogmap.location import FixedLocationProvider
from dogmap.models import (
    CATEGORY_FILTERS,
    SEVERITY_FILTERS,
    SIZE_FILTERS,
    Coordinate,
    DiscoveryQuery,
)
from dogmap.reporting import (
    build_marker_row,
    build_output_row,
    ensure_dir,
    render_summary,
    write_json_object,
    write_results_csv,
    write_results_json,
)

logger = logging.getLogger(__name__)


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Discover dogs and emergencies near a location")
    parser.add_argument("--lat", type=float, default=None, help="Viewer latitude")
    parser.add_argument("--lon", type=float, default=None, help="Viewer longitude")
    parser.add_argument("--radius-km", type=float, default=None)
    parser.add_argument("--search", type=str, default="")
    parser.add_argument("--filter", choices=sorted(CATEGORY_FILTERS), default="all")
    parser.add_argument("--severity", choices=sorted(SEVERITY_FILTERS), default="all")
    parser.add_argument("--size", choices=sorted(SIZE_FILTERS), default="all")
    parser.add_argument("--top", type=int, default=None, help="Keep only the N nearest results")
    parser.add_argument("--cluster", action="store_true", help="Also write clustered markers")
    parser.add_argument("--config", type=str, default=None, help="Path to discovery_config.json")
    parser.add_argument("--out", type=str, default=config.OUTPUT_DIR)
    return parser.parse_args(argv)


def build_query(args: argparse.Namespace) -> DiscoveryQuery:
    radius = args.radius_km if args.radius_km is not None else config.DEFAULT_RADIUS_KM
    return DiscoveryQuery(
        radius_km=float(radius),
        search_text=args.search or "",
        category_filter=args.filter,
        severity_filter=args.severity,
        size_filter=args.size,
        max_results=args.top,
    )


def run_once(args: argparse.Namespace, engine: DiscoveryEngine) -> Dict[str, Any]:
    engine.query = build_query(args)
    viewer = engine.locate()
    engine.refresh()
    state = engine.state

    ensure_dir(args.out)
    rows = [build_output_row(e) for e in state.results]
    write_results_json(os.path.join(args.out, "results.json"), rows)
    write_results_csv(os.path.join(args.out, "results.csv"), rows)

    summary: Dict[str, Any] = {
        "latitude": viewer.coordinate.latitude,
        "longitude": viewer.coordinate.longitude,
        "used_fallback_location": engine.used_fallback_location,
        "radius_km": engine.query.radius_km,
        "error": state.error.reason if state.error else None,
    }
    summary.update(count_by_kind(state.results))
    if args.cluster:
        markers = engine.clusters()
        write_results_json(
            os.path.join(args.out, "markers.json"), [build_marker_row(m) for m in markers]
        )
        summary["markers"] = len(markers)
        summary["clusters"] = sum(1 for m in markers if isinstance(m, MarkerCluster))
    write_json_object(os.path.join(args.out, "summary.json"), summary)
    return summary


def main(argv: Optional[list] = None) -> int:
    load_env()
    args = parse_args(argv)
    config.load_discovery_config(args.config)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    missing = config.validate_environment()
    if missing:
        print(f"Missing {', '.join(missing)} in environment", file=sys.stderr)
        return 1

    if (args.lat is None) != (args.lon is None):
        print("--lat and --lon must be given together", file=sys.stderr)
        return 1

    provider = None
    if args.lat is not None and args.lon is not None:
        provider = FixedLocationProvider(Coordinate(args.lat, args.lon))

    metrics = RequestMetrics()
    try:
        engine = DiscoveryEngine(SupabaseDataSource.from_env(metrics=metrics), provider)
        summary = run_once(args, engine)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    for line in render_summary(summary):
        print(line)
    logger.info(
        "Requests: fetches=%s retries=%s failures=%s",
        metrics.network_fetches,
        metrics.retries,
        metrics.failures,
    )
    if summary.get("error"):
        print(f"Discovery failed: {summary['error']}", file=sys.stderr)
        return 1
    print(f"Done. Results written to {args.out}/results.csv and {args.out}/results.json")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
