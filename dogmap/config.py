"""Project configuration.

Loads discovery parameters from discovery_config.json when available,
falling back to sensible defaults. Keep REST paths and request shapes
centralized here.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- Hosted data service ---

SUPABASE_URL_ENV_NAMES = ("SUPABASE_URL", "EXPO_PUBLIC_SUPABASE_URL")
SUPABASE_KEY_ENV_NAMES = ("SUPABASE_ANON_KEY", "EXPO_PUBLIC_SUPABASE_ANON_KEY")

REST_PREFIX = "/rest/v1"
ANIMALS_TABLE = "dogs"
EMERGENCIES_TABLE = "emergency_requests"
WORKFLOW_TABLES: Dict[str, str] = {
    "walk_request": "walk_requests",
    "dog_review": "dog_reviews",
}

ANIMAL_FETCH_LIMIT = 100
EMERGENCY_STATUS_OPEN = "open"

# --- Geometry ---

EARTH_RADIUS_KM = 6371.0
DEFAULT_LOCATION: Tuple[float, float] = (40.7128, -74.0060)
DEFAULT_REGION_DELTA = 0.05

# The source data used (0, 0) for "no location". Some screens also dropped a
# record when only one component was 0; that stricter rule is opt-in.
DROP_ANY_ZERO_COORDINATE = False

# --- Discovery ---

DEFAULT_RADIUS_KM = 50.0
CLUSTER_RADIUS_DEG = 0.01
RECENT_SEARCHES_MAX = 5

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 20
HTTP_RETRY_MAX = 5
HTTP_BACKOFF_BASE = 0.5
HTTP_BACKOFF_MAX = 8.0

# --- Outputs ---

OUTPUT_DIR = "out"


def get_supabase_credentials() -> Tuple[Optional[str], Optional[str]]:
    url = _first_env(SUPABASE_URL_ENV_NAMES)
    key = _first_env(SUPABASE_KEY_ENV_NAMES)
    return url, key


def validate_environment() -> List[str]:
    """Return the names of required environment variables that are missing."""
    missing: List[str] = []
    if not _first_env(SUPABASE_URL_ENV_NAMES):
        missing.append(SUPABASE_URL_ENV_NAMES[0])
    if not _first_env(SUPABASE_KEY_ENV_NAMES):
        missing.append(SUPABASE_KEY_ENV_NAMES[0])
    return missing


def _first_env(names: Tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = (os.environ.get(name) or "").strip()
        if value:
            return value
    return None


def load_discovery_config(path: Optional[str] = None) -> bool:
    """Load discovery configuration from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "discovery_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    globals_ref = globals()

    default_location = data.get("default_location", {})
    lat = default_location.get("lat")
    lon = default_location.get("lon")
    if lat is not None and lon is not None:
        globals_ref["DEFAULT_LOCATION"] = (float(lat), float(lon))

    radius = data.get("radius_km")
    if radius is not None:
        globals_ref["DEFAULT_RADIUS_KM"] = float(radius)

    delta = data.get("region_delta")
    if delta is not None:
        globals_ref["DEFAULT_REGION_DELTA"] = float(delta)

    limit = data.get("animal_fetch_limit")
    if limit is not None:
        globals_ref["ANIMAL_FETCH_LIMIT"] = int(limit)

    cluster_radius = data.get("cluster_radius_deg")
    if cluster_radius is not None:
        globals_ref["CLUSTER_RADIUS_DEG"] = float(cluster_radius)

    if "drop_any_zero_coordinate" in data:
        globals_ref["DROP_ANY_ZERO_COORDINATE"] = bool(data["drop_any_zero_coordinate"])

    http = data.get("http", {})
    if "timeout_seconds" in http:
        globals_ref["HTTP_TIMEOUT_SECONDS"] = int(http["timeout_seconds"])
    if "retry_max" in http:
        globals_ref["HTTP_RETRY_MAX"] = int(http["retry_max"])

    return True
