#!/usr/bin/env python3
"""Quick preflight: print secret env var lengths without exposing values."""
from __future__ import annotations

import os

NAMES = (
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "EXPO_PUBLIC_SUPABASE_URL",
    "EXPO_PUBLIC_SUPABASE_ANON_KEY",
)


def _len(name: str) -> int:
    return len((os.getenv(name) or "").strip())


if __name__ == "__main__":
    for name in NAMES:
        print(name, _len(name))
