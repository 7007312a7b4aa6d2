"""Disk cache for remotely fetched catalogs, so a restart can serve them before the network answers."""
from __future__ import annotations

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import List, Optional

from .catalog import parse_catalog
from .puzzle_types import PuzzleRecord, Tier

_LOGGER = logging.getLogger(__name__)


def _cache_dir(data_dir: Path) -> Path:
    return Path(data_dir) / "puzzle_cache"


def _cache_key(source_name: str, tier: Optional[Tier]) -> str:
    """Generate a stable cache key from the source identity and tier."""
    h = hashlib.sha256()
    h.update(source_name.encode("utf-8"))
    h.update(b"|")
    h.update((tier.value if tier is not None else "all").encode("utf-8"))
    return h.hexdigest()[:24]


def _cache_file(data_dir: Path, source_name: str, tier: Optional[Tier]) -> Path:
    return _cache_dir(data_dir) / f"catalog_{_cache_key(source_name, tier)}.json"


def load_cached_catalog(
    data_dir: Path,
    source_name: str,
    tier: Optional[Tier],
    max_age_hours: int = 24,
) -> List[PuzzleRecord] | None:
    """Load a cached catalog if available.

    If max_age_hours <= 0, the cache never expires.
    """
    try:
        cache_file = _cache_file(data_dir, source_name, tier)
        if not cache_file.exists():
            return None

        # Check age (unless configured to never expire)
        if int(max_age_hours) > 0:
            age_hours = (time.time() - cache_file.stat().st_mtime) / 3600
            if age_hours > max_age_hours:
                return None

        with cache_file.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        _LOGGER.warning("Ignoring unreadable puzzle cache: %s", exc)
        return None

    if not isinstance(data, dict) or not isinstance(data.get("puzzles"), list):
        return None
    return parse_catalog(data["puzzles"]) or None


def save_cached_catalog(
    data_dir: Path,
    source_name: str,
    tier: Optional[Tier],
    puzzles: List[PuzzleRecord],
) -> None:
    """Save a fetched catalog to the disk cache. Failures are logged, not raised."""
    try:
        cache_file = _cache_file(data_dir, source_name, tier)
        cache_file.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "cache_key": _cache_key(source_name, tier),
            "source": source_name,
            "tier": tier.value if tier is not None else None,
            "timestamp": int(time.time()),
            "num_puzzles": len(puzzles),
            "puzzles": [p.to_dict() for p in puzzles],
        }
        with cache_file.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
    except OSError as exc:
        _LOGGER.warning("Could not write puzzle cache: %s", exc)
