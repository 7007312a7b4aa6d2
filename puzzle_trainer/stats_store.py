"""
Persistence for UserStatistics.

One JSON record per storage key, stored as ``<data_dir>/<key>.json``.
Reads merge the stored fields over defaults, so fields added later pick
up their default values. When the disk cannot be written the store
keeps working in memory for the rest of the session.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from .puzzle_types import UserStatistics

_LOGGER = logging.getLogger(__name__)

DEFAULT_STATS_KEY = "chessPuzzleStats"


class StatsStore:
    def __init__(
        self,
        data_dir: Path,
        key: str = DEFAULT_STATS_KEY,
        defaults: Optional[UserStatistics] = None,
    ) -> None:
        self.path = Path(data_dir) / f"{key}.json"
        self.defaults = defaults.copy() if defaults is not None else UserStatistics()
        self.in_memory = False
        self._memory: Optional[dict] = None

    def load(self) -> UserStatistics:
        """Stored statistics merged over defaults; defaults when nothing is stored."""
        if self.in_memory:
            return UserStatistics.from_dict(self._memory or {}, self.defaults)
        if not self.path.exists():
            return self.defaults.copy()
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.warning("Could not read statistics from %s, using defaults: %s", self.path, exc)
            return self.defaults.copy()
        return UserStatistics.from_dict(data, self.defaults)

    def save(self, stats: UserStatistics) -> None:
        """Write ``stats``; on failure, switch to in-memory storage."""
        data = stats.to_dict()
        if self.in_memory:
            self._memory = data
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".stats-", suffix=".json", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            _LOGGER.warning(
                "Could not save statistics to %s; keeping them in memory for this session: %s",
                self.path,
                exc,
            )
            self.in_memory = True
            self._memory = data

    def clear(self) -> None:
        """Remove stored statistics (the next load returns defaults)."""
        self._memory = None
        if self.in_memory:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
