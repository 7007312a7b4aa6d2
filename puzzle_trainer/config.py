"""
Puzzle Trainer - Configuration

Loads settings from environment variables (prefix ``PUZZLE_TRAINER_``)
and an optional ``.env`` file, with Pydantic validation.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings

DEFAULT_DATA_DIRNAME = ".puzzle_trainer"


class Settings(BaseSettings):
    """Trainer settings loaded from environment variables."""

    # ─── Storage ───
    data_dir: Optional[Path] = None
    stats_key: str = "chessPuzzleStats"

    # ─── Attempt rules ───
    max_hints: int = 3
    initial_rating: float = 0.0
    track_time: bool = True

    # ─── Remote puzzles (Lichess) ───
    remote_enabled: bool = False
    lichess_base_url: str = "https://lichess.org"
    request_timeout: float = 10.0
    catalog_path: Optional[Path] = None
    remote_puzzle_ids: List[str] = []
    include_daily: bool = True
    cache_max_age_hours: int = 24

    @property
    def resolved_data_dir(self) -> Path:
        """Data directory: explicit setting, then ``PUZZLE_DATA_DIR``, then ``~/.puzzle_trainer``.

        Not created here; writers create it on first save.
        """
        if self.data_dir is not None:
            return Path(self.data_dir)
        override = (os.getenv("PUZZLE_DATA_DIR") or "").strip()
        if override:
            return Path(override)
        return Path.home() / DEFAULT_DATA_DIRNAME

    model_config = {
        "env_prefix": "PUZZLE_TRAINER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
