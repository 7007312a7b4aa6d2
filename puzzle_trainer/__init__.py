"""
Chess Puzzle Trainer

Presents puzzles, checks the user's moves against each puzzle's stored
solution, and pays out points and rating for solved puzzles.

Move checking is plain token comparison - no move generation, no
legality checks.
"""

from .puzzle_types import (
    CatalogStats,
    Lifecycle,
    MoveOutcome,
    PuzzleCompletion,
    PuzzleRecord,
    Tier,
    UserStatistics,
)
from .errors import PositionDecodeError, PuzzleSourceError, PuzzleTrainerError
from .difficulty import tier_from_rating, reward_from_rating
from .position import decode_position, render_ascii
from .attempt import AttemptTracker, move_token
from .scoring import compute_rating_delta, compute_reward, expected_score, format_elapsed
from .achievements import ACHIEVEMENTS, AchievementDefinition, evaluate
from .catalog import (
    BUILTIN_PUZZLES,
    JsonFilePuzzleSource,
    PuzzleSource,
    StaticPuzzleSource,
    builtin_source,
    get_catalog_stats,
)
from .lichess_source import LichessPuzzleSource
from .stats_store import StatsStore
from .controller import ControllerState, ProgressionController, TrainerEvents

__all__ = [
    # Types
    "CatalogStats",
    "Lifecycle",
    "MoveOutcome",
    "PuzzleCompletion",
    "PuzzleRecord",
    "Tier",
    "UserStatistics",
    "AchievementDefinition",
    "ControllerState",
    "TrainerEvents",
    # Errors
    "PositionDecodeError",
    "PuzzleSourceError",
    "PuzzleTrainerError",
    # Functions
    "tier_from_rating",
    "reward_from_rating",
    "decode_position",
    "render_ascii",
    "move_token",
    "compute_reward",
    "compute_rating_delta",
    "expected_score",
    "format_elapsed",
    "evaluate",
    "builtin_source",
    "get_catalog_stats",
    # Sources and state
    "ACHIEVEMENTS",
    "BUILTIN_PUZZLES",
    "PuzzleSource",
    "StaticPuzzleSource",
    "JsonFilePuzzleSource",
    "LichessPuzzleSource",
    "StatsStore",
    "AttemptTracker",
    "ProgressionController",
]
