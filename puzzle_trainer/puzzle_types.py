"""
Puzzle Data Types and Schemas

Defines the data structures shared by the trainer:
puzzle records, attempt outcomes, and the user's running statistics.
All record types are serializable to plain dicts.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional, Tuple

if TYPE_CHECKING:
    from .achievements import AchievementDefinition


class Tier(str, Enum):
    """
    Difficulty buckets used to partition the puzzle catalog.

    Rating ranges (see ``difficulty.tier_from_rating``):
    - BEGINNER: below 1200
    - INTERMEDIATE: 1200-1599
    - ADVANCED: 1600-1999
    - EXPERT: 2000 and above
    """
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @classmethod
    def parse(cls, value: Any) -> Tier:
        """Accept enum members and case-insensitive names ("Beginner", "expert")."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown difficulty tier: {value!r}") from None


class Lifecycle(str, Enum):
    """Lifecycle of a single puzzle attempt. There is no failed state."""
    PLAYING = "playing"
    SOLVED = "solved"


@dataclass(frozen=True)
class PuzzleRecord:
    """
    A single puzzle as supplied by a puzzle source.

    ``solution`` holds the expected move tokens in order. Tokens are
    compared by plain string equality against the moves the user makes.
    """
    puzzle_id: str
    title: str
    tier: Tier
    rating: int
    fen: str
    solution: Tuple[str, ...]
    reward: int
    description: str = ""

    # Optional metadata from remote sources
    date: Optional[str] = None
    themes: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Lists are accepted on construction but stored as tuples
        object.__setattr__(self, "solution", tuple(self.solution))
        object.__setattr__(self, "themes", tuple(self.themes))
        object.__setattr__(self, "tier", Tier.parse(self.tier))
        if not self.solution:
            raise ValueError(f"Puzzle {self.puzzle_id!r} has an empty solution")
        if self.rating <= 0:
            raise ValueError(f"Puzzle {self.puzzle_id!r} has non-positive rating {self.rating}")

    @property
    def side_to_move(self) -> str:
        """"white" or "black", read from the FEN's second field (white when absent)."""
        parts = self.fen.split()
        return "black" if len(parts) > 1 and parts[1] == "b" else "white"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "puzzle_id": self.puzzle_id,
            "title": self.title,
            "tier": self.tier.value,
            "rating": self.rating,
            "fen": self.fen,
            "solution": list(self.solution),
            "reward": self.reward,
            "description": self.description,
            "date": self.date,
            "themes": list(self.themes),
        }

    @classmethod
    def from_dict(cls, data: dict) -> PuzzleRecord:
        """
        Create a PuzzleRecord from a dictionary.

        Also accepts the legacy catalog keys ``id``, ``difficulty`` and ``elo``.
        """
        solution = data["solution"]
        if not isinstance(solution, (list, tuple)):
            raise TypeError(f"Solution must be a list of move tokens, got {type(solution).__name__}")
        return cls(
            puzzle_id=str(data.get("puzzle_id", data.get("id", ""))),
            title=data.get("title", ""),
            tier=data.get("tier", data.get("difficulty")),
            rating=int(data.get("rating", data.get("elo", 0))),
            fen=data["fen"],
            solution=tuple(solution),
            reward=int(data["reward"]),
            description=data.get("description", ""),
            date=data.get("date"),
            themes=tuple(data.get("themes") or ()),
        )


@dataclass(frozen=True)
class MoveOutcome:
    """Result of submitting one move to an attempt."""
    token: str
    accepted: bool
    completed: bool = False
    # 0-indexed position in the solution this move was compared against
    expected_index: int = 0


@dataclass
class UserStatistics:
    """
    Cumulative statistics for the user, persisted between sessions.

    Stored with the keys ``elo``, ``points``, ``streak``, ``puzzlesSolved``
    and ``totalTime``.
    """
    rating: float = 0.0
    points: int = 0
    streak: int = 0
    puzzles_solved: int = 0
    total_time_seconds: int = 0

    def copy(self) -> UserStatistics:
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "elo": self.rating,
            "points": self.points,
            "streak": self.streak,
            "puzzlesSolved": self.puzzles_solved,
            "totalTime": self.total_time_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict, defaults: Optional[UserStatistics] = None) -> UserStatistics:
        """Merge persisted fields over ``defaults``; unknown keys are ignored."""
        base = defaults.copy() if defaults is not None else cls()
        if not isinstance(data, dict):
            return base

        rating = data.get("elo", data.get("rating"))
        if isinstance(rating, (int, float)) and not isinstance(rating, bool):
            base.rating = float(rating)
        for key, attr in (
            ("points", "points"),
            ("streak", "streak"),
            ("puzzlesSolved", "puzzles_solved"),
            ("totalTime", "total_time_seconds"),
        ):
            value = data.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                setattr(base, attr, int(value))
        return base


@dataclass(frozen=True)
class PuzzleCompletion:
    """Rewards produced when a puzzle transitions to solved."""
    puzzle: PuzzleRecord
    points_earned: int
    rating_delta: int
    elapsed_seconds: Optional[int] = None
    achievement: Optional[AchievementDefinition] = None

    def to_dict(self) -> dict:
        return {
            "puzzle_id": self.puzzle.puzzle_id,
            "points_earned": self.points_earned,
            "rating_delta": self.rating_delta,
            "elapsed_seconds": self.elapsed_seconds,
            "achievement": getattr(self.achievement, "key", None),
        }


@dataclass
class CatalogStats:
    """Summary of a puzzle catalog."""
    total: int = 0
    by_tier: dict = field(default_factory=dict)
    average_rating: int = 0
    first_date: Optional[str] = None
    last_date: Optional[str] = None
