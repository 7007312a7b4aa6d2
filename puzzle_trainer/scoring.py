"""
Scoring Module

Points and rating updates for a solved puzzle.

Elapsed time is always passed in explicitly; nothing here reads a clock.
``None`` means the caller does not track time, which disables every
time-based bonus and penalty.
"""

from __future__ import annotations

import math
from typing import Optional

from .puzzle_types import PuzzleRecord

# =============================================================================
# POINTS
# =============================================================================

MIN_POINTS = 10
HINT_PENALTY = 10
TIME_BONUS_SECONDS = 100

# =============================================================================
# RATING (Elo-style)
# =============================================================================

K_FACTOR = 32
RATING_SCALE = 400

FAST_SOLVE_SECONDS = 30
FAST_SOLVE_BONUS = 5
SLOW_SOLVE_SECONDS = 120
SLOW_SOLVE_PENALTY = 5
MOVE_ALLOWANCE = 3
EXTRA_MOVES_PENALTY = 5


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_reward(
    puzzle: PuzzleRecord,
    hints_used: int,
    elapsed_seconds: Optional[float] = None,
) -> int:
    """
    Points earned for solving ``puzzle``.

    points = max(10, reward + time_bonus - hints_used * 10)
    time_bonus = max(0, 100 - elapsed_seconds), or 0 when time is not tracked
    """
    time_bonus = 0
    if elapsed_seconds is not None:
        time_bonus = max(0, TIME_BONUS_SECONDS - int(elapsed_seconds))
    points = puzzle.reward + time_bonus - hints_used * HINT_PENALTY
    return max(MIN_POINTS, points)


def expected_score(puzzle_rating: float, user_rating: float) -> float:
    """Logistic probability that a user of ``user_rating`` beats the puzzle."""
    return 1.0 / (1.0 + 10 ** ((puzzle_rating - user_rating) / RATING_SCALE))


def compute_rating_delta(
    puzzle_rating: float,
    user_rating: float,
    moves_submitted: int,
    elapsed_seconds: Optional[float] = None,
) -> int:
    """
    Rating change for a solved puzzle.

    delta = round(32 * (1 - expected)), then independently:
    - +5 if solved in under 30 seconds
    - -5 if it took over 120 seconds
    - -5 if more than 3 moves were submitted

    The result is not clamped; a user rated far above the puzzle can lose
    rating even though the puzzle was solved.
    """
    delta = _round_half_up(K_FACTOR * (1.0 - expected_score(puzzle_rating, user_rating)))

    if elapsed_seconds is not None:
        if elapsed_seconds < FAST_SOLVE_SECONDS:
            delta += FAST_SOLVE_BONUS
        elif elapsed_seconds > SLOW_SOLVE_SECONDS:
            delta -= SLOW_SOLVE_PENALTY

    if moves_submitted > MOVE_ALLOWANCE:
        delta -= EXTRA_MOVES_PENALTY

    return delta


def format_elapsed(seconds: float) -> str:
    """Timer display, e.g. 75 -> "01:15"."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins:02d}:{secs:02d}"
