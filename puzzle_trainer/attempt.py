"""
Attempt tracking for a single puzzle in play.

Moves are validated by comparing the generated token (origin + target,
plus an optional promotion letter) with the expected solution step.
There is no chess-rule validation: a token either equals the stored
step or it does not.
"""

from __future__ import annotations

from typing import Optional

from .position import is_square_name
from .puzzle_types import Lifecycle, MoveOutcome, PuzzleRecord

DEFAULT_MAX_HINTS = 3


def move_token(origin: str, target: str, promotion: Optional[str] = None) -> str:
    """Build the coordinate token for a move, e.g. ("e7", "e8", "q") -> "e7e8q"."""
    origin = origin.strip().lower()
    target = target.strip().lower()
    if not is_square_name(origin):
        raise ValueError(f"Invalid origin square: {origin!r}")
    if not is_square_name(target):
        raise ValueError(f"Invalid target square: {target!r}")
    token = origin + target
    if promotion:
        token += promotion.strip().lower()
    return token


class AttemptTracker:
    """
    State of one in-progress puzzle.

    Tracks:
    - moves submitted (right or wrong; never rolled back)
    - hints used (capped at ``max_hints``)
    - the origin square of a two-click move
    - lifecycle (PLAYING until every solution step has been matched)
    """

    def __init__(self, max_hints: int = DEFAULT_MAX_HINTS) -> None:
        self.max_hints = max_hints
        self.puzzle: Optional[PuzzleRecord] = None
        self.moves_submitted = 0
        self.hints_used = 0
        self.selected_origin: Optional[str] = None
        self.lifecycle = Lifecycle.PLAYING
        self._all_matched = True

    def reset(self, puzzle: PuzzleRecord) -> None:
        """Start a fresh attempt at ``puzzle``."""
        self.puzzle = puzzle
        self.moves_submitted = 0
        self.hints_used = 0
        self.selected_origin = None
        self.lifecycle = Lifecycle.PLAYING
        self._all_matched = True

    @property
    def is_solved(self) -> bool:
        return self.lifecycle == Lifecycle.SOLVED

    @property
    def hints_remaining(self) -> int:
        return max(0, self.max_hints - self.hints_used)

    def _require_puzzle(self) -> PuzzleRecord:
        if self.puzzle is None:
            raise RuntimeError("No puzzle loaded")
        return self.puzzle

    def submit_move(self, origin: str, target: str, promotion: Optional[str] = None) -> MoveOutcome:
        """
        Compare a move against the next expected solution step.

        The move counter increments on every call, including rejected
        moves. The puzzle is solved only when the counter reaches the
        solution length and every submitted move matched its step.
        """
        puzzle = self._require_puzzle()
        token = move_token(origin, target, promotion)
        self.selected_origin = None

        self.moves_submitted += 1
        index = self.moves_submitted - 1

        if self.is_solved or index >= len(puzzle.solution):
            return MoveOutcome(token=token, accepted=False, expected_index=index)

        if puzzle.solution[index] != token:
            self._all_matched = False
            return MoveOutcome(token=token, accepted=False, expected_index=index)

        completed = self.moves_submitted == len(puzzle.solution) and self._all_matched
        if completed:
            self.lifecycle = Lifecycle.SOLVED
        return MoveOutcome(token=token, accepted=True, completed=completed, expected_index=index)

    def select_square(self, square: str, promotion: Optional[str] = None) -> Optional[MoveOutcome]:
        """
        Two-click move input.

        First click selects an origin, a click on the same square clears
        it, and a click on any other square submits the move.
        """
        square = square.strip().lower()
        if not is_square_name(square):
            raise ValueError(f"Invalid square: {square!r}")
        if self.selected_origin is None:
            self.selected_origin = square
            return None
        if self.selected_origin == square:
            self.selected_origin = None
            return None
        return self.submit_move(self.selected_origin, square, promotion)

    def request_hint(self) -> Optional[str]:
        """
        Return the next expected move, or None.

        None when the hint limit is reached (the count stays put) or when
        no solution step remains (the hint is still counted).
        """
        puzzle = self._require_puzzle()
        if self.hints_used >= self.max_hints:
            return None
        self.hints_used += 1
        if self.moves_submitted < len(puzzle.solution):
            return puzzle.solution[self.moves_submitted]
        return None
