"""Exception types raised by the puzzle trainer."""

from __future__ import annotations


class PuzzleTrainerError(Exception):
    """Base class for trainer errors."""


class PuzzleSourceError(PuzzleTrainerError):
    """A puzzle source could not deliver records (network, HTTP status, payload)."""


class PositionDecodeError(PuzzleTrainerError, ValueError):
    """A position string could not be decoded into 64 squares."""

