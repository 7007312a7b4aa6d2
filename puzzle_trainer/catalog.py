"""
Puzzle Catalogs

A puzzle source supplies records for one tier (or all tiers). The
built-in catalog ships with the package and is the last-resort
fallback whenever every other source comes up empty.

Solution tokens use coordinate form ("e2e4"); both sides' moves are
listed, as the user plays the whole line.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Protocol

from .difficulty import TIER_ORDER, partition_by_tier
from .errors import PositionDecodeError, PuzzleSourceError
from .position import decode_position
from .puzzle_types import CatalogStats, PuzzleRecord, Tier

_LOGGER = logging.getLogger(__name__)


class PuzzleSource(Protocol):
    """Anything that can hand out puzzle records by tier."""

    def fetch(self, tier: Optional[Tier] = None) -> List[PuzzleRecord]:
        """Records for ``tier`` (all tiers when None). May raise PuzzleSourceError."""
        ...


BUILTIN_PUZZLES: List[PuzzleRecord] = [
    PuzzleRecord(
        puzzle_id="1",
        title="Scholar's Finish",
        tier=Tier.BEGINNER,
        rating=1000,
        description="The queen and bishop both eye f7. Finish the game.",
        fen="r1bqkbnr/pppp1ppp/2n5/4p3/2B1P3/5Q2/PPPP1PPP/RNB1K1NR w KQkq - 2 3",
        solution=("f3f7",),
        reward=50,
    ),
    PuzzleRecord(
        puzzle_id="2",
        title="Fork Attack",
        tier=Tier.BEGINNER,
        rating=1150,
        description="Find the sacrifice that sets up a knight check",
        fen="r1bqkb1r/pppp1ppp/2n2n2/4p3/2B1P3/3P1N2/PPP2PPP/RNBQK2R w KQkq - 4 4",
        solution=("c4f7", "e8f7", "f3g5"),
        reward=50,
    ),
    PuzzleRecord(
        puzzle_id="3",
        title="Back Rank Mate",
        tier=Tier.INTERMEDIATE,
        rating=1300,
        description="Deliver a back rank checkmate",
        fen="r5k1/5ppp/8/8/8/8/3Q1PPP/3R2K1 w - - 0 1",
        solution=("d2d8", "a8d8", "d1d8"),
        reward=80,
    ),
    PuzzleRecord(
        puzzle_id="4",
        title="Bishop Takes f7",
        tier=Tier.INTERMEDIATE,
        rating=1450,
        description="Drag the king out and check it with the knight",
        fen="r1bqk2r/pppp1ppp/2n2n2/2b1p3/2B1P3/3P1N2/PPP2PPP/RNBQK2R w KQkq - 6 4",
        solution=("c4f7", "e8f7", "f3g5"),
        reward=80,
    ),
    PuzzleRecord(
        puzzle_id="5",
        title="Arabian Mate",
        tier=Tier.ADVANCED,
        rating=1650,
        description="Rook and knight cooperate against the cornered king",
        fen="7k/R7/5N2/8/8/8/6PP/6K1 w - - 0 1",
        solution=("a7h7",),
        reward=120,
    ),
    PuzzleRecord(
        puzzle_id="6",
        title="Smothered Mate",
        tier=Tier.ADVANCED,
        rating=1700,
        description="Sacrifice the queen so the king is buried by its own rook",
        fen="5r1k/6pp/7N/3Q4/8/8/6PP/6K1 w - - 0 1",
        solution=("d5g8", "f8g8", "h6f7"),
        reward=120,
    ),
    PuzzleRecord(
        puzzle_id="7",
        title="Anastasia's Mate",
        tier=Tier.EXPERT,
        rating=2000,
        description="The knight seals the escape squares; the rook does the rest",
        fen="r7/pp2N1pk/8/3R4/8/8/PP3PPP/6K1 w - - 0 1",
        solution=("d5h5",),
        reward=200,
    ),
    PuzzleRecord(
        puzzle_id="8",
        title="Greek Gift Sacrifice",
        tier=Tier.EXPERT,
        rating=2100,
        description="Execute the classic Greek Gift sacrifice",
        fen="r1bq1rk1/pppnbppp/2n1p3/3pP3/3P4/2NB1N2/PPP2PPP/R1BQK2R w KQ - 0 8",
        solution=("d3h7", "g8h7", "f3g5", "h7g8", "d1h5"),
        reward=200,
    ),
]


class StaticPuzzleSource:
    """In-memory catalog partitioned by tier."""

    def __init__(self, puzzles: Iterable[PuzzleRecord]) -> None:
        self._puzzles = list(puzzles)
        self._by_tier = partition_by_tier(self._puzzles)

    def __len__(self) -> int:
        return len(self._puzzles)

    def fetch(self, tier: Optional[Tier] = None) -> List[PuzzleRecord]:
        if tier is None:
            return [p for t in TIER_ORDER for p in self._by_tier[t]]
        return list(self._by_tier.get(Tier.parse(tier), []))


def builtin_source() -> StaticPuzzleSource:
    return StaticPuzzleSource(BUILTIN_PUZZLES)


# =============================================================================
# JSON CATALOG FILES
# =============================================================================


def playable_puzzles(puzzles: Iterable[PuzzleRecord]) -> List[PuzzleRecord]:
    """Drop (and log) records whose position does not decode to a full board."""
    playable: List[PuzzleRecord] = []
    for p in puzzles:
        try:
            decode_position(p.fen)
        except PositionDecodeError as exc:
            _LOGGER.warning("Skipping puzzle %r with a bad position: %s", p.puzzle_id, exc)
            continue
        playable.append(p)
    return playable


def parse_catalog(rows: Iterable[dict]) -> List[PuzzleRecord]:
    """Build records from dicts, skipping (and logging) malformed rows."""
    puzzles: List[PuzzleRecord] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            puzzles.append(PuzzleRecord.from_dict(row))
        except (KeyError, TypeError, ValueError) as exc:
            _LOGGER.warning("Skipping malformed puzzle %r: %s", row.get("id", row.get("puzzle_id")), exc)
    return playable_puzzles(puzzles)


def load_catalog_file(path: Path) -> List[PuzzleRecord]:
    """Read a catalog written by :func:`save_catalog_file`."""
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise PuzzleSourceError(f"Cannot read catalog {path}: {exc}") from exc

    rows = data.get("puzzles") if isinstance(data, dict) else data
    if not isinstance(rows, list):
        raise PuzzleSourceError(f"Catalog {path} has no puzzle list")
    return parse_catalog(rows)


def save_catalog_file(path: Path, puzzles: List[PuzzleRecord]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "num_puzzles": len(puzzles),
        "puzzles": [p.to_dict() for p in puzzles],
    }
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


class JsonFilePuzzleSource:
    """Catalog backed by a JSON file, read lazily on first fetch."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._source: Optional[StaticPuzzleSource] = None

    def fetch(self, tier: Optional[Tier] = None) -> List[PuzzleRecord]:
        if self._source is None:
            self._source = StaticPuzzleSource(load_catalog_file(self.path))
        return self._source.fetch(tier)


# =============================================================================
# STATISTICS
# =============================================================================


def get_catalog_stats(puzzles: List[PuzzleRecord]) -> CatalogStats:
    """Count puzzles by tier and average their ratings."""
    stats = CatalogStats(
        total=len(puzzles),
        by_tier={t.value: 0 for t in TIER_ORDER},
    )
    if not puzzles:
        return stats

    for p in puzzles:
        stats.by_tier[p.tier.value] += 1
    stats.average_rating = round(sum(p.rating for p in puzzles) / len(puzzles))

    dates = sorted(p.date for p in puzzles if p.date)
    if dates:
        stats.first_date = dates[0]
        stats.last_date = dates[-1]
    return stats
