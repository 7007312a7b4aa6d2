"""
Remote puzzle source backed by the Lichess puzzle API.

Every failure (timeout, connection error, non-2xx status, malformed
payload) surfaces as :class:`PuzzleSourceError`; callers decide whether
to fall back to local data.
"""

from __future__ import annotations

import io
import logging
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, List, Optional, Sequence

import chess
import chess.pgn
import requests

from .difficulty import reward_from_rating, tier_from_rating
from .errors import PositionDecodeError, PuzzleSourceError
from .position import decode_position
from .puzzle_types import PuzzleRecord, Tier

_LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://lichess.org"

# Pause between consecutive requests of a date range walk
DEFAULT_REQUEST_DELAY = 1.0


@dataclass
class DailyRangeResult:
    """Outcome of walking a range of daily puzzles."""
    puzzles: List[PuzzleRecord] = field(default_factory=list)
    failed_dates: List[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.puzzles)

    @property
    def error_count(self) -> int:
        return len(self.failed_dates)


def _position_from_game(game: dict) -> str:
    """FEN of the puzzle position: ``game.fen`` when given, else the end of ``game.pgn``."""
    fen = game.get("fen")
    if isinstance(fen, str) and fen.strip():
        return fen.strip()

    pgn_text = game.get("pgn")
    if not isinstance(pgn_text, str) or not pgn_text.strip():
        raise PuzzleSourceError("Puzzle payload has neither a FEN nor a PGN")

    parsed = chess.pgn.read_game(io.StringIO(pgn_text))
    if parsed is None or parsed.errors:
        raise PuzzleSourceError("Puzzle PGN could not be parsed")
    return parsed.end().board().fen()


def puzzle_from_payload(payload: dict, *, puzzle_date: Optional[str] = None) -> PuzzleRecord:
    """Convert a Lichess puzzle response into a PuzzleRecord."""
    if not isinstance(payload, dict):
        raise PuzzleSourceError("Puzzle payload is not an object")
    game = payload.get("game")
    puzzle = payload.get("puzzle")
    if not isinstance(game, dict) or not isinstance(puzzle, dict):
        raise PuzzleSourceError("Puzzle payload is missing 'game' or 'puzzle'")

    solution = puzzle.get("solution")
    rating = puzzle.get("rating")
    if not isinstance(solution, list) or not solution:
        raise PuzzleSourceError("Puzzle payload has no solution")
    if not isinstance(rating, int) or rating <= 0:
        raise PuzzleSourceError(f"Puzzle payload has invalid rating {rating!r}")

    puzzle_id = str(puzzle.get("id") or game.get("id") or "")
    if puzzle_date:
        title = f"Daily Puzzle - {puzzle_date}"
    else:
        title = f"Lichess Puzzle {puzzle_id}"

    fen = _position_from_game(game)
    try:
        decode_position(fen)
    except PositionDecodeError as exc:
        raise PuzzleSourceError(f"Puzzle {puzzle_id} has a bad position: {exc}") from exc

    return PuzzleRecord(
        puzzle_id=puzzle_id,
        title=title,
        tier=tier_from_rating(rating),
        rating=rating,
        description="Find the best move",
        fen=fen,
        solution=tuple(str(m) for m in solution),
        reward=reward_from_rating(rating),
        date=puzzle_date,
        themes=tuple(str(t) for t in puzzle.get("themes") or ()),
    )


class LichessPuzzleSource:
    """
    Fetches the daily puzzle and/or a fixed list of puzzle ids.

    Individual puzzles that fail are logged and skipped; the fetch only
    raises when nothing at all could be retrieved.
    """

    def __init__(
        self,
        puzzle_ids: Sequence[str] = (),
        *,
        include_daily: bool = True,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.puzzle_ids = list(puzzle_ids)
        self.include_daily = include_daily
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def name(self) -> str:
        """Identity used to key the disk cache."""
        ids = ",".join(self.puzzle_ids)
        return f"lichess:{self.base_url}:{int(self.include_daily)}:{ids}"

    def _get_json(self, path: str) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(
                url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise PuzzleSourceError(f"Request timed out: {url}") from exc
        except requests.exceptions.RequestException as exc:
            raise PuzzleSourceError(f"Unable to reach Lichess: {exc}") from exc

        if response.status_code == 404:
            raise PuzzleSourceError(f"Puzzle not found: {url}")
        if not 200 <= response.status_code < 300:
            raise PuzzleSourceError(f"Lichess API error: {response.status_code} {response.reason}")

        try:
            return response.json()
        except ValueError as exc:
            raise PuzzleSourceError(f"Malformed JSON from {url}") from exc

    def fetch_daily(self) -> PuzzleRecord:
        return puzzle_from_payload(
            self._get_json("/api/puzzle/daily"),
            puzzle_date=date.today().isoformat(),
        )

    def fetch_by_id(self, puzzle_id: str) -> PuzzleRecord:
        return puzzle_from_payload(self._get_json(f"/api/puzzle/{puzzle_id}"))

    def fetch_daily_for(self, day: date) -> PuzzleRecord:
        day_str = day.isoformat()
        return puzzle_from_payload(self._get_json(f"/api/puzzle/daily/{day_str}"), puzzle_date=day_str)

    def fetch_daily_range(
        self,
        start: date,
        end: date,
        *,
        delay: float = DEFAULT_REQUEST_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> DailyRangeResult:
        """
        Fetch the daily puzzle for every date from ``start`` to ``end`` inclusive.

        Requests are spaced ``delay`` seconds apart. Days that fail are
        recorded in ``failed_dates`` and the walk carries on.
        """
        if end < start:
            raise ValueError(f"End date {end} is before start date {start}")

        result = DailyRangeResult()
        day = start
        while day <= end:
            if day != start and delay > 0:
                sleep(delay)
            try:
                puzzle = self.fetch_daily_for(day)
            except PuzzleSourceError as exc:
                _LOGGER.warning("No daily puzzle for %s: %s", day.isoformat(), exc)
                result.failed_dates.append(day.isoformat())
            else:
                _LOGGER.info("Fetched %s (rating %d)", puzzle.title, puzzle.rating)
                result.puzzles.append(puzzle)
            day += timedelta(days=1)
        return result

    def fetch_all(self) -> List[PuzzleRecord]:
        """Every configured puzzle, in request order (daily first)."""
        puzzles: List[PuzzleRecord] = []
        errors: List[str] = []

        jobs = []
        if self.include_daily:
            jobs.append(("daily", self.fetch_daily))
        for pid in self.puzzle_ids:
            jobs.append((pid, lambda pid=pid: self.fetch_by_id(pid)))

        for label, job in jobs:
            try:
                puzzles.append(job())
            except PuzzleSourceError as exc:
                _LOGGER.warning("Skipping Lichess puzzle %s: %s", label, exc)
                errors.append(str(exc))

        if not puzzles and errors:
            raise PuzzleSourceError(f"No Lichess puzzles could be fetched ({len(errors)} errors)")
        return puzzles

    def fetch(self, tier: Optional[Tier] = None) -> List[PuzzleRecord]:
        puzzles = self.fetch_all()
        if tier is None:
            return puzzles
        tier = Tier.parse(tier)
        return [p for p in puzzles if p.tier == tier]
