"""ProgressionController: the central orchestrator of a puzzle session.

Coordinates: puzzle sources, AttemptTracker, scoring, achievements and
statistics persistence. Emits events via simple callbacks so a UI or
tests can subscribe.

Thread-safety: every public method is meant to be called from one
thread. The optional remote fetch runs on a worker thread, but its
result is only applied when the controller harvests the finished
future (on load, advance, tier change, or ``poll_remote``).
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Deque, Dict, List, Optional, Union

from .achievements import AchievementDefinition, evaluate
from .attempt import AttemptTracker
from .catalog import BUILTIN_PUZZLES, JsonFilePuzzleSource, PuzzleSource, builtin_source, playable_puzzles
from .config import Settings, get_settings
from .difficulty import FALLBACK_TIER
from .errors import PuzzleSourceError
from .lichess_source import LichessPuzzleSource
from .puzzle_cache import load_cached_catalog, save_cached_catalog
from .puzzle_types import MoveOutcome, PuzzleCompletion, PuzzleRecord, Tier, UserStatistics
from .scoring import compute_rating_delta, compute_reward
from .stats_store import StatsStore

_LOGGER = logging.getLogger(__name__)

MAX_RECENT_REWARDS = 5

# ── Event definitions ────────────────────────────────────────────────────────

PuzzleCallback = Callable[[PuzzleRecord], None]
MoveCallback = Callable[[MoveOutcome], None]
SolvedCallback = Callable[[PuzzleCompletion], None]
AchievementCallback = Callable[[AchievementDefinition], None]
NoticeCallback = Callable[[], None]


@dataclass
class TrainerEvents:
    """Observable callbacks. Multiple handlers per event."""

    on_puzzle_loaded: list[PuzzleCallback] = field(default_factory=list)
    on_move_accepted: list[MoveCallback] = field(default_factory=list)
    on_move_rejected: list[MoveCallback] = field(default_factory=list)
    on_puzzle_solved: list[SolvedCallback] = field(default_factory=list)
    on_achievement_unlocked: list[AchievementCallback] = field(default_factory=list)
    on_hint_unavailable: list[NoticeCallback] = field(default_factory=list)


class ControllerState(str, Enum):
    IDLE = "idle"
    LOADED = "loaded"
    PLAYING = "playing"
    SOLVED = "solved"


# ── Controller ───────────────────────────────────────────────────────────────


class ProgressionController:
    """Runs a puzzle session: picks puzzles, checks moves, pays out rewards.

    ``local_source`` is always available (the built-in catalog by
    default). ``remote_source`` is optional and unreliable: its results
    replace the local catalog for a tier once they arrive, and its
    failures are logged and ignored.
    """

    def __init__(
        self,
        local_source: Optional[PuzzleSource] = None,
        *,
        remote_source: Optional[PuzzleSource] = None,
        stats_store: Optional[StatsStore] = None,
        settings: Optional[Settings] = None,
        data_dir: Optional[Path] = None,
        clock: Callable[[], float] = time.monotonic,
        executor: Optional[concurrent.futures.Executor] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.events = TrainerEvents()

        self._local = local_source or builtin_source()
        self._remote = remote_source
        self._data_dir = data_dir
        self._clock = clock
        self._executor = executor
        self._owns_executor = executor is None

        if stats_store is None:
            stats_store = StatsStore(
                self.settings.resolved_data_dir,
                self.settings.stats_key,
                defaults=UserStatistics(rating=self.settings.initial_rating),
            )
        self._store = stats_store
        self._stats = stats_store.load()

        self._attempt = AttemptTracker(max_hints=self.settings.max_hints)
        self._state = ControllerState.IDLE
        self._puzzle: Optional[PuzzleRecord] = None
        self._tier: Optional[Tier] = None
        self._index = 0
        self._started_at: Optional[float] = None
        self._solved_elapsed: Optional[float] = None

        self._catalogs: Dict[Optional[Tier], List[PuzzleRecord]] = {}
        self._pending: Dict[Optional[Tier], concurrent.futures.Future] = {}
        self._remote_done: set = set()

        self._recent_rewards: Deque[str] = deque(maxlen=MAX_RECENT_REWARDS)
        self.last_completion: Optional[PuzzleCompletion] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> ProgressionController:
        """Build sources from configuration: JSON catalog or built-in, plus Lichess when enabled."""
        settings = settings or get_settings()
        local: PuzzleSource
        if settings.catalog_path is not None:
            local = JsonFilePuzzleSource(settings.catalog_path)
        else:
            local = builtin_source()
        remote = None
        if settings.remote_enabled:
            remote = LichessPuzzleSource(
                settings.remote_puzzle_ids,
                include_daily=settings.include_daily,
                base_url=settings.lichess_base_url,
                timeout=settings.request_timeout,
            )
        return cls(local, remote_source=remote, settings=settings, **kwargs)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def puzzle(self) -> Optional[PuzzleRecord]:
        return self._puzzle

    @property
    def tier(self) -> Optional[Tier]:
        return self._tier

    @property
    def index(self) -> int:
        return self._index

    @property
    def stats(self) -> UserStatistics:
        return self._stats

    @property
    def attempt(self) -> AttemptTracker:
        return self._attempt

    @property
    def recent_rewards(self) -> List[str]:
        """Most recent reward messages, newest first."""
        return list(self._recent_rewards)

    def catalog(self) -> List[PuzzleRecord]:
        """The catalog currently being cycled through."""
        return list(self._catalog_for(self._tier))

    def elapsed_seconds(self) -> float:
        """Time spent on the current puzzle; frozen once it is solved."""
        if self._solved_elapsed is not None:
            return self._solved_elapsed
        if self._started_at is None:
            return 0.0
        return max(0.0, self._clock() - self._started_at)

    # ── Puzzle selection ─────────────────────────────────────────────────

    def load_puzzle(self, tier_or_index: Union[Tier, str, int, None] = None) -> PuzzleRecord:
        """Present a puzzle.

        A tier (or tier name) switches sub-catalog and starts at its first
        puzzle; an int selects a position in the current catalog; None
        reloads the puzzle at the current position.
        """
        self.poll_remote()

        if isinstance(tier_or_index, int) and not isinstance(tier_or_index, bool):
            self._index = tier_or_index
        elif tier_or_index is not None:
            tier = Tier.parse(tier_or_index)
            if tier != self._tier:
                self._tier = tier
                self._index = 0

        catalog = self._catalog_for(self._tier)
        self._index %= len(catalog)
        puzzle = catalog[self._index]
        self._present(puzzle)
        self._schedule_remote(self._tier)
        return puzzle

    def next_puzzle(self) -> PuzzleRecord:
        """Advance to the next puzzle, wrapping around at the end of the catalog."""
        self.poll_remote()
        catalog = self._catalog_for(self._tier)
        self._index = (self._index + 1) % len(catalog)
        return self.load_puzzle()

    def change_tier(self, tier: Union[Tier, str, None]) -> PuzzleRecord:
        """Switch to ``tier`` (None for every tier) and load its first puzzle."""
        self._tier = Tier.parse(tier) if tier is not None else None
        self._index = 0
        return self.load_puzzle()

    def reset_current_puzzle(self) -> PuzzleRecord:
        """Start the current puzzle over; statistics and position are untouched."""
        if self._puzzle is None:
            raise RuntimeError("No puzzle loaded")
        self._present(self._puzzle)
        return self._puzzle

    # ── Moves and hints ──────────────────────────────────────────────────

    def submit_move(self, origin: str, target: str, promotion: Optional[str] = None) -> MoveOutcome:
        self._require_puzzle()
        return self._handle_outcome(self._attempt.submit_move(origin, target, promotion))

    def click_square(self, square: str, promotion: Optional[str] = None) -> Optional[MoveOutcome]:
        """Two-click input: returns an outcome only on the click that completes a move."""
        self._require_puzzle()
        outcome = self._attempt.select_square(square, promotion)
        if outcome is None:
            return None
        return self._handle_outcome(outcome)

    def request_hint(self) -> Optional[str]:
        self._require_puzzle()
        hint = self._attempt.request_hint()
        if hint is None:
            _LOGGER.info("No hint available (%d/%d used)", self._attempt.hints_used, self._attempt.max_hints)
            self._emit(self.events.on_hint_unavailable)
        return hint

    # ── Remote catalog ───────────────────────────────────────────────────

    def poll_remote(self, *, wait: bool = False, timeout: Optional[float] = None) -> int:
        """Apply finished remote fetches; returns how many replaced a catalog.

        Results for a tier other than the one currently selected are
        discarded.
        """
        if not self._pending:
            return 0
        if wait:
            concurrent.futures.wait(list(self._pending.values()), timeout=timeout)

        applied = 0
        for tier, future in list(self._pending.items()):
            if not future.done():
                continue
            del self._pending[tier]
            if self._apply_remote(tier, future):
                applied += 1
        return applied

    def shutdown(self) -> None:
        """Stop the background fetch worker (pending results are dropped)."""
        for future in self._pending.values():
            future.cancel()
        self._pending.clear()
        if self._executor is not None and self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def __enter__(self) -> ProgressionController:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    # ── Internals ────────────────────────────────────────────────────────

    def _require_puzzle(self) -> PuzzleRecord:
        if self._puzzle is None or self._state == ControllerState.IDLE:
            raise RuntimeError("No puzzle loaded")
        return self._puzzle

    def _emit(self, handlers: list, *args) -> None:
        for handler in handlers:
            handler(*args)

    def _present(self, puzzle: PuzzleRecord) -> None:
        self._state = ControllerState.LOADED
        self._puzzle = puzzle
        self._attempt.reset(puzzle)
        self._started_at = self._clock()
        self._solved_elapsed = None
        _LOGGER.debug("Loaded puzzle %s (%s, %d)", puzzle.puzzle_id, puzzle.tier.value, puzzle.rating)
        self._emit(self.events.on_puzzle_loaded, puzzle)
        self._state = ControllerState.PLAYING

    def _handle_outcome(self, outcome: MoveOutcome) -> MoveOutcome:
        if outcome.accepted:
            self._emit(self.events.on_move_accepted, outcome)
        else:
            self._emit(self.events.on_move_rejected, outcome)
        if outcome.completed:
            self._complete()
        return outcome

    def _complete(self) -> None:
        puzzle = self._require_puzzle()
        elapsed: Optional[int] = None
        if self.settings.track_time:
            elapsed = int(self.elapsed_seconds())
        self._solved_elapsed = self.elapsed_seconds()

        points = compute_reward(puzzle, self._attempt.hints_used, elapsed)
        delta = compute_rating_delta(puzzle.rating, self._stats.rating, self._attempt.moves_submitted, elapsed)

        previous = self._stats.copy()
        self._stats.points += points
        self._stats.rating += delta
        self._stats.streak += 1
        self._stats.puzzles_solved += 1
        if elapsed is not None:
            self._stats.total_time_seconds += elapsed
        self._store.save(self._stats)
        self._recent_rewards.appendleft(f"Puzzle solved! +{points} points")

        unlocked = evaluate(self._stats, previous)
        achievement = unlocked[0] if unlocked else None
        if achievement is not None:
            self._stats.points += achievement.points
            self._store.save(self._stats)
            self._recent_rewards.appendleft(f"Achievement: {achievement.title} +{achievement.points} points")

        self._state = ControllerState.SOLVED
        completion = PuzzleCompletion(
            puzzle=puzzle,
            points_earned=points,
            rating_delta=delta,
            elapsed_seconds=elapsed,
            achievement=achievement,
        )
        self.last_completion = completion
        _LOGGER.info("Solved puzzle %s: +%d points, rating %+d", puzzle.puzzle_id, points, delta)

        self._emit(self.events.on_puzzle_solved, completion)
        if achievement is not None:
            self._emit(self.events.on_achievement_unlocked, achievement)

    def _cache_dir(self) -> Path:
        if self._data_dir is None:
            self._data_dir = self.settings.resolved_data_dir
        return self._data_dir

    def _remote_name(self) -> str:
        return getattr(self._remote, "name", type(self._remote).__name__)

    def _fetch_local(self, tier: Optional[Tier]) -> List[PuzzleRecord]:
        try:
            return playable_puzzles(self._local.fetch(tier))
        except PuzzleSourceError as exc:
            _LOGGER.warning("Local puzzle source failed: %s", exc)
            return []

    def _catalog_for(self, tier: Optional[Tier]) -> List[PuzzleRecord]:
        cached = self._catalogs.get(tier)
        if cached:
            return cached

        records: List[PuzzleRecord] = []
        if self._remote is not None:
            records = load_cached_catalog(
                self._cache_dir(),
                self._remote_name(),
                tier,
                self.settings.cache_max_age_hours,
            ) or []
        if not records:
            records = self._fetch_local(tier)
        if records:
            self._catalogs[tier] = records
            return records

        if tier is not None and tier != FALLBACK_TIER:
            _LOGGER.info("No puzzles for tier %s, falling back to %s", tier.value, FALLBACK_TIER.value)
            return self._catalog_for(FALLBACK_TIER)

        _LOGGER.warning("Puzzle catalog unavailable, showing built-in puzzles")
        return builtin_source().fetch(tier) or list(BUILTIN_PUZZLES)

    def _schedule_remote(self, tier: Optional[Tier]) -> None:
        if self._remote is None or tier in self._remote_done or tier in self._pending:
            return
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        _LOGGER.debug("Fetching remote puzzles for %s", tier.value if tier else "all tiers")
        self._pending[tier] = self._executor.submit(self._remote.fetch, tier)

    def _apply_remote(self, tier: Optional[Tier], future: concurrent.futures.Future) -> bool:
        try:
            records = future.result()
        except concurrent.futures.CancelledError:
            return False
        except PuzzleSourceError as exc:
            _LOGGER.warning("Remote puzzle fetch failed, keeping local puzzles: %s", exc)
            return False
        except Exception:
            _LOGGER.exception("Remote puzzle source raised unexpectedly, keeping local puzzles")
            return False

        if tier != self._tier:
            _LOGGER.debug("Discarding stale remote puzzles for %s", tier.value if tier else "all tiers")
            return False

        self._remote_done.add(tier)
        records = playable_puzzles(records)
        if not records:
            _LOGGER.info("Remote source returned no puzzles for %s", tier.value if tier else "all tiers")
            return False

        self._catalogs[tier] = list(records)
        save_cached_catalog(self._cache_dir(), self._remote_name(), tier, list(records))
        return True
