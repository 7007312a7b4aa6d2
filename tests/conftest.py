import concurrent.futures

import pytest

from puzzle_trainer.config import Settings, get_settings
from puzzle_trainer.puzzle_types import PuzzleRecord, Tier


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    """Keep every test's files (stats, caches) out of the repository."""
    data_dir = tmp_path / "data"
    monkeypatch.setenv("PUZZLE_DATA_DIR", str(data_dir))
    for var in ("PUZZLE_TRAINER_REMOTE_ENABLED", "PUZZLE_TRAINER_CATALOG_PATH", "PUZZLE_TRAINER_DATA_DIR"):
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    yield data_dir
    get_settings.cache_clear()


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ImmediateExecutor(concurrent.futures.Executor):
    """Runs submitted work inline so remote fetches finish before submit returns."""

    def submit(self, fn, /, *args, **kwargs):
        future = concurrent.futures.Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class DeferredExecutor(concurrent.futures.Executor):
    """Holds submitted work until ``run_all`` is called."""

    def __init__(self) -> None:
        self.jobs = []

    def submit(self, fn, /, *args, **kwargs):
        future = concurrent.futures.Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        jobs, self.jobs = self.jobs, []
        for future, fn, args, kwargs in jobs:
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as exc:
                future.set_exception(exc)


def make_puzzle(
    puzzle_id="p1",
    solution=("e2e4",),
    rating=1400,
    tier=Tier.INTERMEDIATE,
    reward=50,
    fen="rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
):
    return PuzzleRecord(
        puzzle_id=puzzle_id,
        title=f"Puzzle {puzzle_id}",
        tier=tier,
        rating=rating,
        fen=fen,
        solution=solution,
        reward=reward,
    )


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def settings(isolated_data_dir):
    return Settings(data_dir=isolated_data_dir)
