"""
Tests for ProgressionController: puzzle selection, solving, rewards and remote catalogs.
"""

import json

import pytest

from puzzle_trainer.catalog import JsonFilePuzzleSource, StaticPuzzleSource, builtin_source, save_catalog_file
from puzzle_trainer.config import Settings
from puzzle_trainer.controller import ControllerState, ProgressionController
from puzzle_trainer.errors import PuzzleSourceError
from puzzle_trainer.lichess_source import LichessPuzzleSource
from puzzle_trainer.puzzle_cache import load_cached_catalog, save_cached_catalog
from puzzle_trainer.puzzle_types import Tier, UserStatistics
from puzzle_trainer.stats_store import StatsStore

from conftest import DeferredExecutor, ImmediateExecutor, make_puzzle


class FakeRemote:
    """Remote source serving canned records per tier."""

    name = "fake-remote"

    def __init__(self, records=None, error=None):
        self.records = records or {}
        self.error = error
        self.calls = []

    def fetch(self, tier=None):
        self.calls.append(tier)
        if self.error is not None:
            raise self.error
        return list(self.records.get(tier, []))


@pytest.fixture
def single_puzzle_source():
    return StaticPuzzleSource([make_puzzle("p1", solution=("e2e4",), rating=1400, reward=50)])


@pytest.fixture
def make_controller(settings, fake_clock):
    controllers = []

    def _make(local=None, **kwargs):
        kwargs.setdefault("settings", settings)
        kwargs.setdefault("clock", fake_clock)
        controller = ProgressionController(local, **kwargs)
        controllers.append(controller)
        return controller

    yield _make
    for controller in controllers:
        controller.shutdown()


# ─── Selection ───


def test_starts_idle(make_controller):
    controller = make_controller()
    assert controller.state == ControllerState.IDLE
    assert controller.puzzle is None
    with pytest.raises(RuntimeError):
        controller.submit_move("e2", "e4")


def test_load_tier_starts_at_first_puzzle(make_controller):
    controller = make_controller()
    puzzle = controller.load_puzzle(Tier.BEGINNER)
    assert puzzle.puzzle_id == "1"
    assert controller.state == ControllerState.PLAYING
    assert controller.tier == Tier.BEGINNER


def test_next_puzzle_wraps_around(make_controller):
    controller = make_controller()
    controller.load_puzzle("beginner")
    assert controller.next_puzzle().puzzle_id == "2"
    assert controller.next_puzzle().puzzle_id == "1"


def test_index_taken_modulo_catalog(make_controller):
    controller = make_controller()
    controller.change_tier(Tier.ADVANCED)
    assert controller.load_puzzle(5).puzzle_id == "6"
    assert controller.index == 1


def test_change_tier_resets_index(make_controller):
    controller = make_controller()
    controller.load_puzzle(Tier.BEGINNER)
    controller.next_puzzle()
    assert controller.change_tier(Tier.EXPERT).puzzle_id == "7"
    assert controller.index == 0


def test_all_tiers(make_controller):
    controller = make_controller()
    controller.change_tier(None)
    assert len(controller.catalog()) == len(builtin_source())


def test_empty_tier_falls_back_to_intermediate(make_controller):
    local = StaticPuzzleSource([
        make_puzzle("b", tier=Tier.BEGINNER, rating=900),
        make_puzzle("i", tier=Tier.INTERMEDIATE, rating=1400),
    ])
    controller = make_controller(local)
    assert controller.load_puzzle(Tier.EXPERT).puzzle_id == "i"
    assert controller.tier == Tier.EXPERT


def test_empty_catalog_falls_back_to_builtin(make_controller):
    controller = make_controller(StaticPuzzleSource([]))
    assert controller.load_puzzle(Tier.ADVANCED).title == "Back Rank Mate"


def test_failing_local_source_falls_back_to_builtin(make_controller, tmp_path):
    controller = make_controller(JsonFilePuzzleSource(tmp_path / "missing.json"))
    assert controller.load_puzzle().puzzle_id == "1"


def test_catalog_with_bad_position_falls_back(make_controller, tmp_path):
    path = tmp_path / "catalog.json"
    bad = dict(make_puzzle("x", tier=Tier.BEGINNER, rating=900).to_dict(), fen="not/a/fen")
    path.write_text(json.dumps({"puzzles": [bad]}), encoding="utf-8")

    controller = make_controller(JsonFilePuzzleSource(path))
    puzzle = controller.load_puzzle(Tier.BEGINNER)
    assert puzzle.fen != "not/a/fen"
    assert puzzle.title == "Back Rank Mate"


def test_unplayable_records_skipped(make_controller):
    local = StaticPuzzleSource([
        make_puzzle("bad", tier=Tier.BEGINNER, rating=900, fen="8/8/8 w - - 0 1"),
        make_puzzle("good", tier=Tier.BEGINNER, rating=950),
    ])
    controller = make_controller(local)
    assert controller.change_tier(Tier.BEGINNER).puzzle_id == "good"
    assert [p.puzzle_id for p in controller.catalog()] == ["good"]


def test_reset_keeps_stats_and_position(make_controller, single_puzzle_source):
    controller = make_controller(single_puzzle_source)
    controller.load_puzzle()
    controller.submit_move("d2", "d4")
    controller.request_hint()
    before = controller.stats.copy()

    assert controller.reset_current_puzzle().puzzle_id == "p1"
    assert controller.attempt.moves_submitted == 0
    assert controller.attempt.hints_used == 0
    assert controller.stats == before
    assert controller.state == ControllerState.PLAYING


# ─── Solving ───


def test_solve_awards_points_and_rating(make_controller, single_puzzle_source, fake_clock, settings):
    controller = make_controller(single_puzzle_source)
    solved, unlocked = [], []
    controller.events.on_puzzle_solved.append(solved.append)
    controller.events.on_achievement_unlocked.append(unlocked.append)

    controller.load_puzzle()
    fake_clock.advance(40)
    outcome = controller.submit_move("e2", "e4")

    assert outcome.completed
    assert controller.state == ControllerState.SOLVED
    completion = solved[0]
    assert completion.points_earned == 110
    assert completion.rating_delta == 32
    assert completion.elapsed_seconds == 40
    assert completion.to_dict() == {
        "puzzle_id": "p1",
        "points_earned": 110,
        "rating_delta": 32,
        "elapsed_seconds": 40,
        "achievement": "first_steps",
    }
    assert [a.key for a in unlocked] == ["first_steps"]

    stats = controller.stats
    assert stats.points == 160
    assert stats.rating == 32
    assert stats.streak == 1
    assert stats.puzzles_solved == 1
    assert stats.total_time_seconds == 40

    persisted = StatsStore(settings.resolved_data_dir).load()
    assert persisted == stats
    assert controller.recent_rewards == [
        "Achievement: First Steps +50 points",
        "Puzzle solved! +110 points",
    ]


def test_events_fire_in_order(make_controller, single_puzzle_source):
    controller = make_controller(single_puzzle_source)
    log = []
    controller.events.on_puzzle_loaded.append(lambda p: log.append("loaded"))
    controller.events.on_move_rejected.append(lambda o: log.append("rejected"))
    controller.events.on_move_accepted.append(lambda o: log.append("accepted"))
    controller.events.on_puzzle_solved.append(lambda c: log.append("solved"))
    controller.events.on_achievement_unlocked.append(lambda a: log.append("achievement"))

    controller.load_puzzle()
    controller.submit_move("d2", "d4")
    controller.reset_current_puzzle()
    controller.submit_move("e2", "e4")
    assert log == ["loaded", "rejected", "loaded", "accepted", "solved", "achievement"]


def test_first_steps_awarded_once(make_controller, single_puzzle_source):
    controller = make_controller(single_puzzle_source)
    unlocked = []
    controller.events.on_achievement_unlocked.append(unlocked.append)
    controller.load_puzzle()
    for _ in range(3):
        controller.submit_move("e2", "e4")
        controller.next_puzzle()
    assert [a.key for a in unlocked] == ["first_steps"]
    assert controller.stats.puzzles_solved == 3


def test_first_steps_not_repeated_after_reload(make_controller, single_puzzle_source, settings):
    first = make_controller(single_puzzle_source)
    first.load_puzzle()
    first.submit_move("e2", "e4")

    second = make_controller(single_puzzle_source)
    assert second.stats.puzzles_solved == 1
    unlocked = []
    second.events.on_achievement_unlocked.append(unlocked.append)
    second.load_puzzle()
    second.submit_move("e2", "e4")
    assert unlocked == []
    assert second.stats.puzzles_solved == 2


def test_on_fire_and_rising_star(make_controller, single_puzzle_source, settings, fake_clock):
    store = StatsStore(settings.resolved_data_dir)
    store.save(UserStatistics(puzzles_solved=4, streak=4))
    controller = make_controller(single_puzzle_source)
    controller.load_puzzle()
    controller.submit_move("e2", "e4")
    assert controller.last_completion.achievement.key == "on_fire"

    store.save(UserStatistics(rating=1490.0, puzzles_solved=10, streak=10))
    controller = make_controller(single_puzzle_source)
    controller.load_puzzle()
    fake_clock.advance(40)
    controller.submit_move("e2", "e4")
    assert controller.stats.rating == 1502
    assert controller.last_completion.achievement.key == "rising_star"


def test_missed_move_means_no_solve(make_controller):
    local = StaticPuzzleSource([make_puzzle(solution=("c4f7", "e8f7", "f3g5"))])
    controller = make_controller(local)
    controller.load_puzzle()
    controller.submit_move("a2", "a3")
    controller.submit_move("e8", "f7")
    controller.submit_move("f3", "g5")
    assert controller.state == ControllerState.PLAYING
    assert controller.stats.puzzles_solved == 0


def test_timer_frozen_after_solve(make_controller, single_puzzle_source, fake_clock):
    controller = make_controller(single_puzzle_source)
    controller.load_puzzle()
    fake_clock.advance(12)
    assert controller.elapsed_seconds() == 12
    controller.submit_move("e2", "e4")
    fake_clock.advance(100)
    assert controller.elapsed_seconds() == 12
    controller.next_puzzle()
    assert controller.elapsed_seconds() == 0


def test_untimed_mode(make_controller, single_puzzle_source, isolated_data_dir, fake_clock):
    controller = make_controller(
        single_puzzle_source,
        settings=Settings(data_dir=isolated_data_dir, track_time=False),
    )
    controller.load_puzzle()
    fake_clock.advance(10)
    controller.submit_move("e2", "e4")
    assert controller.last_completion.points_earned == 50
    assert controller.last_completion.elapsed_seconds is None
    assert controller.stats.total_time_seconds == 0


def test_hint_unavailable_event(make_controller, single_puzzle_source):
    controller = make_controller(single_puzzle_source)
    notices = []
    controller.events.on_hint_unavailable.append(lambda: notices.append(True))
    controller.load_puzzle()
    assert controller.request_hint() == "e2e4"
    controller.request_hint()
    controller.request_hint()
    assert controller.request_hint() is None
    assert len(notices) == 1


def test_hints_reduce_reward(make_controller, single_puzzle_source, fake_clock):
    controller = make_controller(single_puzzle_source)
    controller.load_puzzle()
    controller.request_hint()
    controller.request_hint()
    fake_clock.advance(200)
    controller.submit_move("e2", "e4")
    assert controller.last_completion.points_earned == 30


def test_click_square(make_controller, single_puzzle_source):
    controller = make_controller(single_puzzle_source)
    controller.load_puzzle()
    assert controller.click_square("e2") is None
    assert controller.click_square("e4").completed


def test_recent_rewards_capped(make_controller, single_puzzle_source):
    controller = make_controller(single_puzzle_source)
    controller.load_puzzle()
    for _ in range(6):
        controller.submit_move("e2", "e4")
        controller.next_puzzle()
    rewards = controller.recent_rewards
    assert len(rewards) == 5
    assert rewards[0].startswith("Puzzle solved!")


# ─── Remote catalogs ───


def test_failing_remote_still_serves_local(make_controller):
    remote = FakeRemote(error=PuzzleSourceError("offline"))
    controller = make_controller(remote_source=remote, executor=ImmediateExecutor())
    assert controller.load_puzzle(Tier.BEGINNER).puzzle_id == "1"
    assert controller.poll_remote() == 0
    assert controller.next_puzzle().puzzle_id == "2"


def test_unexpected_remote_error_is_contained(make_controller):
    remote = FakeRemote(error=RuntimeError("bug"))
    controller = make_controller(remote_source=remote, executor=ImmediateExecutor())
    controller.load_puzzle(Tier.BEGINNER)
    assert controller.poll_remote() == 0
    assert controller.catalog() == builtin_source().fetch(Tier.BEGINNER)


def test_remote_replaces_tier_catalog(make_controller, settings):
    remote_puzzles = [
        make_puzzle("r1", tier=Tier.BEGINNER, rating=900),
        make_puzzle("r2", tier=Tier.BEGINNER, rating=950),
    ]
    remote = FakeRemote({Tier.BEGINNER: remote_puzzles})
    controller = make_controller(remote_source=remote, executor=ImmediateExecutor())

    assert controller.load_puzzle(Tier.BEGINNER).puzzle_id == "1"
    assert controller.poll_remote() == 1
    assert controller.catalog() == remote_puzzles
    assert load_cached_catalog(settings.resolved_data_dir, "fake-remote", Tier.BEGINNER) == remote_puzzles

    controller.load_puzzle(Tier.BEGINNER)
    assert remote.calls == [Tier.BEGINNER]


def test_empty_remote_result_keeps_local(make_controller):
    controller = make_controller(remote_source=FakeRemote(), executor=ImmediateExecutor())
    controller.load_puzzle(Tier.EXPERT)
    assert controller.poll_remote() == 0
    assert controller.catalog() == builtin_source().fetch(Tier.EXPERT)


def test_stale_remote_result_discarded(make_controller):
    remote = FakeRemote({
        Tier.BEGINNER: [make_puzzle("rb", tier=Tier.BEGINNER, rating=900)],
        Tier.EXPERT: [make_puzzle("re", tier=Tier.EXPERT, rating=2300)],
    })
    executor = DeferredExecutor()
    controller = make_controller(remote_source=remote, executor=executor)

    controller.load_puzzle(Tier.BEGINNER)
    controller.change_tier(Tier.EXPERT)
    executor.run_all()

    assert controller.poll_remote() == 1
    assert [p.puzzle_id for p in controller.catalog()] == ["re"]
    assert controller.change_tier(Tier.BEGINNER).puzzle_id == "1"


def test_disk_cache_served_before_remote_answers(make_controller, settings):
    cached = [make_puzzle("cached", tier=Tier.BEGINNER, rating=900)]
    save_cached_catalog(settings.resolved_data_dir, "fake-remote", Tier.BEGINNER, cached)
    controller = make_controller(remote_source=FakeRemote(), executor=DeferredExecutor())
    assert controller.load_puzzle(Tier.BEGINNER).puzzle_id == "cached"


def test_shutdown_drops_pending(make_controller):
    remote = FakeRemote({Tier.BEGINNER: [make_puzzle("rb", tier=Tier.BEGINNER, rating=900)]})
    executor = DeferredExecutor()
    with make_controller(remote_source=remote, executor=executor) as controller:
        controller.load_puzzle(Tier.BEGINNER)
    executor.run_all()
    assert controller.poll_remote() == 0
    assert controller.catalog()[0].puzzle_id == "1"


# ─── Construction from settings ───


def test_from_settings_uses_catalog_file(isolated_data_dir, tmp_path, fake_clock):
    path = tmp_path / "catalog.json"
    save_catalog_file(path, [make_puzzle("custom", tier=Tier.BEGINNER, rating=900)])
    settings = Settings(data_dir=isolated_data_dir, catalog_path=path)
    with ProgressionController.from_settings(settings, clock=fake_clock) as controller:
        assert controller.load_puzzle(Tier.BEGINNER).puzzle_id == "custom"


def test_from_settings_remote_enabled(isolated_data_dir):
    settings = Settings(data_dir=isolated_data_dir, remote_enabled=True, remote_puzzle_ids=["abc"])
    controller = ProgressionController.from_settings(settings, executor=DeferredExecutor())
    assert isinstance(controller._remote, LichessPuzzleSource)
    assert controller._remote.puzzle_ids == ["abc"]
    controller.shutdown()


def test_settings_from_environment(monkeypatch, isolated_data_dir):
    monkeypatch.setenv("PUZZLE_TRAINER_MAX_HINTS", "1")
    monkeypatch.setenv("PUZZLE_TRAINER_INITIAL_RATING", "1200")
    with ProgressionController() as controller:
        controller.load_puzzle()
        assert controller.stats.rating == 1200.0
        controller.request_hint()
        assert controller.request_hint() is None
