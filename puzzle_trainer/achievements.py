"""
Achievement Evaluation

Achievements are static definitions: a threshold predicate over the
user's statistics before and after a puzzle, a point reward, and
display text. A predicate only matches when its threshold is crossed,
so each achievement fires once per crossing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple

from .puzzle_types import UserStatistics

StatsPredicate = Callable[[UserStatistics, UserStatistics], bool]

RISING_STAR_RATING = 1500
ON_FIRE_STREAK = 5


@dataclass(frozen=True)
class AchievementDefinition:
    key: str
    title: str
    description: str
    points: int
    predicate: StatsPredicate

    def is_unlocked(self, stats: UserStatistics, previous: UserStatistics) -> bool:
        return self.predicate(stats, previous)


def _first_puzzle(stats: UserStatistics, previous: UserStatistics) -> bool:
    return stats.puzzles_solved == 1 and previous.puzzles_solved == 0


def _streak_of_five(stats: UserStatistics, previous: UserStatistics) -> bool:
    return stats.streak == ON_FIRE_STREAK and previous.streak < ON_FIRE_STREAK


def _rating_1500(stats: UserStatistics, previous: UserStatistics) -> bool:
    return stats.rating >= RISING_STAR_RATING and previous.rating < RISING_STAR_RATING


# Priority order: earlier entries win when several cross at once
ACHIEVEMENTS: Tuple[AchievementDefinition, ...] = (
    AchievementDefinition(
        key="first_steps",
        title="First Steps",
        description="You've solved your first puzzle!",
        points=50,
        predicate=_first_puzzle,
    ),
    AchievementDefinition(
        key="on_fire",
        title="On Fire!",
        description="5 puzzles in a row!",
        points=100,
        predicate=_streak_of_five,
    ),
    AchievementDefinition(
        key="rising_star",
        title="Rising Star",
        description="Reached 1500 ELO!",
        points=200,
        predicate=_rating_1500,
    ),
)


def evaluate(
    stats: UserStatistics,
    previous_stats: UserStatistics,
    achievements: Sequence[AchievementDefinition] = ACHIEVEMENTS,
) -> List[AchievementDefinition]:
    """
    Return the newly unlocked achievement, if any, as a 0- or 1-item list.

    Only the first match in priority order is surfaced, even when several
    thresholds were crossed by the same puzzle. The caller adds its points.
    """
    for achievement in achievements:
        if achievement.is_unlocked(stats, previous_stats):
            return [achievement]
    return []
