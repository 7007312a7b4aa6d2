"""
Difficulty Tier Module

Deterministic, rule-based mapping between puzzle ratings and difficulty
tiers, plus the base reward each tier pays out.
"""

from __future__ import annotations

from typing import Iterable, List

from .puzzle_types import PuzzleRecord, Tier


# =============================================================================
# TIER THRESHOLDS (puzzle rating)
# =============================================================================
# A puzzle rated below a threshold belongs to the tier named beside it

BEGINNER_RATING_CEILING = 1200
INTERMEDIATE_RATING_CEILING = 1600
ADVANCED_RATING_CEILING = 2000

# Base reward (points) per tier
TIER_REWARDS = {
    Tier.BEGINNER: 50,
    Tier.INTERMEDIATE: 80,
    Tier.ADVANCED: 120,
    Tier.EXPERT: 200,
}

# Order used when cycling through the whole catalog
TIER_ORDER: List[Tier] = [
    Tier.BEGINNER,
    Tier.INTERMEDIATE,
    Tier.ADVANCED,
    Tier.EXPERT,
]

# Tier served when the requested one has no puzzles
FALLBACK_TIER = Tier.INTERMEDIATE


# =============================================================================
# CLASSIFICATION
# =============================================================================


def tier_from_rating(rating: int) -> Tier:
    """
    Classify a puzzle rating into a tier.

    BEGINNER:      rating < 1200
    INTERMEDIATE:  1200 <= rating < 1600
    ADVANCED:      1600 <= rating < 2000
    EXPERT:        rating >= 2000
    """
    if rating < BEGINNER_RATING_CEILING:
        return Tier.BEGINNER
    if rating < INTERMEDIATE_RATING_CEILING:
        return Tier.INTERMEDIATE
    if rating < ADVANCED_RATING_CEILING:
        return Tier.ADVANCED
    return Tier.EXPERT


def reward_from_rating(rating: int) -> int:
    """Base reward for a puzzle of the given rating."""
    return TIER_REWARDS[tier_from_rating(rating)]


def partition_by_tier(puzzles: Iterable[PuzzleRecord]) -> dict[Tier, List[PuzzleRecord]]:
    """Split puzzles into per-tier lists, keeping input order inside each tier."""
    partitions: dict[Tier, List[PuzzleRecord]] = {tier: [] for tier in TIER_ORDER}
    for p in puzzles:
        partitions[p.tier].append(p)
    return partitions


# =============================================================================
# DISPLAY UTILITIES
# =============================================================================


def get_tier_description(tier: Tier) -> str:
    """Get human-readable description of a tier."""
    descriptions = {
        Tier.BEGINNER: "Single obvious tactic - mate in one or a simple capture",
        Tier.INTERMEDIATE: "Short forcing line - checks and captures over two or three moves",
        Tier.ADVANCED: "Requires calculation - sacrifices and quiet follow-ups",
        Tier.EXPERT: "Long or subtle line - precise technique required",
    }
    return descriptions.get(tier, "Unknown tier")


def get_tier_emoji(tier: Tier) -> str:
    """Get emoji representation of a tier."""
    emojis = {
        Tier.BEGINNER: "🟢",
        Tier.INTERMEDIATE: "🟡",
        Tier.ADVANCED: "🟠",
        Tier.EXPERT: "🔴",
    }
    return emojis.get(tier, "⚪")

