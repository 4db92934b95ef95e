"""Leveling curve: conversions between cumulative XP and level.

The curve is exponential: level ``L`` needs ``floor(100 * 1.5^(L-1))`` XP
to clear. Levels start at 1.
"""

from __future__ import annotations

MAX_PROGRESS_INT = 2_147_483_647
BASE_LEVEL_XP = 100


def clamp_progress(value: int) -> int:
    """Clamp an XP or coin value into the storable range."""
    return max(0, min(MAX_PROGRESS_INT, int(value)))


def xp_for_level(level: int) -> int:
    """XP needed to go from ``level`` to ``level + 1``."""
    if level < 1:
        level = 1
    exponent = level - 1
    return (BASE_LEVEL_XP * 3**exponent) // 2**exponent


def total_xp_for_level(level: int) -> int:
    """Cumulative XP required to reach the start of ``level``."""
    return sum(xp_for_level(lvl) for lvl in range(1, level))


def level_from_xp(xp: int) -> int:
    """Compute the level for a cumulative XP total."""
    level = 1
    remaining = max(0, xp)
    while remaining >= xp_for_level(level):
        remaining -= xp_for_level(level)
        level += 1
    return level


def level_info(xp: int) -> dict:
    """Level breakdown for display."""
    level = level_from_xp(xp)
    level_start = total_xp_for_level(level)
    xp_needed = xp_for_level(level)
    xp_into_level = max(0, xp) - level_start
    return {
        "level": level,
        "xp_into_level": xp_into_level,
        "xp_for_level": xp_needed,
        "next_level": level + 1,
        "next_level_total_xp": level_start + xp_needed,
        "progress_percent": round(xp_into_level * 100 / xp_needed, 1),
    }


# Highest level whose starting threshold fits in the storable XP range.
MAX_LEVEL = level_from_xp(MAX_PROGRESS_INT)
