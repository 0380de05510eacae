"""Level curve: cumulative XP needed for level L is L * L * 50.

The mobile client renders progress bars from the same formula, so any
change here must ship together with the app.
"""

from __future__ import annotations

import math

XP_PER_LEVEL_UNIT = 50


def threshold(level: int) -> int:
    """Cumulative XP required to reach ``level`` from zero."""
    return level * level * XP_PER_LEVEL_UNIT


def compute_level(total_xp: int) -> int:
    """Greatest level L with threshold(L) <= total_xp.

    L * L * 50 <= xp  <=>  L * L <= xp // 50 for integer L, so the integer
    square root gives the exact answer without float rounding.
    """
    if total_xp <= 0:
        return 0
    return math.isqrt(total_xp // XP_PER_LEVEL_UNIT)


def xp_progress(total_xp: int) -> dict:
    """Progress inside the current level.

    Returns ``{"current", "needed", "percentage"}``; percentage is an integer
    in [0, 100]. ``needed`` is 50 * (2L + 1) and never zero.
    """
    total_xp = max(total_xp, 0)
    level = compute_level(total_xp)
    current = total_xp - threshold(level)
    needed = threshold(level + 1) - threshold(level)
    return {
        "current": current,
        "needed": needed,
        "percentage": min(100, 100 * current // needed),
    }


def level_info(total_xp: int) -> dict:
    """Level plus progress, the shape returned by the XP endpoints."""
    level = compute_level(total_xp)
    return {
        "level": level,
        "next_level": level + 1,
        "next_level_xp": threshold(level + 1),
        **xp_progress(total_xp),
    }
