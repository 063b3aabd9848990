"""
XP and leveling rules

Pure functions, no I/O. Formula: level = 1 + (xp // xp_per_level)
"""
from typing import Dict
import logging

logger = logging.getLogger(__name__)

DEFAULT_XP_PER_LEVEL = 200


def compute_level(xp: int, xp_per_level: int = DEFAULT_XP_PER_LEVEL) -> int:
    """
    Calculate level based on total XP

    Args:
        xp: Total XP
        xp_per_level: XP needed for each level

    Returns:
        Current level (1-based, no upper bound)
    """
    if xp < 0:
        return 1

    return 1 + (xp // xp_per_level)


def xp_for_level(level: int, xp_per_level: int = DEFAULT_XP_PER_LEVEL) -> int:
    """
    Calculate total XP required to reach a level

    Args:
        level: Target level
        xp_per_level: XP needed for each level

    Returns:
        Total XP required
    """
    if level <= 1:
        return 0

    return (level - 1) * xp_per_level


def xp_progress_in_level(xp: int, xp_per_level: int = DEFAULT_XP_PER_LEVEL) -> Dict[str, int]:
    """
    Calculate progress within current level

    Args:
        xp: Total XP
        xp_per_level: XP needed for each level

    Returns:
        Dict with current_level, xp_in_level, xp_needed_for_next, xp_per_level
    """
    current_level = compute_level(xp, xp_per_level)
    xp_in_level = max(xp, 0) - xp_for_level(current_level, xp_per_level)

    return {
        'current_level': current_level,
        'xp_in_level': xp_in_level,
        'xp_needed_for_next': xp_per_level - xp_in_level,
        'xp_per_level': xp_per_level,
    }


def apply_xp(total_xp: int, current_level: int, xp: int, xp_per_level: int = DEFAULT_XP_PER_LEVEL):
    """
    Add XP to a total and check for level up

    Returns:
        Tuple of (new_total_xp, new_level, level_up_occurred)
    """
    new_xp = total_xp + xp
    new_level = compute_level(new_xp, xp_per_level)
    level_up = new_level > current_level

    if level_up:
        logger.debug(f"Level up: {current_level} -> {new_level} at {new_xp} XP")

    return new_xp, new_level, level_up
