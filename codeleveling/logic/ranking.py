"""
Leaderboard scoring

score = total_xp + max(0, bonus_max - days_inactive * decay_per_day)

With the defaults (200, 20) the recency bonus reaches zero after ten days
without activity and never goes negative.
"""
from datetime import datetime
from typing import Optional

SECONDS_PER_DAY = 86400.0


def days_inactive(last_active: Optional[datetime], now: datetime) -> Optional[float]:
    """Fractional days between ``last_active`` and ``now`` (None if never active)"""
    if last_active is None:
        return None
    return (now - last_active).total_seconds() / SECONDS_PER_DAY


def recency_bonus(
    last_active: Optional[datetime],
    now: datetime,
    bonus_max: int = 200,
    decay_per_day: int = 20
) -> float:
    """
    Linear recency bonus, floored at zero.

    A user with no recorded activity gets no bonus.
    """
    days = days_inactive(last_active, now)
    if days is None:
        return 0.0

    # Clock skew must not push the bonus above bonus_max
    days = max(days, 0.0)
    return max(0.0, bonus_max - days * decay_per_day)


def rank_score(
    total_xp: int,
    last_active: Optional[datetime],
    now: datetime,
    bonus_max: int = 200,
    decay_per_day: int = 20
) -> float:
    """Total XP plus recency bonus"""
    return total_xp + recency_bonus(last_active, now, bonus_max, decay_per_day)
