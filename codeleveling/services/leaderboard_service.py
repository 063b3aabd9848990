"""Leaderboard Ranker - read-only ranking derived from user stats"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from codeleveling import crud
from codeleveling.core.config import Settings, get_settings
from codeleveling.logic import ranking
from codeleveling.models import utcnow
from codeleveling.schemas import LeaderboardEntry

logger = logging.getLogger(__name__)


class LeaderboardService:

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock

    def rank(self, limit: Optional[int] = None, now: Optional[datetime] = None) -> List[LeaderboardEntry]:
        """
        Top users by score = total_xp + recency bonus.

        Args:
            limit: Max entries (defaults to settings.LEADERBOARD_LIMIT)
            now: Reference time for the recency bonus (defaults to the clock)

        Returns:
            Entries sorted by score descending, ties by user id ascending
        """
        if limit is None:
            limit = self.settings.LEADERBOARD_LIMIT
        if now is None:
            now = self.clock()

        entries = [
            LeaderboardEntry(
                user_id=row["user_id"],
                username=row["username"],
                xp=row["total_xp"],
                level=row["level"],
                last_active=row["last_active"],
                score=ranking.rank_score(
                    row["total_xp"],
                    row["last_active"],
                    now,
                    self.settings.RECENCY_BONUS_MAX,
                    self.settings.RECENCY_DECAY_PER_DAY,
                ),
            )
            for row in crud.get_leaderboard_rows(self.db)
        ]
        entries.sort(key=lambda entry: (-entry.score, entry.user_id))

        logger.debug(f"Leaderboard computed for {len(entries)} users, returning top {limit}")
        return entries[:max(limit, 0)]
