"""
User Directory

Creates users on first reference, initializes their stats and quest
progress, and assembles the per-user read model.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from codeleveling import crud, models, notifications
from codeleveling.core.config import Settings, get_settings
from codeleveling.logic import leveling
from codeleveling.models import utcnow
from codeleveling.schemas import AppState, NotificationKind, UserStatsOut, UserSwitchResult, XpProgress
from codeleveling.services.catalog_service import CatalogService
from codeleveling.services.daily_service import DailyTaskService
from codeleveling.services.leaderboard_service import LeaderboardService

logger = logging.getLogger(__name__)


class UserService:

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock

    def ensure_user(self, username: str) -> Optional[models.User]:
        """
        Get or create a user by name, with stats and quest progress rows.

        Safe to call repeatedly; newly added quests get a locked row and the
        first quest is unlocked for a user with no progress.

        Returns:
            The user, or None for a blank name or a database error
        """
        username = (username or "").strip()
        if not username:
            return None

        now = self.clock()
        try:
            crud.insert_user_if_missing(self.db, username, now)
            user = crud.get_user_by_username(self.db, username)
            if user is None:
                self.db.rollback()
                logger.error(f"User {username} missing right after insert")
                return None

            crud.insert_stats_if_missing(self.db, user.id, now)
            created = crud.init_progress_for_user(self.db, user.id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to init user {username}: {str(e)}")
            return None

        if created:
            logger.info(f"Initialized {created} quest progress rows for user {username} (id={user.id})")
        return user

    def switch_user(self, username: str) -> UserSwitchResult:
        """ensure_user plus the user-facing notification"""
        user = self.ensure_user(username)
        if user is None:
            return UserSwitchResult(
                success=False,
                events=[notifications.notify(NotificationKind.USER_SWITCH_FAILED)],
            )

        return UserSwitchResult(
            success=True,
            user_id=user.id,
            username=user.username,
            events=[notifications.notify(NotificationKind.USER_SWITCHED, username=user.username)],
        )

    def list_users(self) -> List[str]:
        return crud.list_usernames(self.db)

    def get_stats(self, user_id: int) -> Optional[UserStatsOut]:
        user = crud.get_user_by_id(self.db, user_id)
        stats = crud.get_stats(self.db, user_id)
        if user is None or stats is None:
            return None

        return UserStatsOut(
            user_id=user.id,
            username=user.username,
            total_xp=stats.total_xp,
            level=stats.level,
            last_active=stats.last_active,
            xp_progress=XpProgress(
                **leveling.xp_progress_in_level(stats.total_xp, self.settings.XP_PER_LEVEL)
            ),
        )

    def get_state(self, user_id: int) -> Optional[AppState]:
        """Read model: stats, quests, dailies, leaderboard and user list"""
        stats = self.get_stats(user_id)
        if stats is None:
            return None

        return AppState(
            current_user=stats.username,
            user_id=stats.user_id,
            users=self.list_users(),
            total_xp=stats.total_xp,
            level=stats.level,
            quests=CatalogService(self.db).list_quests(user_id),
            daily_tasks=DailyTaskService(self.db, self.settings, self.clock).list_daily_tasks(user_id),
            leaderboard=LeaderboardService(self.db, self.settings, self.clock).rank(),
        )
