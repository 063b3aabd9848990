"""
Daily Task Tracker

Once-per-calendar-day task completions, an XP source independent of quests.
"Today" is the date in settings.DAILY_TIMEZONE (UTC by default).
"""
import logging
from datetime import date, datetime
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from codeleveling import crud, notifications
from codeleveling.core.config import Settings, get_settings
from codeleveling.logic import leveling
from codeleveling.models import utcnow
from codeleveling.schemas import DailyCompletionResult, DailyTaskOut, NotificationKind

logger = logging.getLogger(__name__)


def local_day(now_utc: datetime, timezone: str) -> date:
    """
    Calendar date of a naive UTC timestamp in ``timezone``

    Example:
        >>> local_day(datetime(2025, 11, 19, 2, 0), "America/Sao_Paulo")
        datetime.date(2025, 11, 18)
    """
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.warning(f"Invalid timezone {timezone}, falling back to UTC: {e}")
        return now_utc.date()

    return now_utc.replace(tzinfo=ZoneInfo("UTC")).astimezone(tz).date()


class DailyTaskService:
    """Daily task listing and completion for one session"""

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock

    def today(self) -> date:
        return local_day(self.clock(), self.settings.DAILY_TIMEZONE)

    def list_daily_tasks(self, user_id: int) -> List[DailyTaskOut]:
        """Active tasks with a per-user completed-today flag"""
        rows = crud.get_daily_tasks_with_status(self.db, user_id, self.today())
        return [
            DailyTaskOut(id=row["id"], title=row["title"], xp=row["xp"], done=bool(row["done"]))
            for row in rows
        ]

    def complete_daily_task(self, user_id: int, task_id: int) -> DailyCompletionResult:
        """
        Record today's completion of a task and award its XP.

        Soft failures (no state change): AlreadyCompletedToday, TaskNotFound.
        """
        now = self.clock()
        today = local_day(now, self.settings.DAILY_TIMEZONE)
        result = DailyCompletionResult(success=False, task_id=task_id)

        try:
            if crud.daily_completion_exists(self.db, user_id, task_id, today):
                logger.info(f"User {user_id} already completed daily task {task_id} on {today}")
                result.events.append(notifications.notify(NotificationKind.ALREADY_COMPLETED_TODAY))
                return result

            task = crud.get_active_daily_task(self.db, task_id)
            if task is None:
                logger.warning(f"Daily task {task_id} not found or inactive")
                result.events.append(notifications.notify(NotificationKind.TASK_NOT_FOUND))
                return result

            crud.add_daily_completion(self.db, user_id, task_id, today, now)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save daily completion for user {user_id}, task {task_id}: {str(e)}")
            result.events.append(notifications.notify(NotificationKind.DAILY_SAVE_FAILED))
            return result

        try:
            stats = crud.get_stats(self.db, user_id)
            if stats is None:
                self.db.rollback()
                logger.error(f"No stats row for user {user_id}, daily completion discarded")
                result.events.append(notifications.notify(NotificationKind.STATS_UPDATE_FAILED))
                return result

            new_xp, new_level, level_up = leveling.apply_xp(
                stats.total_xp, stats.level, task.xp_value, self.settings.XP_PER_LEVEL
            )
            crud.update_stats(self.db, stats, new_xp, new_level, now)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update XP for user {user_id} after daily task {task_id}: {str(e)}")
            result.events.append(notifications.notify(NotificationKind.STATS_UPDATE_FAILED))
            return result

        result.success = True
        result.xp_awarded = task.xp_value
        result.total_xp = new_xp
        result.level = new_level
        result.level_up = level_up

        if level_up:
            result.events.append(notifications.level_up("daily"))
        else:
            result.events.append(notifications.notify(NotificationKind.DAILY_COMPLETED, xp=task.xp_value))

        logger.info(f"User {user_id} completed daily task {task_id} on {today}: +{task.xp_value} XP")
        return result
