"""
CRUD operations para codeleveling
Todas las funciones son síncronas y usan SQLAlchemy Session.

None of these functions commit: the services own the unit of work.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from codeleveling import models
from codeleveling.models import QuestStatus


def _insert_for(db: Session, model):
    """INSERT construct with ON CONFLICT support for the bound dialect"""
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


# ==================== USERS ====================

def insert_user_if_missing(db: Session, username: str, now: datetime) -> None:
    """INSERT OR IGNORE on the unique username"""
    stmt = _insert_for(db, models.User).values(username=username, created_at=now)
    db.execute(stmt.on_conflict_do_nothing(index_elements=[models.User.username]))


def get_user_by_username(db: Session, username: str) -> Optional[models.User]:
    result = db.execute(select(models.User).where(models.User.username == username))
    return result.scalar_one_or_none()


def get_user_by_id(db: Session, user_id: int) -> Optional[models.User]:
    result = db.execute(select(models.User).where(models.User.id == user_id))
    return result.scalar_one_or_none()


def list_usernames(db: Session) -> List[str]:
    """Usernames ordered case-insensitively"""
    result = db.execute(
        select(models.User.username).order_by(func.lower(models.User.username), models.User.username)
    )
    return list(result.scalars().all())


# ==================== STATS ====================

def insert_stats_if_missing(db: Session, user_id: int, now: datetime) -> None:
    stmt = _insert_for(db, models.UserStats).values(
        user_id=user_id, total_xp=0, level=1, last_active=now
    )
    db.execute(stmt.on_conflict_do_nothing(index_elements=[models.UserStats.user_id]))


def get_stats(db: Session, user_id: int) -> Optional[models.UserStats]:
    result = db.execute(
        select(models.UserStats)
        .where(models.UserStats.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def update_stats(db: Session, stats: models.UserStats, total_xp: int, level: int, now: datetime) -> None:
    """Persist new totals and refresh last_active"""
    stats.total_xp = total_xp
    stats.level = level
    stats.last_active = now
    db.flush()


def get_leaderboard_rows(db: Session) -> List[Dict[str, Any]]:
    """Every user joined with their stats"""
    result = db.execute(
        select(
            models.User.id.label("user_id"),
            models.User.username,
            models.UserStats.total_xp,
            models.UserStats.level,
            models.UserStats.last_active,
        ).join(models.UserStats, models.UserStats.user_id == models.User.id)
    )
    return [dict(row._mapping) for row in result.all()]


# ==================== QUESTS ====================

def get_quest_ids(db: Session) -> List[int]:
    result = db.execute(select(models.Quest.id).order_by(models.Quest.id))
    return list(result.scalars().all())


def get_next_quest_id(db: Session, quest_id: int) -> Optional[int]:
    """Lowest quest id strictly greater than ``quest_id``"""
    result = db.execute(
        select(models.Quest.id)
        .where(models.Quest.id > quest_id)
        .order_by(models.Quest.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


def get_quests_with_progress(db: Session, user_id: int) -> List[Dict[str, Any]]:
    """Quest catalog left-joined with this user's progress, ordered by id"""
    query = (
        select(
            models.Quest.id,
            models.Quest.title,
            models.Quest.topic,
            models.Quest.difficulty,
            func.coalesce(models.QuestProgress.status, QuestStatus.LOCKED.value).label("status"),
            func.coalesce(models.QuestProgress.best_score, 0).label("best_score"),
        )
        .outerjoin(
            models.QuestProgress,
            and_(
                models.QuestProgress.quest_id == models.Quest.id,
                models.QuestProgress.user_id == user_id,
            ),
        )
        .order_by(models.Quest.id)
    )
    return [dict(row._mapping) for row in db.execute(query).all()]


# ==================== PROGRESS ====================

def get_progress(db: Session, user_id: int, quest_id: int) -> Optional[models.QuestProgress]:
    result = db.execute(
        select(models.QuestProgress)
        .where(
            models.QuestProgress.user_id == user_id,
            models.QuestProgress.quest_id == quest_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def init_progress_for_user(db: Session, user_id: int) -> int:
    """
    Ensure a progress row exists for every quest (handles quests added later)
    and unlock the first quest if the user has never progressed anything.

    Returns:
        Number of progress rows created
    """
    existing = set(
        db.execute(
            select(models.QuestProgress.quest_id).where(models.QuestProgress.user_id == user_id)
        ).scalars().all()
    )
    quest_ids = get_quest_ids(db)

    created = 0
    for quest_id in quest_ids:
        if quest_id in existing:
            continue
        db.add(models.QuestProgress(
            user_id=user_id,
            quest_id=quest_id,
            status=QuestStatus.LOCKED.value,
            best_score=0,
        ))
        created += 1
    db.flush()

    has_any_progress = db.execute(
        select(models.QuestProgress.quest_id)
        .where(
            models.QuestProgress.user_id == user_id,
            models.QuestProgress.status != QuestStatus.LOCKED.value,
        )
        .limit(1)
    ).first() is not None

    if not has_any_progress and quest_ids:
        unlock_quest_if_locked(db, user_id, quest_ids[0])

    return created


def upsert_completed_progress(
    db: Session,
    user_id: int,
    quest_id: int,
    score: int,
    now: datetime
) -> None:
    """Mark completed keeping best_score = max(existing, score)"""
    insert_stmt = _insert_for(db, models.QuestProgress).values(
        user_id=user_id,
        quest_id=quest_id,
        status=QuestStatus.COMPLETED.value,
        best_score=score,
        last_attempt=now,
    )
    excluded = insert_stmt.excluded
    stmt = insert_stmt.on_conflict_do_update(
        index_elements=[models.QuestProgress.user_id, models.QuestProgress.quest_id],
        set_={
            "status": QuestStatus.COMPLETED.value,
            "best_score": case(
                (excluded.best_score > models.QuestProgress.best_score, excluded.best_score),
                else_=models.QuestProgress.best_score,
            ),
            "last_attempt": excluded.last_attempt,
        },
    )
    db.execute(stmt)


def unlock_quest_if_locked(db: Session, user_id: int, quest_id: int) -> None:
    """
    locked -> unlocked, or create the row as unlocked.

    Rows already unlocked or completed are left untouched.
    """
    insert_stmt = _insert_for(db, models.QuestProgress).values(
        user_id=user_id,
        quest_id=quest_id,
        status=QuestStatus.UNLOCKED.value,
        best_score=0,
    )
    stmt = insert_stmt.on_conflict_do_update(
        index_elements=[models.QuestProgress.user_id, models.QuestProgress.quest_id],
        set_={"status": QuestStatus.UNLOCKED.value},
        where=models.QuestProgress.status == QuestStatus.LOCKED.value,
    )
    db.execute(stmt)


# ==================== LESSONS ====================

def get_lesson(db: Session, quest_id: int) -> Optional[models.Lesson]:
    result = db.execute(select(models.Lesson).where(models.Lesson.quest_id == quest_id))
    return result.scalar_one_or_none()


# ==================== QUESTIONS & ATTEMPTS ====================

def get_question(db: Session, question_id: int) -> Optional[models.Question]:
    result = db.execute(select(models.Question).where(models.Question.id == question_id))
    return result.scalar_one_or_none()


def _correct_question_ids(user_id: int):
    return select(models.Attempt.question_id).where(
        models.Attempt.user_id == user_id,
        models.Attempt.is_correct.is_(True),
    )


def get_next_unanswered_question(db: Session, user_id: int, quest_id: int) -> Optional[models.Question]:
    """Lowest-id question of the quest with no correct attempt from the user"""
    result = db.execute(
        select(models.Question)
        .where(
            models.Question.quest_id == quest_id,
            models.Question.id.not_in(_correct_question_ids(user_id)),
        )
        .order_by(models.Question.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


def has_correct_attempt(db: Session, user_id: int, question_id: int) -> bool:
    result = db.execute(
        select(models.Attempt.id)
        .where(
            models.Attempt.user_id == user_id,
            models.Attempt.question_id == question_id,
            models.Attempt.is_correct.is_(True),
        )
        .limit(1)
    )
    return result.first() is not None


def add_attempt(
    db: Session,
    user_id: int,
    question_id: int,
    is_correct: bool,
    user_answer_json: str,
    now: datetime
) -> models.Attempt:
    attempt = models.Attempt(
        user_id=user_id,
        question_id=question_id,
        is_correct=is_correct,
        user_answer_json=user_answer_json,
        timestamp=now,
    )
    db.add(attempt)
    db.flush()
    return attempt


def count_quest_questions(db: Session, quest_id: int) -> int:
    result = db.execute(
        select(func.count(models.Question.id)).where(models.Question.quest_id == quest_id)
    )
    return result.scalar_one()


def count_mastered_questions(db: Session, user_id: int, quest_id: int) -> int:
    """Distinct questions of the quest with at least one correct attempt"""
    result = db.execute(
        select(func.count(func.distinct(models.Question.id)))
        .join(models.Attempt, models.Attempt.question_id == models.Question.id)
        .where(
            models.Question.quest_id == quest_id,
            models.Attempt.user_id == user_id,
            models.Attempt.is_correct.is_(True),
        )
    )
    return result.scalar_one()


# ==================== DAILY TASKS ====================

def get_active_daily_task(db: Session, task_id: int) -> Optional[models.DailyTask]:
    result = db.execute(
        select(models.DailyTask).where(
            models.DailyTask.id == task_id,
            models.DailyTask.active.is_(True),
        )
    )
    return result.scalar_one_or_none()


def daily_completion_exists(db: Session, user_id: int, task_id: int, day: date) -> bool:
    result = db.execute(
        select(models.DailyCompletion.task_id)
        .where(
            models.DailyCompletion.user_id == user_id,
            models.DailyCompletion.task_id == task_id,
            models.DailyCompletion.day == day,
        )
        .limit(1)
    )
    return result.first() is not None


def add_daily_completion(db: Session, user_id: int, task_id: int, day: date, now: datetime) -> None:
    db.add(models.DailyCompletion(user_id=user_id, task_id=task_id, day=day, completed_at=now))
    db.flush()


def get_daily_tasks_with_status(db: Session, user_id: int, day: date) -> List[Dict[str, Any]]:
    """Active tasks ordered by id with a done-today flag"""
    done_today = (
        select(models.DailyCompletion.task_id)
        .where(
            models.DailyCompletion.user_id == user_id,
            models.DailyCompletion.task_id == models.DailyTask.id,
            models.DailyCompletion.day == day,
        )
        .exists()
    )
    result = db.execute(
        select(
            models.DailyTask.id,
            models.DailyTask.title,
            models.DailyTask.xp_value.label("xp"),
            done_today.label("done"),
        )
        .where(models.DailyTask.active.is_(True))
        .order_by(models.DailyTask.id)
    )
    return [dict(row._mapping) for row in result.all()]


# ==================== CATALOG COUNTS ====================

def count_rows(db: Session, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()
