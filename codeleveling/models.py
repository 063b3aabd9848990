from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime, Date, Boolean, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship
import enum
from codeleveling.core.db import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the format every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class QuestStatus(str, enum.Enum):
    """Estado del progreso de un usuario en un quest

    Only moves forward: locked -> unlocked -> completed.
    """
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    COMPLETED = "completed"


class QuestionType(str, enum.Enum):
    """Tipos de preguntas"""
    MCQ = "mcq"  # Opción múltiple


class User(Base):
    """Usuarios. Created on first reference to a username, never deleted."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships
    stats = relationship("UserStats", back_populates="user", uselist=False, cascade="all, delete-orphan")
    progress = relationship("QuestProgress", back_populates="user", cascade="all, delete-orphan")


class UserStats(Base):
    """Aggregate XP per user (1:1 with User)"""
    __tablename__ = "user_stats"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    total_xp = Column(Integer, default=0, nullable=False)
    level = Column(Integer, default=1, nullable=False)
    last_active = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="stats")

    __table_args__ = (
        CheckConstraint("total_xp >= 0", name="ck_user_stats_total_xp_non_negative"),
    )


class Quest(Base):
    """Quests del catálogo (lección + preguntas sobre un tema)"""
    __tablename__ = "quests"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    topic = Column(String(100), nullable=False, index=True)  # e.g., "arrays", "pointers"
    difficulty = Column(Integer, default=1, nullable=False)

    # Relationships
    lesson = relationship("Lesson", back_populates="quest", uselist=False, cascade="all, delete-orphan")
    questions = relationship("Question", back_populates="quest", cascade="all, delete-orphan", order_by="Question.id")


class QuestProgress(Base):
    """Progreso de un usuario en un quest, one row per (user, quest)"""
    __tablename__ = "quest_progress"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    quest_id = Column(Integer, ForeignKey("quests.id", ondelete="CASCADE"), primary_key=True)
    status = Column(String(20), default=QuestStatus.LOCKED.value, nullable=False)
    best_score = Column(Integer, default=0, nullable=False)
    last_attempt = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="progress")
    quest = relationship("Quest")

    __table_args__ = (
        CheckConstraint(
            "status IN ('locked', 'unlocked', 'completed')",
            name="ck_quest_progress_status"
        ),
        CheckConstraint("best_score >= 0", name="ck_quest_progress_best_score_non_negative"),
    )


class Lesson(Base):
    """Material de lectura, 1:1 con Quest"""
    __tablename__ = "lessons"

    quest_id = Column(Integer, ForeignKey("quests.id", ondelete="CASCADE"), primary_key=True)
    body = Column(Text, nullable=False)  # Markdown

    quest = relationship("Quest", back_populates="lesson")


class Question(Base):
    """Pregunta de opción múltiple dentro de un quest

    choices_json: JSON array of strings, e.g. '["0", "1", "-1"]'
    answer_json: '{"correctIndex": 0}'
    """
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    quest_id = Column(Integer, ForeignKey("quests.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), default=QuestionType.MCQ.value, nullable=False)
    prompt = Column(Text, nullable=False)
    choices_json = Column(Text, nullable=False)
    answer_json = Column(Text, nullable=False)
    xp_value = Column(Integer, default=10, nullable=False)

    quest = relationship("Quest", back_populates="questions")


class Attempt(Base):
    """Append-only log of answer submissions"""
    __tablename__ = "attempts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    is_correct = Column(Boolean, nullable=False)
    user_answer_json = Column(Text, nullable=False)  # '{"selectedIndex": 1}'

    __table_args__ = (
        Index("idx_attempts_user_qid", "user_id", "question_id"),
    )


class DailyTask(Base):
    """Tareas diarias del catálogo"""
    __tablename__ = "daily_tasks"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    xp_value = Column(Integer, default=10, nullable=False)
    active = Column(Boolean, default=True, nullable=False)


class DailyCompletion(Base):
    """A daily task completed by a user on a calendar day (at most once)"""
    __tablename__ = "daily_completions"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    task_id = Column(Integer, ForeignKey("daily_tasks.id", ondelete="CASCADE"), primary_key=True)
    day = Column(Date, primary_key=True)
    completed_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_daily_day", "day"),
        Index("idx_daily_user", "user_id"),
    )
