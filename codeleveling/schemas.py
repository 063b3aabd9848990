"""
Pydantic schemas for CodeLeveling Service

Request bodies, read models and the typed results returned by the services.
Every operation result carries a list of notification events that a
presentation layer can show to the user.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============= NOTIFICATIONS =============

class NotificationKind(str, Enum):
    """Event kinds an operation can raise"""
    # Progress engine
    QUEST_COMPLETED = "quest_completed"
    LEVEL_UP = "level_up"
    PROGRESS_SAVE_FAILED = "progress_save_failed"
    STATS_UPDATE_FAILED = "stats_update_failed"
    QUESTION_NOT_FOUND = "question_not_found"
    ANSWER_CORRECT = "answer_correct"
    ALREADY_MASTERED = "already_mastered"
    ANSWER_INCORRECT = "answer_incorrect"
    ATTEMPT_SAVE_FAILED = "attempt_save_failed"
    # Daily tasks
    DAILY_COMPLETED = "daily_completed"
    ALREADY_COMPLETED_TODAY = "already_completed_today"
    TASK_NOT_FOUND = "task_not_found"
    DAILY_SAVE_FAILED = "daily_save_failed"
    # Users
    USER_SWITCHED = "user_switched"
    USER_SWITCH_FAILED = "user_switch_failed"


class Notification(BaseModel):
    """One user-facing message attached to an operation result"""
    kind: NotificationKind
    message: str


# ============= REQUESTS =============

class UserCreate(BaseModel):
    """Ensure (create or select) a user by name"""
    username: str = Field(..., min_length=1, max_length=100, description="Unique display name")

    @field_validator('username')
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("username must not be blank")
        return v


class CompleteQuestRequest(BaseModel):
    """Manual quest completion"""
    xp_earned: int = Field(0, ge=0, description="XP to add to the user's total")
    score: int = Field(..., ge=0, description="Score for this run; best score keeps the max")


class AnswerRequest(BaseModel):
    """Multiple-choice answer submission"""
    question_id: int = Field(..., description="Question identifier")
    answer_index: int = Field(..., description="Index of the selected choice")


# ============= READ MODELS =============

class QuestSummary(BaseModel):
    """Quest with this user's progress"""
    id: int
    title: str
    topic: str
    difficulty: int
    status: str = Field(..., description="locked | unlocked | completed")
    best_score: int = Field(0, ge=0)

    model_config = ConfigDict(from_attributes=True)


class QuestionOut(BaseModel):
    """Question as shown to the user; the correct answer is not exposed"""
    id: int
    quest_id: int
    type: str
    prompt: str
    choices: List[str] = Field(default_factory=list)
    xp: int = Field(..., ge=0, description="XP awarded the first time it is answered correctly")


class NextQuestionResponse(BaseModel):
    """Next unanswered question, or mastered=True when none remain"""
    quest_id: int
    question: Optional[QuestionOut] = None
    mastered: bool = False


class LessonOut(BaseModel):
    quest_id: int
    body: str = ""


class XpProgress(BaseModel):
    current_level: int
    xp_in_level: int
    xp_needed_for_next: int
    xp_per_level: int


class UserStatsOut(BaseModel):
    """Aggregate stats for a user"""
    user_id: int
    username: str
    total_xp: int = Field(..., ge=0)
    level: int = Field(..., ge=1)
    last_active: Optional[datetime] = None
    xp_progress: XpProgress


class DailyTaskOut(BaseModel):
    id: int
    title: str
    xp: int
    done: bool = Field(False, description="Completed today by this user")


class LeaderboardEntry(BaseModel):
    user_id: int
    username: str
    xp: int
    level: int
    last_active: Optional[datetime] = None
    score: float


class AppState(BaseModel):
    """Everything a client needs to render the current user's view"""
    current_user: str
    user_id: int
    users: List[str]
    total_xp: int
    level: int
    quests: List[QuestSummary]
    daily_tasks: List[DailyTaskOut]
    leaderboard: List[LeaderboardEntry]


# ============= OPERATION RESULTS =============

class OperationResult(BaseModel):
    """Common fields for every state-changing operation"""
    success: bool
    total_xp: Optional[int] = None  # Totals after the operation (unset on failure)
    level: Optional[int] = None
    level_up: bool = False
    events: List[Notification] = Field(default_factory=list)

    def event_kinds(self) -> List[NotificationKind]:
        return [event.kind for event in self.events]


class QuestCompletionResult(OperationResult):
    quest_id: int
    best_score: Optional[int] = None
    next_unlocked_quest_id: Optional[int] = None


class AnswerResult(OperationResult):
    question_id: int
    quest_id: Optional[int] = None
    correct: bool = False
    already_mastered: bool = False
    xp_awarded: int = 0
    quest_completed: bool = False


class DailyCompletionResult(OperationResult):
    task_id: int
    xp_awarded: int = 0


class UserSwitchResult(BaseModel):
    success: bool
    user_id: Optional[int] = None
    username: Optional[str] = None
    events: List[Notification] = Field(default_factory=list)
