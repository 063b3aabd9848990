"""User-facing messages for operation events"""
from typing import Optional

from codeleveling.schemas import Notification, NotificationKind

MESSAGES = {
    NotificationKind.QUEST_COMPLETED: "Quest completed +XP",
    NotificationKind.LEVEL_UP: "Level up!",
    NotificationKind.PROGRESS_SAVE_FAILED: "DB error: failed to save progress",
    NotificationKind.STATS_UPDATE_FAILED: "DB error: failed to update XP",
    NotificationKind.QUESTION_NOT_FOUND: "Question not found",
    NotificationKind.ANSWER_CORRECT: "Correct! +{xp} XP",
    NotificationKind.ALREADY_MASTERED: "Correct (already mastered). No XP awarded.",
    NotificationKind.ANSWER_INCORRECT: "Not quite. Try again.",
    NotificationKind.ATTEMPT_SAVE_FAILED: "DB error saving attempt",
    NotificationKind.DAILY_COMPLETED: "Daily complete +{xp} XP",
    NotificationKind.ALREADY_COMPLETED_TODAY: "Daily already completed today.",
    NotificationKind.TASK_NOT_FOUND: "Daily task not found",
    NotificationKind.DAILY_SAVE_FAILED: "Failed to save daily completion",
    NotificationKind.USER_SWITCHED: "Switched user: {username}",
    NotificationKind.USER_SWITCH_FAILED: "Failed to switch user",
}

# Level-up wording depends on what triggered it
LEVEL_UP_MESSAGES = {
    "answer": "Correct! Level up!",
    "daily": "Daily complete + Level up!",
}


def notify(kind: NotificationKind, **context) -> Notification:
    """Build the notification for ``kind``, filling template placeholders"""
    return Notification(kind=kind, message=MESSAGES[kind].format(**context))


def level_up(source: Optional[str] = None) -> Notification:
    """Level-up notification, worded for the action that caused it"""
    message = LEVEL_UP_MESSAGES.get(source, MESSAGES[NotificationKind.LEVEL_UP])
    return Notification(kind=NotificationKind.LEVEL_UP, message=message)
