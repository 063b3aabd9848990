"""
Progress Engine - XP accrual, leveling, quest completion and unlocking

Each public method returns a typed result with notification events instead
of raising: persistence errors roll the session back and surface as a
failure event.
"""
import json
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from codeleveling import crud, notifications
from codeleveling.core.config import Settings, get_settings
from codeleveling.logic import leveling
from codeleveling.models import QuestStatus, utcnow
from codeleveling.schemas import AnswerResult, NotificationKind, QuestCompletionResult

logger = logging.getLogger(__name__)

PERFECT_SCORE = 100


def parse_correct_index(answer_json: Optional[str]) -> int:
    """
    Read ``correctIndex`` from a stored answer_json payload.

    Anything malformed gives -1, which no submitted index can match.
    """
    try:
        data = json.loads(answer_json or "")
    except (TypeError, ValueError):
        return -1

    if not isinstance(data, dict):
        return -1

    value = data.get("correctIndex", -1)
    if isinstance(value, bool) or not isinstance(value, int):
        return -1
    return value


class ProgressService:
    """
    Progress engine for a single database session.

    Responsibilities:
    - Quest completion with best-score merge and successor unlock
    - Answer grading with once-only XP per question
    - Automatic quest completion on full mastery
    """

    def __init__(
        self,
        db: Session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.clock = clock

    def compute_level(self, xp: int) -> int:
        return leveling.compute_level(xp, self.settings.XP_PER_LEVEL)

    # ========== QUEST COMPLETION ==========

    def complete_quest(self, user_id: int, quest_id: int, xp_earned: int, score: int) -> QuestCompletionResult:
        """
        Mark a quest completed, unlock the next one and add XP.

        Args:
            user_id: User identifier
            quest_id: Quest identifier
            xp_earned: XP to add (0 for mastery completions)
            score: Score for this run, merged as max(best_score, score)

        Returns:
            QuestCompletionResult. Events: ProgressSaveFailed, StatsUpdateFailed,
            or LevelUp (optional) followed by QuestCompleted.
        """
        now = self.clock()
        result = QuestCompletionResult(success=False, quest_id=quest_id)

        try:
            crud.upsert_completed_progress(self.db, user_id, quest_id, score, now)

            next_id = crud.get_next_quest_id(self.db, quest_id)
            if next_id is not None:
                successor = crud.get_progress(self.db, user_id, next_id)
                if successor is None or successor.status == QuestStatus.LOCKED.value:
                    crud.unlock_quest_if_locked(self.db, user_id, next_id)
                    result.next_unlocked_quest_id = next_id
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save progress for user {user_id}, quest {quest_id}: {str(e)}")
            result.events.append(notifications.notify(NotificationKind.PROGRESS_SAVE_FAILED))
            return result

        try:
            stats = crud.get_stats(self.db, user_id)
            if stats is None:
                self.db.rollback()
                logger.error(f"No stats row for user {user_id}, quest {quest_id} not completed")
                result.events.append(notifications.notify(NotificationKind.STATS_UPDATE_FAILED))
                return result

            new_xp, new_level, level_up = leveling.apply_xp(
                stats.total_xp, stats.level, xp_earned, self.settings.XP_PER_LEVEL
            )
            crud.update_stats(self.db, stats, new_xp, new_level, now)
            progress = crud.get_progress(self.db, user_id, quest_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to update XP for user {user_id}: {str(e)}")
            result.events.append(notifications.notify(NotificationKind.STATS_UPDATE_FAILED))
            return result

        result.success = True
        result.best_score = progress.best_score if progress else score
        result.total_xp = new_xp
        result.level = new_level
        result.level_up = level_up

        if level_up:
            logger.info(f"User {user_id} leveled up to {new_level}!")
            result.events.append(notifications.level_up())
        result.events.append(notifications.notify(NotificationKind.QUEST_COMPLETED))

        logger.info(
            f"User {user_id} completed quest {quest_id}: score={score}, best={result.best_score}, "
            f"+{xp_earned} XP, unlocked={result.next_unlocked_quest_id}"
        )
        return result

    # ========== ANSWERS ==========

    def submit_answer(self, user_id: int, question_id: int, answer_index: int) -> AnswerResult:
        """
        Grade a multiple-choice answer and record the attempt.

        XP is awarded only the first time a question is answered correctly.
        After any correct answer, a quest whose questions all have a correct
        attempt is completed with 0 XP and a score of 100.
        """
        now = self.clock()
        result = AnswerResult(success=False, question_id=question_id)

        try:
            question = crud.get_question(self.db, question_id)
            if question is None:
                logger.warning(f"Question {question_id} not found (user {user_id})")
                result.events.append(notifications.notify(NotificationKind.QUESTION_NOT_FOUND))
                return result

            quest_id = question.quest_id
            result.quest_id = quest_id
            correct = answer_index == parse_correct_index(question.answer_json)
            result.correct = correct
            already_correct = correct and crud.has_correct_attempt(self.db, user_id, question_id)

            crud.add_attempt(
                self.db,
                user_id,
                question_id,
                correct,
                json.dumps({"selectedIndex": answer_index}, separators=(",", ":")),
                now,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to save attempt for user {user_id}, question {question_id}: {str(e)}")
            result.events.append(notifications.notify(NotificationKind.ATTEMPT_SAVE_FAILED))
            return result

        try:
            stats = crud.get_stats(self.db, user_id)
            if correct and not already_correct:
                if stats is None:
                    self.db.rollback()
                    logger.error(f"No stats row for user {user_id}, attempt discarded")
                    result.events.append(notifications.notify(NotificationKind.STATS_UPDATE_FAILED))
                    return result
                new_xp, new_level, level_up = leveling.apply_xp(
                    stats.total_xp, stats.level, question.xp_value, self.settings.XP_PER_LEVEL
                )
                crud.update_stats(self.db, stats, new_xp, new_level, now)
                result.xp_awarded = question.xp_value
                result.level_up = level_up
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to award XP for user {user_id}, question {question_id}: {str(e)}")
            result.events.append(notifications.notify(NotificationKind.STATS_UPDATE_FAILED))
            return result

        result.success = True
        if stats is not None:
            result.total_xp = stats.total_xp
            result.level = stats.level

        if not correct:
            logger.info(f"User {user_id} answered question {question_id} incorrectly")
            result.events.append(notifications.notify(NotificationKind.ANSWER_INCORRECT))
            return result

        if already_correct:
            logger.info(f"User {user_id} re-answered mastered question {question_id}, no XP")
            result.already_mastered = True
            result.events.append(notifications.notify(NotificationKind.ALREADY_MASTERED))
        elif result.level_up:
            logger.info(f"User {user_id} leveled up to {result.level} answering question {question_id}")
            result.events.append(notifications.level_up("answer"))
        else:
            logger.info(f"User {user_id} gained {result.xp_awarded} XP on question {question_id}")
            result.events.append(notifications.notify(NotificationKind.ANSWER_CORRECT, xp=result.xp_awarded))

        try:
            mastered = self._quest_mastered(user_id, quest_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to check mastery of quest {quest_id} for user {user_id}: {str(e)}")
            result.events.append(notifications.notify(NotificationKind.PROGRESS_SAVE_FAILED))
            return result

        if mastered:
            completion = self.complete_quest(user_id, quest_id, 0, PERFECT_SCORE)
            result.events.extend(completion.events)
            result.quest_completed = completion.success
            if completion.success:
                result.total_xp = completion.total_xp
                result.level = completion.level
                result.level_up = result.level_up or completion.level_up

        return result

    def _quest_mastered(self, user_id: int, quest_id: int) -> bool:
        """Every question of the quest has at least one correct attempt"""
        total = crud.count_quest_questions(self.db, quest_id)
        mastered = crud.count_mastered_questions(self.db, user_id, quest_id)
        return total > 0 and mastered >= total
