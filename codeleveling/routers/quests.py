"""
Quests Router - quest list, lessons, next question, answers and completion
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
import logging

from codeleveling import models, schemas
from codeleveling.core.config import Settings, get_settings
from codeleveling.core.db import get_db
from codeleveling.dependencies import get_existing_user
from codeleveling.services.catalog_service import CatalogService
from codeleveling.services.progress_service import ProgressService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Quests"])


@router.get("/users/{user_id}/quests", response_model=List[schemas.QuestSummary])
def list_quests(
    user: models.User = Depends(get_existing_user),
    db: Session = Depends(get_db),
):
    """All quests in catalog order with this user's status and best score"""
    return CatalogService(db).list_quests(user.id)


@router.get("/quests/{quest_id}/lesson", response_model=schemas.LessonOut)
def get_lesson(quest_id: int, db: Session = Depends(get_db)):
    """Lesson body; empty string when the quest has none"""
    return schemas.LessonOut(quest_id=quest_id, body=CatalogService(db).get_lesson(quest_id))


@router.get(
    "/users/{user_id}/quests/{quest_id}/next-question",
    response_model=schemas.NextQuestionResponse
)
def get_next_question(
    quest_id: int,
    user: models.User = Depends(get_existing_user),
    db: Session = Depends(get_db),
):
    """
    Next question the user has not answered correctly yet.

    ``mastered`` is true (and ``question`` null) once none remain.
    """
    question = CatalogService(db).get_next_question(user.id, quest_id)
    return schemas.NextQuestionResponse(
        quest_id=quest_id,
        question=question,
        mastered=question is None,
    )


@router.post("/users/{user_id}/answers", response_model=schemas.AnswerResult)
def submit_answer(
    payload: schemas.AnswerRequest,
    user: models.User = Depends(get_existing_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Grade an answer; outcome and messages are in the result events"""
    result = ProgressService(db, settings).submit_answer(user.id, payload.question_id, payload.answer_index)
    logger.info(
        f"Answer user={user.id} question={payload.question_id}: "
        f"correct={result.correct}, xp={result.xp_awarded}, events={[e.kind.value for e in result.events]}"
    )
    return result


@router.post(
    "/users/{user_id}/quests/{quest_id}/complete",
    response_model=schemas.QuestCompletionResult
)
def complete_quest(
    quest_id: int,
    payload: schemas.CompleteQuestRequest,
    user: models.User = Depends(get_existing_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return ProgressService(db, settings).complete_quest(user.id, quest_id, payload.xp_earned, payload.score)
