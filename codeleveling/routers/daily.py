"""Daily Tasks Router"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from codeleveling import models, schemas
from codeleveling.core.config import Settings, get_settings
from codeleveling.core.db import get_db
from codeleveling.dependencies import get_existing_user
from codeleveling.services.daily_service import DailyTaskService

router = APIRouter(prefix="/api/v1/users/{user_id}/daily-tasks", tags=["Daily Tasks"])


@router.get("", response_model=List[schemas.DailyTaskOut])
def list_daily_tasks(
    user: models.User = Depends(get_existing_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Active daily tasks with today's completion flag"""
    return DailyTaskService(db, settings).list_daily_tasks(user.id)


@router.post("/{task_id}/complete", response_model=schemas.DailyCompletionResult)
def complete_daily_task(
    task_id: int,
    user: models.User = Depends(get_existing_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Soft failures (already done today, unknown task) come back as events"""
    return DailyTaskService(db, settings).complete_daily_task(user.id, task_id)
