"""
Users Router

Ensure/switch user, list users, stats and the aggregated read model.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List
import logging

from codeleveling import models, schemas
from codeleveling.core.config import Settings, get_settings
from codeleveling.core.db import get_db
from codeleveling.dependencies import get_existing_user
from codeleveling.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.post("", response_model=schemas.UserSwitchResult)
def switch_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Get or create a user by name and make it the current one.

    Creates stats and quest progress rows on first use.
    """
    result = UserService(db, settings).switch_user(payload.username)
    logger.info(f"Switch user {payload.username}: success={result.success}")
    return result


@router.get("", response_model=List[str])
def list_users(db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    """Usernames, case-insensitive order"""
    return UserService(db, settings).list_users()


@router.get("/{user_id}/stats", response_model=schemas.UserStatsOut)
def get_user_stats(
    user: models.User = Depends(get_existing_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    stats = UserService(db, settings).get_stats(user.id)
    if stats is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Stats for user {user.id} not found"
        )
    return stats


@router.get("/{user_id}/state", response_model=schemas.AppState)
def get_user_state(
    user: models.User = Depends(get_existing_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Everything needed to render the user's view in one call"""
    state = UserService(db, settings).get_state(user.id)
    if state is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Stats for user {user.id} not found"
        )
    return state
