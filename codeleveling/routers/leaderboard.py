"""Leaderboard Router"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from codeleveling import schemas
from codeleveling.core.config import Settings, get_settings
from codeleveling.core.db import get_db
from codeleveling.services.leaderboard_service import LeaderboardService

router = APIRouter(prefix="/api/v1/leaderboard", tags=["Leaderboard"])


@router.get("", response_model=List[schemas.LeaderboardEntry])
def get_leaderboard(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Max entries (default from settings)"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return LeaderboardService(db, settings).rank(limit=limit)
