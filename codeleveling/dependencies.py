"""
FastAPI dependencies shared by the routers
"""
from fastapi import Depends, HTTPException, Path, status
from sqlalchemy.orm import Session

from codeleveling import crud, models
from codeleveling.core.db import get_db


def get_existing_user(
    user_id: int = Path(..., description="User identifier"),
    db: Session = Depends(get_db),
) -> models.User:
    """
    Resolve ``user_id`` from the path.

    Raises:
        HTTPException 404: If the user does not exist
    """
    user = crud.get_user_by_id(db, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found"
        )
    return user
