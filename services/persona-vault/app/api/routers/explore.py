from __future__ import annotations
from typing import Any, Dict, List
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.deps import get_db
from app.security.jwt import get_current_user
from app.services.explore import explore_identities

router = APIRouter(prefix="/explore", tags=["explore"])

@router.get("", response_model=List[Dict[str, Any]], summary="Browse identities shared with me")
def explore(user_id: UUID = Depends(get_current_user), db: Session = Depends(get_db)):
    return explore_identities(db, user_id)
