from __future__ import annotations
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.schemas.consents import BatchGrantRequest, BatchGrantResponse, ConsentOut
from app.db.deps import get_db
from app.security.jwt import get_current_user
from app.services import consent_grants

router = APIRouter(prefix="/users/me/consents", tags=["consents"])

@router.get("", response_model=List[ConsentOut], summary="Consents I have given")
def my_consents(user_id: UUID = Depends(get_current_user), db: Session = Depends(get_db)):
    return consent_grants.list_for_user(db, user_id)

@router.post("/batch-grant", response_model=BatchGrantResponse, summary="Grant one app access to several identities")
def batch_grant(
    payload: BatchGrantRequest,
    user_id: UUID = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    count = consent_grants.batch_grant(
        db, user_id=user_id, app_id=payload.app_id, identity_ids=payload.identity_ids, scopes=payload.scopes
    )
    return BatchGrantResponse(message=f"Consent granted for {count} identities.", count=count)
