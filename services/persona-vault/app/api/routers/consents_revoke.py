from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.schemas.consents import RevokeResponse
from app.db.deps import get_db
from app.security.jwt import get_current_user
from app.services.consent_grants import revoke

router = APIRouter(prefix="/consents", tags=["consents"])

@router.delete("/{consent_id}", response_model=RevokeResponse, summary="Revoke a consent")
def revoke_consent(
    consent_id: UUID,
    user_id: UUID = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    # Idempotent: revoking an already revoked consent is still a success
    result = revoke(db, consent_id=consent_id, caller_user_id=user_id)
    message = "Consent was already revoked." if result.already_revoked else "Consent revoked."
    return RevokeResponse(message=message)
