from __future__ import annotations
from uuid import UUID
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.api.schemas.apps import ConnectableAppOut
from app.api.schemas.consents import (
    ConsentOut,
    GrantedAppOut,
    IdentityConsentsOverview,
    IdentityGrantRequest,
)
from app.db.deps import get_db
from app.security.jwt import get_current_user
from app.services import consent_grants

router = APIRouter(prefix="/identities/{identity_id}/consents", tags=["consents"])

@router.get("", response_model=IdentityConsentsOverview, summary="Apps granted vs available for an identity")
def identity_consents(
    identity_id: UUID,
    user_id: UUID = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    overview = consent_grants.identity_app_overview(db, user_id=user_id, identity_id=identity_id)
    granted = [
        GrantedAppOut(
            **ConnectableAppOut.model_validate(c.app).model_dump(),
            consent_id=c.id,
            granted_scopes=c.granted_scopes,
            granted_at=c.granted_at,
        )
        for c in overview.granted
    ]
    return IdentityConsentsOverview(
        granted_apps=granted,
        available_apps=[ConnectableAppOut.model_validate(a) for a in overview.available],
    )

@router.post("", response_model=ConsentOut, status_code=status.HTTP_201_CREATED, summary="Grant an app access to an identity")
def grant_identity_consent(
    identity_id: UUID,
    payload: IdentityGrantRequest,
    response: Response,
    user_id: UUID = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    consent, created = consent_grants.grant_for_identity(
        db, user_id=user_id, identity_id=identity_id, app_id=payload.app_id, scopes=payload.granted_scopes
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return consent
