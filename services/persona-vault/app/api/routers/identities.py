from __future__ import annotations
from typing import Any, Dict, List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.schemas.identities import (
    IdentityAccessResponse,
    IdentityCreate,
    IdentityDeleteResponse,
    IdentityUpdate,
)
from app.core.errors import Forbidden, Unauthenticated
from app.db.deps import get_db
from app.security.app_auth import get_requester_context
from app.security.jwt import get_current_user
from app.services import identities as identity_service
from app.services.projector import full_view
from app.services.scope_policy import IDENTITY_READ
from app.services.visibility import AccessKind, RequesterContext, resolve_access

router = APIRouter(prefix="/identities", tags=["identities"])

@router.post("", status_code=status.HTTP_201_CREATED, response_model=Dict[str, Any], summary="Create an identity")
def create_identity(
    payload: IdentityCreate,
    user_id: UUID = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    identity = identity_service.create_identity(db, user_id=user_id, payload=payload)
    return full_view(identity)

@router.get("", response_model=List[Dict[str, Any]], summary="List own identities")
def list_identities(user_id: UUID = Depends(get_current_user), db: Session = Depends(get_db)):
    return [full_view(i) for i in identity_service.list_own_identities(db, user_id)]

@router.get("/{identity_id}", response_model=IdentityAccessResponse, summary="Read an identity")
def read_identity(
    identity_id: UUID,
    scope: Optional[str] = Query(None, description="Scope the caller needs; defaults to identity.read"),
    requester: RequesterContext = Depends(get_requester_context),
    db: Session = Depends(get_db),
):
    identity = identity_service.get_identity(db, identity_id)
    decision = resolve_access(db, identity, requester, required_scope=scope or IDENTITY_READ)
    if decision.kind is AccessKind.DENY:
        if decision.reason == "authentication_required":
            raise Unauthenticated("authentication_required")
        raise Forbidden(decision.reason or "forbidden", required_scopes=decision.required_scopes)
    return IdentityAccessResponse(
        access=decision.kind.value,
        identity=decision.payload or {},
        granted_scopes=decision.granted_scopes,
        consent_id=decision.consent_id,
    )

@router.patch("/{identity_id}", response_model=Dict[str, Any], summary="Update an owned identity")
def update_identity(
    identity_id: UUID,
    payload: IdentityUpdate,
    user_id: UUID = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    identity = identity_service.update_identity(db, user_id=user_id, identity_id=identity_id, payload=payload)
    return full_view(identity)

@router.delete("/{identity_id}", response_model=IdentityDeleteResponse, summary="Delete an owned identity")
def delete_identity(
    identity_id: UUID,
    user_id: UUID = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    revoked = identity_service.delete_identity(db, user_id=user_id, identity_id=identity_id)
    return IdentityDeleteResponse(revoked_consents=revoked)
