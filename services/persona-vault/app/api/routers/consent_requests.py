from __future__ import annotations
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Header, Response, status
from sqlalchemy.orm import Session

from app.api.schemas.consent_requests import (
    ConsentRequestCreate,
    ConsentRequestDecisionResponse,
    ConsentRequestOut,
)
from app.db.deps import get_db
from app.security.jwt import get_current_user
from app.services.consent_requests import (
    Decision,
    create_consent_request_idempotent,
    decide_consent_request,
    list_pending_for_user,
)

router = APIRouter(prefix="/consent-requests", tags=["consent-requests"])

CREATE_RESPONSES = {
    201: {"description": "Created"},
    200: {
        "description": "Idempotent replay",
        "headers": {"Idempotency-Replayed": {"description": "True if replayed", "schema": {"type": "boolean"}}},
    },
    409: {"description": "Duplicate pending request, or Idempotency-Key reused with another body"},
}

@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ConsentRequestOut,
    responses=CREATE_RESPONSES,
    summary="Ask a user for access to one of their identities",
)
async def create_request(
    payload: ConsentRequestCreate,
    response: Response,
    user_id: UUID = Depends(get_current_user),
    db: Session = Depends(get_db),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    body, is_replay = await create_consent_request_idempotent(
        db, requesting_user_id=user_id, payload=payload, idempotency_key=idempotency_key
    )
    response.headers["Location"] = f"/consent-requests/{body['id']}"
    if is_replay:
        response.status_code = status.HTTP_200_OK
        response.headers["Idempotency-Replayed"] = "true"
    return body

@router.get("/pending", response_model=List[ConsentRequestOut], summary="Pending requests addressed to me")
def pending_requests(user_id: UUID = Depends(get_current_user), db: Session = Depends(get_db)):
    return list_pending_for_user(db, user_id)

def _decide(db: Session, request_id: UUID, user_id: UUID, decision: Decision) -> ConsentRequestDecisionResponse:
    result = decide_consent_request(db, request_id=request_id, decider_user_id=user_id, decision=decision)
    return ConsentRequestDecisionResponse(
        request=ConsentRequestOut.model_validate(result.request),
        consent_id=result.consent.id if result.consent else None,
    )

@router.post("/{request_id}/approve", response_model=ConsentRequestDecisionResponse, summary="Approve a request")
def approve_request(request_id: UUID, user_id: UUID = Depends(get_current_user), db: Session = Depends(get_db)):
    return _decide(db, request_id, user_id, Decision.APPROVE)

@router.post("/{request_id}/reject", response_model=ConsentRequestDecisionResponse, summary="Reject a request")
def reject_request(request_id: UUID, user_id: UUID = Depends(get_current_user), db: Session = Depends(get_db)):
    return _decide(db, request_id, user_id, Decision.REJECT)
