from typing import List, Optional, Sequence
from uuid import UUID
from datetime import datetime
from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session
from app.models.consent_request import ConsentRequest
from app.models.enums import ConsentRequestStatus

PENDING = ConsentRequestStatus.PENDING.value

def create(
    db: Session,
    *,
    target_user_id: UUID,
    identity_id: UUID,
    requesting_user_id: UUID,
    app_id: Optional[UUID],
    requested_scopes: Sequence[str],
    context_description: str,
) -> ConsentRequest:
    obj = ConsentRequest(
        target_user_id=target_user_id,
        identity_id=identity_id,
        requesting_user_id=requesting_user_id,
        app_id=app_id,
        requested_scopes=list(requested_scopes),
        context_description=context_description,
        status=PENDING,
    )
    db.add(obj)
    db.flush()
    db.refresh(obj)
    return obj

def get_by_id(db: Session, request_id: UUID) -> Optional[ConsentRequest]:
    return db.get(ConsentRequest, request_id)

def find_pending(
    db: Session, *, identity_id: UUID, requesting_user_id: UUID, app_id: Optional[UUID]
) -> Optional[ConsentRequest]:
    app_clause = ConsentRequest.app_id.is_(None) if app_id is None else ConsentRequest.app_id == app_id
    stmt = select(ConsentRequest).where(
        ConsentRequest.identity_id == identity_id,
        ConsentRequest.requesting_user_id == requesting_user_id,
        app_clause,
        ConsentRequest.status == PENDING,
    )
    return db.execute(stmt).scalars().first()

def transition_if_pending(db: Session, *, request_id: UUID, new_status: str, now: datetime) -> bool:
    """PENDING -> new_status as a single conditional UPDATE.

    Returns False when the row was no longer PENDING, i.e. another decision
    won the race; the caller re-reads to report the terminal state.
    """
    stmt = (
        update(ConsentRequest)
        .where(ConsentRequest.id == request_id, ConsentRequest.status == PENDING)
        .values(status=new_status, processed_at=now)
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    return res.rowcount == 1

def list_pending_for_target(db: Session, target_user_id: UUID) -> List[ConsentRequest]:
    stmt = (
        select(ConsentRequest)
        .where(ConsentRequest.target_user_id == target_user_id, ConsentRequest.status == PENDING)
        .order_by(ConsentRequest.created_at.desc())
    )
    return list(db.execute(stmt).unique().scalars().all())

def delete_for_identity(db: Session, *, identity_id: UUID) -> int:
    stmt = delete(ConsentRequest).where(ConsentRequest.identity_id == identity_id).execution_options(synchronize_session=False)
    return int(db.execute(stmt).rowcount or 0)
