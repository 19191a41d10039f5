from typing import List, Optional, Sequence
from uuid import UUID
from datetime import datetime
from sqlalchemy import select, update, or_
from sqlalchemy.orm import Session
from app.models.consent import Consent

def _active(now: datetime):
    return (
        Consent.revoked_at.is_(None),
        or_(Consent.expires_at.is_(None), Consent.expires_at > now),
    )

def _identity_match(identity_id: Optional[UUID]):
    if identity_id is None:
        return Consent.identity_id.is_(None)
    return Consent.identity_id == identity_id

def get_by_id(db: Session, consent_id: UUID) -> Optional[Consent]:
    return db.get(Consent, consent_id)

def find_active_for_app(
    db: Session, *, app_id: UUID, owner_id: UUID, identity_id: Optional[UUID], now: datetime
) -> Optional[Consent]:
    """Active grant from owner_id to app_id; identity_id=None looks up the user-level grant."""
    stmt = (
        select(Consent)
        .where(Consent.app_id == app_id, Consent.user_id == owner_id, _identity_match(identity_id), *_active(now))
        .order_by(Consent.granted_at.desc())
        .limit(1)
    )
    return db.execute(stmt).scalars().first()

def find_active_for_user(
    db: Session, *, requesting_user_id: UUID, owner_id: UUID, identity_id: Optional[UUID], now: datetime
) -> Optional[Consent]:
    stmt = (
        select(Consent)
        .where(
            Consent.requesting_user_id == requesting_user_id,
            Consent.user_id == owner_id,
            _identity_match(identity_id),
            *_active(now),
        )
        .order_by(Consent.granted_at.desc())
        .limit(1)
    )
    return db.execute(stmt).scalars().first()

def _find_app_grant(db: Session, user_id: UUID, app_id: UUID, identity_id: Optional[UUID]) -> Optional[Consent]:
    stmt = select(Consent).where(
        Consent.user_id == user_id, Consent.app_id == app_id, _identity_match(identity_id)
    )
    return db.execute(stmt).scalars().first()

def _find_user_grant(db: Session, user_id: UUID, requesting_user_id: UUID, identity_id: Optional[UUID]) -> Optional[Consent]:
    stmt = select(Consent).where(
        Consent.user_id == user_id,
        Consent.requesting_user_id == requesting_user_id,
        Consent.app_id.is_(None),
        _identity_match(identity_id),
    )
    return db.execute(stmt).scalars().first()

def _refresh_or_add(db: Session, existing: Optional[Consent], fresh: Consent, scopes: Sequence[str], now: datetime) -> Consent:
    if existing is None:
        db.add(fresh)
        db.flush()
        return fresh
    # Re-grant revives the row: new scopes, new grant time, revocation cleared
    existing.granted_scopes = list(scopes)
    existing.granted_at = now
    existing.revoked_at = None
    existing.expires_at = None
    db.flush()
    return existing

def upsert_app_grant(
    db: Session, *, user_id: UUID, app_id: UUID, identity_id: Optional[UUID], scopes: Sequence[str], now: datetime
) -> Consent:
    fresh = Consent(user_id=user_id, app_id=app_id, identity_id=identity_id, granted_scopes=list(scopes), granted_at=now)
    return _refresh_or_add(db, _find_app_grant(db, user_id, app_id, identity_id), fresh, scopes, now)

def upsert_user_grant(
    db: Session, *, user_id: UUID, requesting_user_id: UUID, identity_id: Optional[UUID], scopes: Sequence[str], now: datetime
) -> Consent:
    fresh = Consent(
        user_id=user_id,
        requesting_user_id=requesting_user_id,
        identity_id=identity_id,
        granted_scopes=list(scopes),
        granted_at=now,
    )
    return _refresh_or_add(db, _find_user_grant(db, user_id, requesting_user_id, identity_id), fresh, scopes, now)

def mark_revoked_if_active(db: Session, *, consent_id: UUID, now: datetime) -> bool:
    """Conditional update so concurrent revokes keep the first timestamp."""
    stmt = (
        update(Consent)
        .where(Consent.id == consent_id, Consent.revoked_at.is_(None))
        .values(revoked_at=now)
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    return bool(res.rowcount)

def revoke_all_for_identity(db: Session, *, identity_id: UUID, now: datetime) -> int:
    stmt = (
        update(Consent)
        .where(Consent.identity_id == identity_id, Consent.revoked_at.is_(None))
        .values(revoked_at=now)
        .execution_options(synchronize_session=False)
    )
    res = db.execute(stmt)
    return int(res.rowcount or 0)

def list_by_user(db: Session, user_id: UUID) -> List[Consent]:
    stmt = select(Consent).where(Consent.user_id == user_id).order_by(Consent.granted_at.desc())
    return list(db.execute(stmt).unique().scalars().all())

def list_active_app_grants_for_identity(db: Session, *, identity_id: UUID, now: datetime) -> List[Consent]:
    stmt = (
        select(Consent)
        .where(Consent.identity_id == identity_id, Consent.app_id.is_not(None), *_active(now))
        .order_by(Consent.granted_at.desc())
    )
    return list(db.execute(stmt).unique().scalars().all())

def list_active_for_requesting_user(db: Session, *, requesting_user_id: UUID, now: datetime) -> List[Consent]:
    stmt = (
        select(Consent)
        .where(Consent.requesting_user_id == requesting_user_id, Consent.app_id.is_(None), *_active(now))
        .order_by(Consent.granted_at.desc())
    )
    return list(db.execute(stmt).unique().scalars().all())
