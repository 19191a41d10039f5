from typing import Any, Dict, Iterable, List, Optional, Set
from uuid import UUID
from sqlalchemy import or_, select
from sqlalchemy.orm import Session
from app.models.enums import Visibility
from app.models.identity import Identity

def create(db: Session, *, user_id: UUID, fields: Dict[str, Any]) -> Identity:
    obj = Identity(user_id=user_id, **fields)
    db.add(obj)
    db.flush()
    db.refresh(obj)
    return obj

def get_by_id(db: Session, identity_id: UUID) -> Optional[Identity]:
    return db.get(Identity, identity_id)

def list_by_owner(db: Session, user_id: UUID) -> List[Identity]:
    stmt = select(Identity).where(Identity.user_id == user_id).order_by(Identity.updated_at.desc())
    return list(db.execute(stmt).scalars().all())

def owned_ids(db: Session, *, user_id: UUID, identity_ids: Iterable[UUID]) -> Set[UUID]:
    ids = list(identity_ids)
    if not ids:
        return set()
    stmt = select(Identity.id).where(Identity.id.in_(ids), Identity.user_id == user_id)
    return set(db.execute(stmt).scalars().all())

def apply_changes(db: Session, obj: Identity, changes: Dict[str, Any]) -> Identity:
    for key, value in changes.items():
        setattr(obj, key, value)
    db.flush()
    db.refresh(obj)
    return obj

def delete(db: Session, obj: Identity) -> None:
    db.delete(obj)
    db.flush()

def list_explorable(
    db: Session, *, viewer_id: UUID, identity_ids: Iterable[UUID], owner_ids: Iterable[UUID]
) -> List[Identity]:
    """Other users' identities that are PUBLIC, listed by id, or owned by one of owner_ids."""
    clauses = [Identity.visibility == Visibility.PUBLIC.value]
    ids, owners = list(identity_ids), list(owner_ids)
    if ids:
        clauses.append(Identity.id.in_(ids))
    if owners:
        clauses.append(Identity.user_id.in_(owners))
    stmt = (
        select(Identity)
        .where(Identity.user_id != viewer_id, or_(*clauses))
        .order_by(Identity.updated_at.desc())
    )
    return list(db.execute(stmt).scalars().all())
