from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.orm import Session
from app.models.app import App

def _connectable():
    return (App.is_enabled.is_(True), App.is_admin_approved.is_(True), App.is_system_app.is_(False))

def create(db: Session, *, owner_id: UUID, fields: Dict[str, Any], api_key_hash: Optional[str]) -> App:
    obj = App(owner_id=owner_id, api_key_hash=api_key_hash, **fields)
    db.add(obj)
    db.flush()
    db.refresh(obj)
    return obj

def get_by_id(db: Session, app_id: UUID) -> Optional[App]:
    return db.get(App, app_id)

def list_by_owner(db: Session, owner_id: UUID) -> List[App]:
    stmt = select(App).where(App.owner_id == owner_id).order_by(App.created_at.desc())
    return list(db.execute(stmt).scalars().all())

def list_connectable(db: Session, *, exclude_owner_id: Optional[UUID] = None) -> List[App]:
    stmt = select(App).where(*_connectable())
    if exclude_owner_id is not None:
        stmt = stmt.where(App.owner_id != exclude_owner_id)
    return list(db.execute(stmt.order_by(App.name.asc())).scalars().all())

def set_api_key_hash(db: Session, obj: App, api_key_hash: str) -> App:
    obj.api_key_hash = api_key_hash
    db.flush()
    return obj
