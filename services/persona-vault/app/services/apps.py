from __future__ import annotations

import logging
from typing import List, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.schemas.apps import AppCreate
from app.core.errors import Conflict
from app.db.session import atomic
from app.models.app import App
from app.models.enums import AuditActorType, AuditOutcome
from app.repositories import apps as app_repo
from app.services.app_keys import generate_api_key, hash_api_key
from app.services.audit import record_audit_event

log = logging.getLogger("apps")


def register_app(db: Session, *, owner_id: UUID, payload: AppCreate) -> Tuple[App, str]:
    """Create an app owned by ``owner_id``; returns it with its plaintext key (shown once)."""
    fields = payload.model_dump(mode="json")
    api_key = generate_api_key()
    try:
        with atomic(db):
            app = app_repo.create(db, owner_id=owner_id, fields=fields, api_key_hash=hash_api_key(api_key))
    except IntegrityError:
        raise Conflict("app_name_taken")

    log.info("app_registered", extra={"app_id": str(app.id), "user_id": str(owner_id)})
    record_audit_event(
        db,
        actor_type=AuditActorType.USER,
        actor_user_id=owner_id,
        action="CREATE_APP",
        target_type="App",
        target_id=app.id,
        outcome=AuditOutcome.SUCCESS,
        details={"name": app.name},
    )
    return app, api_key


def list_own_apps(db: Session, owner_id: UUID) -> List[App]:
    return app_repo.list_by_owner(db, owner_id)


def list_connectable_apps(db: Session, user_id: UUID) -> List[App]:
    return app_repo.list_connectable(db, exclude_owner_id=user_id)
