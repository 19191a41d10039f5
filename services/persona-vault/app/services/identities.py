from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List
from uuid import UUID

from sqlalchemy.orm import Session

from app.api.schemas.identities import IdentityCreate, IdentityUpdate
from app.core.errors import NotFound, ValidationFailed
from app.db.session import atomic
from app.models.enums import AuditActorType, AuditOutcome, IdentityCategory
from app.models.identity import Identity
from app.repositories import consent_requests as request_repo
from app.repositories import consents as consent_repo
from app.repositories import identities as identity_repo
from app.services.audit import record_audit_event

log = logging.getLogger("identities")


def _to_columns(payload, *, partial: bool) -> Dict[str, Any]:
    data = payload.model_dump(mode="json", by_alias=True, exclude_unset=partial)
    # JSON mode stringifies dates; the Date column wants the real object back
    if "date_of_birth" in data:
        data["date_of_birth"] = payload.date_of_birth
    return data


def _enforce_custom_category(fields: Dict[str, Any], category: str, custom_name: Any) -> None:
    if category == IdentityCategory.CUSTOM.value:
        if not (custom_name or "").strip():
            raise ValidationFailed("validation_error", "custom_category_name is required when category is CUSTOM.")
    else:
        fields["custom_category_name"] = None


def _audit(db: Session, user_id: UUID, action: str, identity_id: UUID, **details: Any) -> None:
    record_audit_event(
        db,
        actor_type=AuditActorType.USER,
        actor_user_id=user_id,
        action=action,
        target_type="Identity",
        target_id=identity_id,
        outcome=AuditOutcome.SUCCESS,
        details=details or {"source": "api"},
    )


def create_identity(db: Session, *, user_id: UUID, payload: IdentityCreate) -> Identity:
    fields = _to_columns(payload, partial=False)
    _enforce_custom_category(fields, fields["category"], fields.get("custom_category_name"))
    with atomic(db):
        identity = identity_repo.create(db, user_id=user_id, fields=fields)
    log.info("identity_created", extra={"identity_id": str(identity.id), "user_id": str(user_id)})
    _audit(db, user_id, "CREATE_IDENTITY", identity.id)
    return identity


def get_identity(db: Session, identity_id: UUID) -> Identity:
    identity = identity_repo.get_by_id(db, identity_id)
    if identity is None:
        raise NotFound("not_found", "Identity not found.")
    return identity


def get_owned_identity(db: Session, *, user_id: UUID, identity_id: UUID) -> Identity:
    identity = identity_repo.get_by_id(db, identity_id)
    # Same answer for "absent" and "someone else's" so ids cannot be enumerated
    if identity is None or identity.user_id != user_id:
        raise NotFound("not_found", "Identity not found or not owned by user.")
    return identity


def list_own_identities(db: Session, user_id: UUID) -> List[Identity]:
    return identity_repo.list_by_owner(db, user_id)


def update_identity(db: Session, *, user_id: UUID, identity_id: UUID, payload: IdentityUpdate) -> Identity:
    identity = get_owned_identity(db, user_id=user_id, identity_id=identity_id)
    changes = _to_columns(payload, partial=True)
    category = changes.get("category", identity.category)
    custom_name = changes.get("custom_category_name", identity.custom_category_name)
    _enforce_custom_category(changes, category, custom_name)
    with atomic(db):
        identity = identity_repo.apply_changes(db, identity, changes)
    _audit(db, user_id, "UPDATE_IDENTITY", identity.id, fields=sorted(changes))
    return identity


def delete_identity(db: Session, *, user_id: UUID, identity_id: UUID) -> int:
    """Delete an owned identity; its consents are soft-revoked, never removed.

    Returns the number of consents revoked.
    """
    identity = get_owned_identity(db, user_id=user_id, identity_id=identity_id)
    with atomic(db):
        revoked = consent_repo.revoke_all_for_identity(db, identity_id=identity.id, now=datetime.now(timezone.utc))
        request_repo.delete_for_identity(db, identity_id=identity.id)
        identity_repo.delete(db, identity)
    _audit(db, user_id, "DELETE_IDENTITY", identity_id, revoked_consents=revoked)
    return revoked
