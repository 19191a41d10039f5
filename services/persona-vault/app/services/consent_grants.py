"""Standing consent grants: batch grant, single grant, revoke, listings."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.core.metrics import inc_consents_granted, inc_consents_revoked
from app.db.session import atomic
from app.models.app import App
from app.models.consent import Consent
from app.models.enums import AuditActorType, AuditOutcome
from app.repositories import apps as app_repo
from app.repositories import consents as consent_repo
from app.repositories import identities as identity_repo
from app.services.audit import record_audit_event

log = logging.getLogger("consent_grants")


@dataclass
class RevokeResult:
    consent: Consent
    already_revoked: bool


@dataclass
class IdentityAppOverview:
    granted: List[Consent]
    available: List[App]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clean_scopes(scopes: Sequence[str]) -> List[str]:
    cleaned = list(dict.fromkeys(s.strip() for s in scopes if s and s.strip()))
    if not cleaned:
        raise ValidationFailed("validation_error", "At least one scope must be provided.")
    return cleaned


def batch_grant(
    db: Session, *, user_id: UUID, app_id: UUID, identity_ids: Sequence[UUID], scopes: Sequence[str]
) -> int:
    """Grant ``scopes`` to ``app_id`` for every identity in ``identity_ids``.

    All-or-nothing: ownership of every id is checked before anything is
    written, and the upserts share one transaction.
    """
    ids = list(dict.fromkeys(identity_ids))
    if not ids:
        raise ValidationFailed("validation_error", "identity_ids must be a non-empty list.")
    scopes = _clean_scopes(scopes)

    owned = identity_repo.owned_ids(db, user_id=user_id, identity_ids=ids)
    offending = [i for i in ids if i not in owned]
    if offending:
        log.warning("batch_grant_rejected", extra={"user_id": str(user_id), "app_id": str(app_id)})
        raise Forbidden(
            "forbidden",
            "One or more identities are invalid or not owned by you.",
            invalid_identity_ids=[str(i) for i in offending],
        )
    if app_repo.get_by_id(db, app_id) is None:
        raise ValidationFailed("validation_error", "The specified application does not exist.")

    now = _utcnow()
    try:
        with atomic(db):
            for identity_id in ids:
                consent_repo.upsert_app_grant(
                    db, user_id=user_id, app_id=app_id, identity_id=identity_id, scopes=scopes, now=now
                )
    except IntegrityError:
        raise Conflict("conflict", "A concurrent grant conflicted with this batch.")

    inc_consents_granted(len(ids))
    record_audit_event(
        db,
        actor_type=AuditActorType.USER,
        actor_user_id=user_id,
        action="BATCH_GRANT_CONSENT",
        target_type="App",
        target_id=app_id,
        outcome=AuditOutcome.SUCCESS,
        details={"identity_ids": ids, "scopes": scopes},
    )
    return len(ids)


def grant_for_identity(
    db: Session, *, user_id: UUID, identity_id: UUID, app_id: UUID, scopes: Sequence[str]
) -> tuple[Consent, bool]:
    """Grant one connectable app access to one owned identity. Returns (consent, created)."""
    identity = identity_repo.get_by_id(db, identity_id)
    if identity is None or identity.user_id != user_id:
        raise NotFound("not_found", "Identity not found or access denied.")
    app = app_repo.get_by_id(db, app_id)
    if app is None or not app.is_connectable:
        raise ValidationFailed("validation_error", "App not available for consent.")
    scopes = _clean_scopes(scopes)

    now = _utcnow()
    existed = consent_repo.find_active_for_app(
        db, app_id=app_id, owner_id=user_id, identity_id=identity_id, now=now
    ) is not None
    try:
        with atomic(db):
            consent = consent_repo.upsert_app_grant(
                db, user_id=user_id, app_id=app_id, identity_id=identity_id, scopes=scopes, now=now
            )
    except IntegrityError:
        raise Conflict("conflict", "A concurrent grant conflicted with this request.")

    inc_consents_granted()
    record_audit_event(
        db,
        actor_type=AuditActorType.USER,
        actor_user_id=user_id,
        action="GRANT_CONSENT",
        target_type="Consent",
        target_id=consent.id,
        outcome=AuditOutcome.SUCCESS,
        details={"app_id": app_id, "identity_id": identity_id, "scopes": scopes},
    )
    return consent, not existed


def _may_revoke(db: Session, consent: Consent, caller_user_id: UUID) -> bool:
    if consent.user_id == caller_user_id:
        return True
    if consent.identity_id is None:
        return False
    identity = identity_repo.get_by_id(db, consent.identity_id)
    return identity is not None and identity.user_id == caller_user_id


def revoke(db: Session, *, consent_id: UUID, caller_user_id: UUID) -> RevokeResult:
    """Soft-revoke a consent. Revoking twice succeeds and keeps the first timestamp."""
    consent = consent_repo.get_by_id(db, consent_id)
    if consent is None:
        raise NotFound("not_found", "Consent not found.")

    if not _may_revoke(db, consent, caller_user_id):
        record_audit_event(
            db,
            actor_type=AuditActorType.USER,
            actor_user_id=caller_user_id,
            action="REVOKE_CONSENT_FAILURE",
            target_type="Consent",
            target_id=consent.id,
            outcome=AuditOutcome.FAILURE,
            details={"error": "not_owner", "app_id": consent.app_id, "identity_id": consent.identity_id},
        )
        raise Forbidden("forbidden", "User not authorized to revoke this consent.")

    with atomic(db):
        changed = consent_repo.mark_revoked_if_active(db, consent_id=consent.id, now=_utcnow())
    db.refresh(consent)

    if changed:
        inc_consents_revoked()
    record_audit_event(
        db,
        actor_type=AuditActorType.USER,
        actor_user_id=caller_user_id,
        action="REVOKE_CONSENT",
        target_type="Consent",
        target_id=consent.id,
        outcome=AuditOutcome.SUCCESS,
        details={
            "already_revoked": not changed,
            "app_id": consent.app_id,
            "identity_id": consent.identity_id,
            "scopes": consent.granted_scopes,
        },
    )
    return RevokeResult(consent=consent, already_revoked=not changed)


def list_for_user(db: Session, user_id: UUID) -> List[Consent]:
    return consent_repo.list_by_user(db, user_id)


def identity_app_overview(db: Session, *, user_id: UUID, identity_id: UUID) -> IdentityAppOverview:
    """Apps holding an active grant on the identity vs connectable apps that do not."""
    identity = identity_repo.get_by_id(db, identity_id)
    if identity is None or identity.user_id != user_id:
        raise NotFound("not_found", "Identity not found or access denied.")

    granted: Dict[UUID, Consent] = {}
    for consent in consent_repo.list_active_app_grants_for_identity(db, identity_id=identity_id, now=_utcnow()):
        granted.setdefault(consent.app_id, consent)
    available = [a for a in app_repo.list_connectable(db) if a.id not in granted]
    return IdentityAppOverview(granted=list(granted.values()), available=available)
