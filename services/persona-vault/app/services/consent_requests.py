"""Consent request lifecycle: PENDING -> APPROVED | REJECTED, exactly once."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.schemas.consent_requests import ConsentRequestCreate, ConsentRequestOut
from app.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from app.core.metrics import inc_consent_requests_created, inc_consent_requests_decided, inc_consents_granted
from app.db.session import atomic
from app.models.consent import Consent
from app.models.consent_request import ConsentRequest
from app.models.enums import AuditActorType, AuditOutcome, ConsentRequestStatus
from app.repositories import apps as app_repo
from app.repositories import consent_requests as request_repo
from app.repositories import consents as consent_repo
from app.repositories import identities as identity_repo
from app.services.audit import record_audit_event
from app.utils.hashutils import canonical_sha256
from app.utils.idempotency import STORE_ERRORS, read_entry, store_final, try_lock

log = logging.getLogger("consent_requests")


class Decision(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


_DECISION_STATUS = {
    Decision.APPROVE: ConsentRequestStatus.APPROVED.value,
    Decision.REJECT: ConsentRequestStatus.REJECTED.value,
}


@dataclass
class DecisionResult:
    request: ConsentRequest
    consent: Optional[Consent] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _already_decided(req: ConsentRequest) -> Conflict:
    return Conflict(
        "already_decided",
        f"Consent request is already {req.status.lower()}.",
        request_id=str(req.id),
        status=req.status,
    )


def create_consent_request(db: Session, *, requesting_user_id: UUID, payload: ConsentRequestCreate) -> ConsentRequest:
    if requesting_user_id == payload.target_user_id:
        raise ValidationFailed("validation_error", "Cannot request consent from yourself.")

    scopes = [s.strip() for s in payload.requested_scopes if s and s.strip()]
    if not scopes:
        raise ValidationFailed("validation_error", "At least one scope must be requested.")
    context = payload.context_description.strip()
    if not context:
        raise ValidationFailed("validation_error", "context_description must not be empty.")

    if payload.app_id is not None and app_repo.get_by_id(db, payload.app_id) is None:
        raise NotFound("not_found", f"App {payload.app_id} not found.")

    identity = identity_repo.get_by_id(db, payload.identity_id)
    if identity is None:
        raise NotFound("not_found", f"Identity {payload.identity_id} not found.")
    if identity.user_id != payload.target_user_id:
        raise ValidationFailed("validation_error", f"Identity does not belong to user {payload.target_user_id}.")

    existing = request_repo.find_pending(
        db, identity_id=payload.identity_id, requesting_user_id=requesting_user_id, app_id=payload.app_id
    )
    if existing is not None:
        raise Conflict("duplicate_pending_request", request_id=str(existing.id))

    try:
        with atomic(db):
            req = request_repo.create(
                db,
                target_user_id=payload.target_user_id,
                identity_id=payload.identity_id,
                requesting_user_id=requesting_user_id,
                app_id=payload.app_id,
                requested_scopes=scopes,
                context_description=context,
            )
    except IntegrityError:
        # Lost a race with an identical request; report the winner
        winner = request_repo.find_pending(
            db, identity_id=payload.identity_id, requesting_user_id=requesting_user_id, app_id=payload.app_id
        )
        raise Conflict("duplicate_pending_request", request_id=str(winner.id) if winner else None)

    inc_consent_requests_created()
    log.info("consent_request_created", extra={"request_id": str(req.id), "user_id": str(requesting_user_id)})
    record_audit_event(
        db,
        actor_type=AuditActorType.USER,
        actor_user_id=requesting_user_id,
        action="CREATE_CONSENT_REQUEST",
        target_type="ConsentRequest",
        target_id=req.id,
        outcome=AuditOutcome.SUCCESS,
        details={"identity_id": req.identity_id, "app_id": req.app_id, "scopes": scopes},
    )
    return req


def decide_consent_request(
    db: Session, *, request_id: UUID, decider_user_id: UUID, decision: Decision
) -> DecisionResult:
    """Approve or reject a pending request on behalf of its target user.

    Approval flips the status and upserts the matching consent in one
    transaction. The status flip is a conditional UPDATE, so of two
    concurrent decisions exactly one wins and the other gets already_decided.
    """
    action = f"{decision.value}_CONSENT_REQUEST"
    req = request_repo.get_by_id(db, request_id)
    if req is None:
        raise NotFound("not_found", "Consent request not found.")

    if req.target_user_id != decider_user_id:
        record_audit_event(
            db,
            actor_type=AuditActorType.USER,
            actor_user_id=decider_user_id,
            action=f"{action}_FAILURE",
            target_type="ConsentRequest",
            target_id=req.id,
            outcome=AuditOutcome.FAILURE,
            details={"error": "not_target_user"},
        )
        raise Forbidden("forbidden", "Only the target user may decide this request.")

    if req.status != ConsentRequestStatus.PENDING.value:
        raise _already_decided(req)

    now = _utcnow()
    consent: Optional[Consent] = None
    try:
        with atomic(db):
            won = request_repo.transition_if_pending(
                db, request_id=req.id, new_status=_DECISION_STATUS[decision], now=now
            )
            if won and decision is Decision.APPROVE:
                if req.app_id is not None:
                    consent = consent_repo.upsert_app_grant(
                        db,
                        user_id=decider_user_id,
                        app_id=req.app_id,
                        identity_id=req.identity_id,
                        scopes=req.requested_scopes,
                        now=now,
                    )
                else:
                    consent = consent_repo.upsert_user_grant(
                        db,
                        user_id=decider_user_id,
                        requesting_user_id=req.requesting_user_id,
                        identity_id=req.identity_id,
                        scopes=req.requested_scopes,
                        now=now,
                    )
    except IntegrityError:
        raise Conflict("conflict", "A concurrent change conflicted with this decision.")

    db.refresh(req)
    if not won:
        raise _already_decided(req)

    inc_consent_requests_decided(decision.value.lower())
    if consent is not None:
        inc_consents_granted()
    log.info(
        "consent_request_decided",
        extra={"request_id": str(req.id), "decision": decision.value, "consent_id": str(consent.id) if consent else None},
    )
    record_audit_event(
        db,
        actor_type=AuditActorType.USER,
        actor_user_id=decider_user_id,
        action=action,
        target_type="ConsentRequest",
        target_id=req.id,
        outcome=AuditOutcome.SUCCESS,
        details={
            "via": "app" if req.app_id else "user",
            "consumer": req.app_id or req.requesting_user_id,
            "identity_id": req.identity_id,
            "scopes": req.requested_scopes,
            "consent_id": consent.id if consent else None,
        },
    )
    return DecisionResult(request=req, consent=consent)


def list_pending_for_user(db: Session, user_id: UUID) -> List[ConsentRequest]:
    return request_repo.list_pending_for_target(db, user_id)


async def create_consent_request_idempotent(
    db: Session, *, requesting_user_id: UUID, payload: ConsentRequestCreate, idempotency_key: Optional[str]
) -> Tuple[Dict[str, Any], bool]:
    """Create a request, replaying the stored response for a repeated Idempotency-Key.

    Returns (response_body, is_replay). The same key with a different body is
    an idempotency_conflict. When Redis is unreachable creation proceeds
    without replay protection; the pending-duplicate check still applies.
    """
    if not idempotency_key:
        req = create_consent_request(db, requesting_user_id=requesting_user_id, payload=payload)
        return ConsentRequestOut.model_validate(req).model_dump(mode="json"), False

    principal = str(requesting_user_id)
    body_sha = canonical_sha256(payload.model_dump(mode="json"))

    existing = None
    try:
        existing = await read_entry(principal, idempotency_key)
    except STORE_ERRORS as e:
        log.warning("idempotency_read_failed (continuing without replay): %s", e)

    if existing:
        if existing.get("body_sha256") != body_sha:
            raise Conflict("idempotency_conflict")
        if existing.get("response"):
            return existing["response"], True
        # LOCK held by an in-flight twin; the pending-duplicate check settles it

    try:
        await try_lock(principal, idempotency_key, body_sha)
    except STORE_ERRORS as e:
        log.warning("idempotency_lock_failed (continuing): %s", e)

    req = create_consent_request(db, requesting_user_id=requesting_user_id, payload=payload)
    body = ConsentRequestOut.model_validate(req).model_dump(mode="json")

    try:
        await store_final(principal, idempotency_key, body_sha, body, 201)
    except STORE_ERRORS as e:
        log.warning("idempotency_store_failed: %s", e)
    return body, False
