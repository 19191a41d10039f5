"""Who may see what of an identity.

``resolve_access`` is the single place that decides between a full record,
a scope-projected record, the fixed public-safe view, a non-identifying stub,
or a denial. Call sites render the decision; they never re-derive it.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.metrics import inc_access_decision
from app.models.consent import Consent
from app.models.enums import AuditActorType, AuditOutcome, IdentityCategory, Visibility
from app.models.identity import Identity
from app.repositories import consents as consent_repo
from app.services.audit import record_audit_event
from app.services.projector import full_view, project, public_view
from app.services.scope_policy import IDENTITY_READ, satisfies

log = logging.getLogger("visibility")

STUB_LABELS = {
    Visibility.PRIVATE.value: "Private Identity",
    Visibility.APP_SPECIFIC.value: "Restricted Identity",
}


class RequesterKind(str, Enum):
    USER = "USER"
    APP = "APP"
    ANONYMOUS = "ANONYMOUS"


@dataclass(frozen=True)
class RequesterContext:
    kind: RequesterKind
    user_id: Optional[UUID] = None
    app_id: Optional[UUID] = None

    @classmethod
    def anonymous(cls) -> "RequesterContext":
        return cls(kind=RequesterKind.ANONYMOUS)

    @classmethod
    def for_user(cls, user_id: UUID) -> "RequesterContext":
        return cls(kind=RequesterKind.USER, user_id=user_id)

    @classmethod
    def for_app(cls, app_id: UUID) -> "RequesterContext":
        return cls(kind=RequesterKind.APP, app_id=app_id)


class AccessKind(str, Enum):
    FULL = "FULL"
    PROJECTED = "PROJECTED"
    PUBLIC_VIEW = "PUBLIC_VIEW"
    STUB = "STUB"
    DENY = "DENY"


@dataclass
class AccessDecision:
    kind: AccessKind
    payload: Optional[Dict[str, Any]] = None
    granted_scopes: List[str] = field(default_factory=list)
    consent_id: Optional[UUID] = None
    reason: Optional[str] = None
    required_scopes: List[str] = field(default_factory=list)

    @property
    def allowed(self) -> bool:
        return self.kind is not AccessKind.DENY


def stub_view(identity: Identity) -> Dict[str, Any]:
    custom = identity.custom_category_name if identity.category == IdentityCategory.CUSTOM.value else None
    return {
        "id": identity.id,
        "visibility": identity.visibility,
        "category": identity.category,
        "custom_category_name": custom,
        "identity_label": STUB_LABELS.get(identity.visibility, "Restricted Identity"),
        "profile_picture_url": settings.PLACEHOLDER_PICTURE_URL,
    }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _consent_lookup(db: Session, identity: Identity, requester: RequesterContext, now: datetime):
    """Identity-level grant first, then the owner's user-level grant."""
    for identity_id in (identity.id, None):
        if requester.kind is RequesterKind.APP:
            consent = consent_repo.find_active_for_app(
                db, app_id=requester.app_id, owner_id=identity.user_id, identity_id=identity_id, now=now
            )
        else:
            consent = consent_repo.find_active_for_user(
                db, requesting_user_id=requester.user_id, owner_id=identity.user_id, identity_id=identity_id, now=now
            )
        yield consent


def _matching_consent(
    db: Session, identity: Identity, requester: RequesterContext, required_scope: Optional[str]
) -> Optional[Consent]:
    now = _utcnow()
    for consent in _consent_lookup(db, identity, requester, now):
        if consent is not None and satisfies(consent.granted_scopes or [], required_scope):
            return consent
    return None


def _audit_app_access(db: Session, identity: Identity, requester: RequesterContext, decision: AccessDecision) -> None:
    granted = decision.kind is AccessKind.PROJECTED
    details: Dict[str, Any] = {"decision": decision.kind.value}
    if granted:
        details["consent_id"] = decision.consent_id
        details["granted_scopes"] = decision.granted_scopes
    else:
        details["reason"] = decision.reason
        details["required_scopes"] = decision.required_scopes
    record_audit_event(
        db,
        actor_type=AuditActorType.APP,
        actor_app_id=requester.app_id,
        action="APP_IDENTITY_ACCESS",
        target_type="Identity",
        target_id=identity.id,
        outcome=AuditOutcome.SUCCESS if granted else AuditOutcome.FAILURE,
        details=details,
    )


def _user_baseline(identity: Identity) -> Dict[str, Any]:
    """What a signed-in non-owner sees of ``identity`` without any grant."""
    if identity.visibility == Visibility.AUTHENTICATED_USERS.value:
        return public_view(identity)
    return stub_view(identity)


def _decide(
    db: Session, identity: Identity, requester: RequesterContext, required_scope: Optional[str]
) -> AccessDecision:
    if requester.user_id is not None and requester.user_id == identity.user_id:
        return AccessDecision(AccessKind.FULL, full_view(identity))

    if identity.visibility == Visibility.PUBLIC.value:
        return AccessDecision(AccessKind.FULL, full_view(identity))

    if requester.kind is not RequesterKind.ANONYMOUS:
        consent = _matching_consent(db, identity, requester, required_scope)
        if consent is not None:
            scopes = list(consent.granted_scopes or [])
            payload = project(identity, scopes)
            if requester.kind is RequesterKind.USER:
                # a user grant only ever adds to what the user already sees
                payload = {**_user_baseline(identity), **payload}
            return AccessDecision(
                AccessKind.PROJECTED,
                payload,
                granted_scopes=scopes,
                consent_id=consent.id,
            )

    if requester.kind is RequesterKind.APP:
        return AccessDecision(
            AccessKind.DENY, reason="consent_required", required_scopes=[required_scope or IDENTITY_READ]
        )

    if requester.kind is RequesterKind.USER and identity.visibility == Visibility.AUTHENTICATED_USERS.value:
        return AccessDecision(AccessKind.PUBLIC_VIEW, public_view(identity))

    if identity.visibility in (Visibility.PRIVATE.value, Visibility.APP_SPECIFIC.value):
        return AccessDecision(AccessKind.STUB, stub_view(identity))

    # Anonymous caller on an AUTHENTICATED_USERS identity
    return AccessDecision(AccessKind.DENY, reason="authentication_required")


def resolve_access(
    db: Session,
    identity: Identity,
    requester: RequesterContext,
    required_scope: Optional[str] = IDENTITY_READ,
) -> AccessDecision:
    """Decide what ``requester`` may see of ``identity``.

    Order, first match wins: owner, public identity, active identity-level
    consent, active user-level consent, signed-in user on an
    AUTHENTICATED_USERS identity, stub for private/app-specific identities,
    otherwise deny. A user grant is laid over the view the user already has.
    Every decision re-reads consent state, since grants can be
    revoked between requests. App decisions past the public check are audited.
    """
    decision = _decide(db, identity, requester, required_scope)
    inc_access_decision(decision.kind.value)
    log.info(
        "access_decision kind=%s requester=%s",
        decision.kind.value,
        requester.kind.value,
        extra={"identity_id": str(identity.id), "app_id": str(requester.app_id) if requester.app_id else None},
    )
    if requester.kind is RequesterKind.APP and decision.kind in (AccessKind.PROJECTED, AccessKind.DENY):
        _audit_app_access(db, identity, requester, decision)
    return decision
