"""App API keys: generation, bcrypt hashing, verification."""
from __future__ import annotations

import logging
import secrets
from functools import lru_cache
from typing import Any, Dict, Optional
from uuid import UUID

import bcrypt
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import Forbidden, NotFound, Unauthenticated
from app.core.metrics import inc_app_auth_failures
from app.db.session import atomic
from app.models.app import App
from app.models.enums import AuditActorType, AuditOutcome
from app.repositories import apps as app_repo
from app.services.audit import record_audit_event

log = logging.getLogger("app_keys")

API_KEY_BYTES = 32  # 256 bits


def generate_api_key() -> str:
    return secrets.token_hex(API_KEY_BYTES)


def hash_api_key(api_key: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(api_key.encode("utf-8"), salt).decode("utf-8")


def verify_api_key(api_key: str, api_key_hash: str) -> bool:
    try:
        return bcrypt.checkpw(api_key.encode("utf-8"), api_key_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash or oversized input
        return False


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    return hash_api_key(generate_api_key())


def _burn_verify(presented_key: Optional[str]) -> None:
    """Run one bcrypt check so failures without a stored hash cost the same."""
    verify_api_key(presented_key or "", _dummy_hash())


def _fail(db: Session, *, reason: str, app_id: Any, details: Optional[Dict[str, Any]] = None) -> None:
    inc_app_auth_failures()
    log.warning("app_auth_failed reason=%s", reason, extra={"app_id": str(app_id)})
    record_audit_event(
        db,
        actor_type=AuditActorType.SYSTEM if reason == "unknown_app" else AuditActorType.APP,
        actor_app_id=app_id,
        action="APP_API_KEY_LOGIN_FAILURE",
        target_type="App",
        target_id=app_id,
        outcome=AuditOutcome.FAILURE,
        details={"reason": reason, **(details or {})},
    )


def authenticate_app(db: Session, *, app_id: UUID, presented_key: str) -> App:
    """Return the App if ``presented_key`` is its current key.

    Unknown app, unset key and wrong key all fail with the same
    invalid_app_credentials error and the same bcrypt cost, so callers cannot
    tell which app ids exist.
    A disabled app is reported as such only to a caller holding its key.
    """
    app = app_repo.get_by_id(db, app_id)
    if app is None:
        _burn_verify(presented_key)
        _fail(db, reason="unknown_app", app_id=app_id)
        raise Unauthenticated("invalid_app_credentials")
    if not app.api_key_hash:
        _burn_verify(presented_key)
        _fail(db, reason="api_key_not_configured", app_id=app.id)
        raise Unauthenticated("invalid_app_credentials")
    if not verify_api_key(presented_key or "", app.api_key_hash):
        _fail(db, reason="invalid_api_key", app_id=app.id)
        raise Unauthenticated("invalid_app_credentials")
    if not app.is_enabled:
        _fail(db, reason="app_disabled", app_id=app.id)
        raise Forbidden("app_disabled")

    record_audit_event(
        db,
        actor_type=AuditActorType.APP,
        actor_app_id=app.id,
        action="APP_API_KEY_LOGIN_SUCCESS",
        target_type="App",
        target_id=app.id,
        outcome=AuditOutcome.SUCCESS,
        details={"app_name": app.name},
    )
    return app


def regenerate_api_key(db: Session, *, app_id: UUID, owner_id: UUID) -> str:
    """Issue a new key for the owner's app. The previous key stops working immediately."""
    app = app_repo.get_by_id(db, app_id)
    if app is None:
        raise NotFound("not_found", "App not found.")
    if app.owner_id != owner_id:
        raise Forbidden()

    api_key = generate_api_key()
    with atomic(db):
        app_repo.set_api_key_hash(db, app, hash_api_key(api_key))

    record_audit_event(
        db,
        actor_type=AuditActorType.USER,
        actor_user_id=owner_id,
        action="REGENERATE_APP_API_KEY",
        target_type="App",
        target_id=app.id,
        outcome=AuditOutcome.SUCCESS,
    )
    return api_key
