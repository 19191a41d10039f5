from __future__ import annotations
import logging
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.enums import AuditActorType, AuditOutcome
from app.repositories.audit_logs import create as repo_create

log = logging.getLogger("audit")


def record_audit_event(
    db: Session,
    *,
    actor_type: AuditActorType,
    action: str,
    outcome: AuditOutcome,
    actor_user_id: Optional[Any] = None,
    actor_app_id: Optional[Any] = None,
    target_type: Optional[str] = None,
    target_id: Optional[Any] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Append an audit row. Never raises.

    Commits on the caller's session, so call it only at points where the
    caller has no uncommitted work (after an atomic block, or on a failure
    path before any write).
    """
    if not settings.AUDIT_ENABLED:
        return
    try:
        repo_create(
            db,
            actor_type=actor_type.value,
            action=action,
            outcome=outcome.value,
            actor_user_id=str(actor_user_id) if actor_user_id is not None else None,
            actor_app_id=str(actor_app_id) if actor_app_id is not None else None,
            target_entity_type=target_type,
            target_entity_id=str(target_id) if target_id is not None else None,
            details=jsonable_encoder(details) if details else None,
        )
    except Exception:
        # Audit failures are operational noise, not caller errors
        db.rollback()
        log.exception("audit_write_failed action=%s outcome=%s", action, outcome.value)
