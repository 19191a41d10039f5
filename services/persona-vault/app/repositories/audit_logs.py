from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from app.models.audit_log import AuditLog

def create(
    db: Session,
    *,
    actor_type: str,
    action: str,
    outcome: str,
    actor_user_id: Optional[str] = None,
    actor_app_id: Optional[str] = None,
    target_entity_type: Optional[str] = None,
    target_entity_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    obj = AuditLog(
        actor_type=actor_type,
        actor_user_id=actor_user_id,
        actor_app_id=actor_app_id,
        action=action,
        target_entity_type=target_entity_type,
        target_entity_id=target_entity_id,
        outcome=outcome,
        details=details,
    )
    db.add(obj)
    db.commit()
    return obj
