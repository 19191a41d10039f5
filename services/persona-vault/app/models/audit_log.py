import uuid
from sqlalchemy import Column, DateTime, String, Text, Uuid, func, Index
from app.db.base import Base
from app.models.coltypes import JSONType

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    actor_type = Column(String(16), nullable=False)
    # No foreign keys: the trail must survive deletion of what it describes
    actor_user_id = Column(Text, nullable=True)
    actor_app_id = Column(Text, nullable=True)
    action = Column(String(64), nullable=False, index=True)
    target_entity_type = Column(String(32), nullable=True)
    target_entity_id = Column(Text, nullable=True)
    outcome = Column(String(16), nullable=False)
    details = Column(JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

Index("idx_audit_logs_target", AuditLog.target_entity_type, AuditLog.target_entity_id)
