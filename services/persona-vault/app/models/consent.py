import uuid
from sqlalchemy import Column, DateTime, ForeignKey, Uuid, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from app.db.base import Base
from app.models.coltypes import JSONType

class Consent(Base):
    __tablename__ = "consents"
    __table_args__ = (
        UniqueConstraint("user_id", "app_id", "identity_id", name="uq_consents_user_app_identity"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    app_id = Column(Uuid(as_uuid=True), ForeignKey("apps.id", ondelete="CASCADE"), nullable=True, index=True)
    requesting_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    # NULL means "all identities of user_id". Not a foreign key: revoked rows
    # outlive a deleted identity and must keep pointing at it.
    identity_id = Column(Uuid(as_uuid=True), nullable=True, index=True)

    granted_scopes = Column(JSONType, nullable=False, default=list)
    granted_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)   # soft delete
    expires_at = Column(DateTime(timezone=True), nullable=True)

    app = relationship("App", lazy="joined")

Index("idx_consents_requesting_user", Consent.requesting_user_id)
