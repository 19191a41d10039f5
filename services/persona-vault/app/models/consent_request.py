import uuid
from sqlalchemy import Column, DateTime, ForeignKey, String, Text, Uuid, and_, func, Index
from sqlalchemy.orm import relationship
from app.db.base import Base
from app.models.enums import ConsentRequestStatus
from app.models.coltypes import JSONType

class ConsentRequest(Base):
    __tablename__ = "consent_requests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    target_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    identity_id = Column(Uuid(as_uuid=True), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False)
    requesting_user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    app_id = Column(Uuid(as_uuid=True), ForeignKey("apps.id", ondelete="CASCADE"), nullable=True)

    requested_scopes = Column(JSONType, nullable=False)
    context_description = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default=ConsentRequestStatus.PENDING.value, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)

    app = relationship("App", lazy="joined")

_pending = ConsentRequest.status == ConsentRequestStatus.PENDING.value
_pending_user_flow = and_(_pending, ConsentRequest.app_id.is_(None))

# Backstops for the one-pending-request rule; the service checks first.
# NULL app_id never collides in a unique index, so user-flow requests get their own.
Index(
    "uq_consent_requests_pending",
    ConsentRequest.identity_id,
    ConsentRequest.requesting_user_id,
    ConsentRequest.app_id,
    unique=True,
    postgresql_where=_pending,
    sqlite_where=_pending,
)
Index(
    "uq_consent_requests_pending_user",
    ConsentRequest.identity_id,
    ConsentRequest.requesting_user_id,
    unique=True,
    postgresql_where=_pending_user_flow,
    sqlite_where=_pending_user_flow,
)
