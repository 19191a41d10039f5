import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Text, Uuid, func
from app.db.base import Base
from app.models.coltypes import JSONType

class App(Base):
    __tablename__ = "apps"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(Text, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    website_url = Column(Text, nullable=True)
    logo_url = Column(Text, nullable=True)
    privacy_policy_url = Column(Text, nullable=True)
    terms_of_service_url = Column(Text, nullable=True)
    redirect_uris = Column(JSONType, nullable=False, default=list)

    # bcrypt hash; the salt is embedded in the hash string. Plaintext is never stored.
    api_key_hash = Column(Text, nullable=True)

    is_enabled = Column(Boolean, nullable=False, default=True)
    is_system_app = Column(Boolean, nullable=False, default=False)
    is_admin_approved = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def is_connectable(self) -> bool:
        return bool(self.is_enabled and self.is_admin_approved and not self.is_system_app)
