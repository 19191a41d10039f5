import uuid
from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Text, Uuid, func, Index
from app.db.base import Base
from app.models.enums import Visibility
from app.models.coltypes import JSONType

class Identity(Base):
    __tablename__ = "identities"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    identity_label = Column(Text, nullable=False)
    category = Column(String(32), nullable=False)
    custom_category_name = Column(Text, nullable=True)   # only meaningful when category == CUSTOM
    description = Column(Text, nullable=True)

    contextual_name_details = Column(JSONType, nullable=True)      # {preferred_name, usage_context}
    identity_name_history = Column(JSONType, nullable=False, default=list)
    contextual_religious_names = Column(JSONType, nullable=False, default=list)
    gender_identity = Column(Text, nullable=True)
    custom_gender_description = Column(Text, nullable=True)
    pronouns = Column(Text, nullable=True)
    date_of_birth = Column(Date, nullable=True)
    location = Column(Text, nullable=True)
    profile_picture_url = Column(Text, nullable=True)
    identity_contacts = Column(JSONType, nullable=False, default=dict)
    online_presence = Column(JSONType, nullable=False, default=dict)
    website_urls = Column(JSONType, nullable=False, default=list)
    additional_attributes = Column(JSONType, nullable=False, default=dict)

    visibility = Column(String(24), nullable=False, default=Visibility.PRIVATE.value, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

Index("idx_identities_updated_at", Identity.updated_at)
