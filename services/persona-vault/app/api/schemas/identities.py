from __future__ import annotations
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, model_validator

from app.models.enums import IdentityCategory, Visibility

class ContextualNameDetails(BaseModel):
    preferred_name: Optional[str] = None
    usage_context: Optional[str] = None

class NameHistoryEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    context: Optional[str] = None

class _IdentityFields(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    custom_category_name: Optional[str] = None
    description: Optional[str] = None
    contextual_name_details: Optional[ContextualNameDetails] = None
    identity_name_history: List[NameHistoryEntry] = []
    contextual_religious_names: List[str] = []
    gender_identity: Optional[str] = None
    custom_gender_description: Optional[str] = None
    pronouns: Optional[str] = None
    date_of_birth: Optional[date] = None
    location: Optional[str] = None
    profile_picture_url: Optional[str] = None
    identity_contacts: Dict[str, str] = {}
    online_presence: Dict[str, str] = {}
    website_urls: List[AnyHttpUrl] = []
    additional_attributes: Dict[str, str] = {}

class IdentityCreate(_IdentityFields):
    identity_label: str = Field(min_length=1)
    category: IdentityCategory
    visibility: Visibility = Visibility.PRIVATE

    @model_validator(mode="after")
    def custom_category_needs_name(self) -> "IdentityCreate":
        if self.category == IdentityCategory.CUSTOM.value and not (self.custom_category_name or "").strip():
            raise ValueError("custom_category_name is required when category is CUSTOM")
        return self

class IdentityUpdate(_IdentityFields):
    identity_label: Optional[str] = Field(default=None, min_length=1)
    category: Optional[IdentityCategory] = None
    visibility: Optional[Visibility] = None

    @model_validator(mode="after")
    def required_columns_not_nulled(self) -> "IdentityUpdate":
        for name in ("identity_label", "category", "visibility"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

class IdentityAccessResponse(BaseModel):
    """Outcome of an identity read; ``identity`` holds only what the caller may see."""
    access: str
    identity: Dict[str, Any]
    granted_scopes: List[str] = []
    consent_id: Optional[UUID] = None

class IdentityDeleteResponse(BaseModel):
    deleted: bool = True
    revoked_consents: int
