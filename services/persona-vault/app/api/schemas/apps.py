from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, field_validator

class AppCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    website_url: Optional[AnyHttpUrl] = None
    logo_url: Optional[AnyHttpUrl] = None
    privacy_policy_url: Optional[AnyHttpUrl] = None
    terms_of_service_url: Optional[AnyHttpUrl] = None
    redirect_uris: List[AnyHttpUrl] = Field(min_length=1, max_length=5)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

class AppOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    name: str
    description: Optional[str] = None
    website_url: Optional[str] = None
    logo_url: Optional[str] = None
    privacy_policy_url: Optional[str] = None
    terms_of_service_url: Optional[str] = None
    redirect_uris: List[str] = []
    is_enabled: bool
    is_admin_approved: bool
    created_at: Optional[datetime] = None

class AppCreatedResponse(AppOut):
    api_key: str  # plaintext, returned once

class ConnectableAppOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: Optional[str] = None
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    privacy_policy_url: Optional[str] = None
    terms_of_service_url: Optional[str] = None

class ApiKeyResponse(BaseModel):
    api_key: str
