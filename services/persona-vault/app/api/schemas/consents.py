from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field

from app.api.schemas.apps import ConnectableAppOut

class ConsentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    app_id: Optional[UUID] = None
    requesting_user_id: Optional[UUID] = None
    identity_id: Optional[UUID] = None
    granted_scopes: List[str]
    granted_at: datetime
    revoked_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

class BatchGrantRequest(BaseModel):
    app_id: UUID
    identity_ids: List[UUID] = Field(min_length=1)
    scopes: List[str] = Field(min_length=1)

class BatchGrantResponse(BaseModel):
    message: str
    count: int

class IdentityGrantRequest(BaseModel):
    app_id: UUID
    granted_scopes: List[str] = Field(default_factory=lambda: ["identity.read"], min_length=1)

class GrantedAppOut(ConnectableAppOut):
    consent_id: UUID
    granted_scopes: List[str]
    granted_at: datetime

class IdentityConsentsOverview(BaseModel):
    granted_apps: List[GrantedAppOut]
    available_apps: List[ConnectableAppOut]

class RevokeResponse(BaseModel):
    revoked: bool = True
    message: str
