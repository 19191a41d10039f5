from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator

class ConsentRequestCreate(BaseModel):
    identity_id: UUID
    target_user_id: UUID
    requested_scopes: List[str] = Field(min_length=1)
    context_description: str = Field(min_length=1)
    app_id: Optional[UUID] = None

    @field_validator("context_description")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("context_description must not be blank")
        return v

class ConsentRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    target_user_id: UUID
    identity_id: UUID
    requesting_user_id: UUID
    app_id: Optional[UUID] = None
    requested_scopes: List[str]
    context_description: str
    status: str
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

class ConsentRequestDecisionResponse(BaseModel):
    request: ConsentRequestOut
    consent_id: Optional[UUID] = None
