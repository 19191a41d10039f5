from __future__ import annotations
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.schemas.apps import ApiKeyResponse, AppCreate, AppCreatedResponse, AppOut, ConnectableAppOut
from app.db.deps import get_db
from app.security.jwt import get_current_user
from app.services import apps as app_service
from app.services.app_keys import regenerate_api_key

router = APIRouter(prefix="/apps", tags=["apps"])

@router.post("", status_code=status.HTTP_201_CREATED, response_model=AppCreatedResponse, summary="Register an app")
def register_app(payload: AppCreate, user_id: UUID = Depends(get_current_user), db: Session = Depends(get_db)):
    app, api_key = app_service.register_app(db, owner_id=user_id, payload=payload)
    return AppCreatedResponse(**AppOut.model_validate(app).model_dump(), api_key=api_key)

@router.get("", response_model=List[AppOut], summary="My apps")
def my_apps(user_id: UUID = Depends(get_current_user), db: Session = Depends(get_db)):
    return app_service.list_own_apps(db, user_id)

@router.get("/connectable", response_model=List[ConnectableAppOut], summary="Apps I can grant consent to")
def connectable_apps(user_id: UUID = Depends(get_current_user), db: Session = Depends(get_db)):
    return app_service.list_connectable_apps(db, user_id)

@router.post("/{app_id}/keys", response_model=ApiKeyResponse, summary="Regenerate an app's API key")
def regenerate_key(app_id: UUID, user_id: UUID = Depends(get_current_user), db: Session = Depends(get_db)):
    return ApiKeyResponse(api_key=regenerate_api_key(db, app_id=app_id, owner_id=user_id))
