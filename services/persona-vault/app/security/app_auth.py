from __future__ import annotations
from typing import Optional
from uuid import UUID
from fastapi import Depends, Header
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from app.core.config import settings
from app.core.errors import Unauthenticated
from app.db.deps import get_db
from app.models.app import App
from app.security.jwt import DEV_USER_ID, bearer_token, user_id_from_token
from app.services.app_keys import authenticate_app
from app.services.visibility import RequesterContext

def _parse_app_id(raw: str) -> UUID:
    try:
        return UUID(raw.strip())
    except ValueError:
        raise Unauthenticated("invalid_app_credentials")

def get_authenticated_app(
    x_app_id: Optional[str] = Header(None, alias="X-App-ID"),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> App:
    """Third-party app identified by X-App-ID plus its API key as a bearer token.

    Must stay a plain ``def``: bcrypt verification blocks.
    """
    key = bearer_token(authorization)
    if not x_app_id or key is None:
        raise Unauthenticated("invalid_app_credentials", "App ID and API key are required.")
    return authenticate_app(db, app_id=_parse_app_id(x_app_id), presented_key=key)

async def get_requester_context(
    x_app_id: Optional[str] = Header(None, alias="X-App-ID"),
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> RequesterContext:
    """Who is asking: an app (X-App-ID present), a signed-in user, or nobody."""
    if x_app_id:
        app = await run_in_threadpool(get_authenticated_app, x_app_id=x_app_id, authorization=authorization, db=db)
        return RequesterContext.for_app(app.id)
    token = bearer_token(authorization)
    if token is not None:
        return RequesterContext.for_user(await user_id_from_token(token, db))
    if settings.SKIP_JWT:
        return RequesterContext.for_user(DEV_USER_ID)
    return RequesterContext.anonymous()
