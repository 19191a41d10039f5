from __future__ import annotations
import time
from typing import Any, Dict, Optional
from uuid import UUID
import httpx
import jwt
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from app.core.config import settings
from app.db.deps import get_db
from app.repositories import users as user_repo

DEV_USER_ID = UUID("00000000-0000-0000-0000-000000000001")

_KID_CACHE: Dict[str, Dict[str, Any]] = {}
_KID_TTL = 300  # 5 minutes

# Simple in-process caches (per container)
_OIDC_CONF: Optional[Dict[str, Any]] = None
_OIDC_CONF_EXP: float = 0.0

async def _get_oidc_conf() -> Dict[str, Any]:
    global _OIDC_CONF, _OIDC_CONF_EXP
    now = time.time()
    if _OIDC_CONF and now < _OIDC_CONF_EXP:
        return _OIDC_CONF
    url = settings.OIDC_WELLKNOWN_URL or f"{settings.OIDC_ISSUER.rstrip('/')}/.well-known/openid-configuration"
    async with httpx.AsyncClient(timeout=5.0) as client:
        r = await client.get(url)
        if r.status_code != 200:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="oidc_config_unavailable")
        conf = r.json()
    _OIDC_CONF = conf
    _OIDC_CONF_EXP = now + 300
    return conf

async def _get_signing_key(token: str):
    hdr = jwt.get_unverified_header(token)
    kid = hdr.get("kid")

    now = time.time()
    if kid and kid in _KID_CACHE and _KID_CACHE[kid]["exp"] > now:
        return _KID_CACHE[kid]["key"]

    conf = await _get_oidc_conf()
    jwks_uri = conf.get("jwks_uri")
    if not jwks_uri:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="jwks_unavailable")

    key = jwt.PyJWKClient(jwks_uri).get_signing_key_from_jwt(token).key
    if kid:
        _KID_CACHE[kid] = {"key": key, "exp": now + _KID_TTL}
    return key

def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None

async def decode_session_token(token: str) -> Dict[str, Any]:
    """Verify a user session token and return its claims.

    HS256 against SESSION_JWT_SECRET when configured, otherwise RS256 against
    the OIDC provider's JWKS.
    """
    try:
        if settings.SESSION_JWT_SECRET:
            return jwt.decode(
                token,
                key=settings.SESSION_JWT_SECRET,
                algorithms=["HS256"],
                audience=settings.OIDC_AUDIENCE,
                options={"require": ["exp", "sub"]},
            )
        key = await _get_signing_key(token)
        return jwt.decode(
            token,
            key=key,
            algorithms=["RS256"],
            audience=settings.OIDC_AUDIENCE,
            issuer=settings.OIDC_ISSUER,
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token_expired")
    except jwt.InvalidAudienceError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_audience")
    except jwt.InvalidIssuerError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_issuer")
    except jwt.PyJWTError:
        # covers signature errors, decode errors, missing claims, etc.
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
    except httpx.HTTPError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="jwks_fetch_failed")

async def user_id_from_token(token: str, db: Session) -> UUID:
    claims = await decode_session_token(token)
    try:
        user_id = UUID(str(claims["sub"]))
    except (KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
    user_repo.ensure(db, user_id=user_id, email=claims.get("email"), display_name=claims.get("name"))
    return user_id

async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> UUID:
    """Id of the signed-in user; 401 without a valid session token."""
    if settings.SKIP_JWT:
        user_repo.ensure(db, user_id=DEV_USER_ID, email=None, display_name="dev-bypass")
        return DEV_USER_ID

    token = bearer_token(authorization)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="authentication_required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await user_id_from_token(token, db)
