from __future__ import annotations
import logging
from typing import Any, Dict, Optional
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi import status as http
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.correlation import get_correlation_id

log = logging.getLogger("errors")

# Map our short string codes -> human messages
_MESSAGES = {
    "invalid_token": "The access token is invalid.",
    "token_expired": "The access token has expired.",
    "invalid_audience": "The token audience is not accepted.",
    "invalid_issuer": "The token issuer is not accepted.",
    "authentication_required": "Authentication is required to access this resource.",
    "invalid_app_credentials": "Invalid App ID or API key.",
    "app_disabled": "The app is disabled.",
    "forbidden": "You do not have permission to perform this action.",
    "not_found": "The requested resource was not found.",
    "consent_required": "An active consent with the required scope is needed.",
    "already_decided": "The consent request has already been decided.",
    "duplicate_pending_request": "A pending consent request already exists.",
    "app_name_taken": "App name already taken.",
    "idempotency_conflict": "The Idempotency-Key conflicts with a prior request.",
    "conflict": "The request conflicts with the current state of the resource.",
    "validation_error": "One or more fields failed validation.",
}


class ServiceError(Exception):
    """Base for errors raised by the service layer.

    Carries a stable machine-readable ``code`` plus the HTTP status the API
    layer renders it with. ``extra`` is merged into the error envelope so
    clients can branch on it (e.g. ``request_id`` of a duplicate request).
    """

    http_status: int = http.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "server_error"

    def __init__(self, code: Optional[str] = None, message: Optional[str] = None, **extra: Any) -> None:
        self.code = code or self.default_code
        self.message = message or _MESSAGES.get(self.code, self.code)
        self.extra = extra
        super().__init__(self.message)


class ValidationFailed(ServiceError):
    http_status = http.HTTP_400_BAD_REQUEST
    default_code = "validation_error"


class Unauthenticated(ServiceError):
    http_status = http.HTTP_401_UNAUTHORIZED
    default_code = "authentication_required"


class Forbidden(ServiceError):
    http_status = http.HTTP_403_FORBIDDEN
    default_code = "forbidden"


class NotFound(ServiceError):
    http_status = http.HTTP_404_NOT_FOUND
    default_code = "not_found"


class Conflict(ServiceError):
    http_status = http.HTTP_409_CONFLICT
    default_code = "conflict"


def _normalize_detail(detail: Any) -> str:
    if isinstance(detail, dict) and "detail" in detail:
        return str(detail["detail"])
    return str(detail)

def _build_error(code: str, status_code: int, message: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "code": code,
        "http_status": status_code,
        "message": message or _MESSAGES.get(code, code),
        "correlation_id": get_correlation_id(),
    }
    body.update(extra)
    return {"error": body}

async def service_error_handler(request: Request, exc: ServiceError):
    payload = _build_error(exc.code, exc.http_status, exc.message, **exc.extra)
    return JSONResponse(status_code=exc.http_status, content=payload)

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = _normalize_detail(exc.detail)
    payload = _build_error(code, exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    payload = _build_error(
        "validation_error",
        http.HTTP_422_UNPROCESSABLE_ENTITY,
        details=jsonable_encoder(exc.errors()),
    )
    return JSONResponse(status_code=http.HTTP_422_UNPROCESSABLE_ENTITY, content=payload)

async def unhandled_exception_handler(request: Request, exc: Exception):
    log.error("unhandled_exception path=%s", request.url.path, exc_info=exc)
    payload = _build_error("server_error", http.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred.")
    return JSONResponse(status_code=http.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
