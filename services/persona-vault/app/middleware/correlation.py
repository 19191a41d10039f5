from __future__ import annotations
import logging
import time
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from app.core.correlation import set_correlation_id, get_correlation_id

log = logging.getLogger("access")

class CorrelationMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable):
        cid = set_correlation_id(request.headers.get("X-Request-ID"))
        request.state.correlation_id = cid

        start = time.perf_counter()
        response: Response = await call_next(request)
        duration_ms = int((time.perf_counter() - start) * 1000)
        log.info(
            "request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        response.headers["X-Request-ID"] = get_correlation_id(cid) or cid
        # Identity payloads must never be cached by intermediaries
        response.headers.setdefault("Cache-Control", "no-store")
        return response
