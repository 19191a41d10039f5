from __future__ import annotations

import time
from typing import Iterable

from fastapi import APIRouter, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Business counters
consent_requests_created_total = Counter(
    "consent_requests_created_total",
    "Total number of consent requests created"
)
consent_requests_decided_total = Counter(
    "consent_requests_decided_total",
    "Total number of consent requests approved or rejected",
    labelnames=("decision",),
)
consents_granted_total = Counter(
    "consents_granted_total",
    "Total number of consent rows created or refreshed"
)
consents_revoked_total = Counter(
    "consents_revoked_total",
    "Total number of consents successfully revoked"
)
access_decisions_total = Counter(
    "access_decisions_total",
    "Identity access decisions by outcome kind",
    labelnames=("kind",),
)
app_auth_failures_total = Counter(
    "app_auth_failures_total",
    "Failed app API-key authentications"
)

# Request latency histogram (seconds), labeled by route template and status code
request_latency_seconds = Histogram(
    "request_latency_seconds",
    "HTTP request latency in seconds",
    labelnames=("route", "status_code"),
)

def inc_consent_requests_created() -> None:
    consent_requests_created_total.inc()

def inc_consent_requests_decided(decision: str) -> None:
    consent_requests_decided_total.labels(decision=decision).inc()

def inc_consents_granted(count: int = 1) -> None:
    consents_granted_total.inc(count)

def inc_consents_revoked() -> None:
    consents_revoked_total.inc()

def inc_access_decision(kind: str) -> None:
    access_decisions_total.labels(kind=kind).inc()

def inc_app_auth_failures() -> None:
    app_auth_failures_total.inc()

class MetricsMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, exclude_routes: Iterable[str] | None = None):
        super().__init__(app)
        self.exclude_routes = set(exclude_routes or [])

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.exclude_routes:
            return await call_next(request)

        start = time.perf_counter()
        status_code = "500"
        try:
            response: Response = await call_next(request)
            status_code = str(response.status_code)
            return response
        finally:
            duration = time.perf_counter() - start
            route_tmpl = self._resolve_route_template(request)
            request_latency_seconds.labels(route=route_tmpl, status_code=status_code).observe(duration)

    @staticmethod
    def _resolve_route_template(request: Request) -> str:
        # Route template keeps label cardinality low; raw path only for unmatched requests
        route = request.scope.get("route")
        if route and getattr(route, "path", None):
            return route.path
        return request.url.path

router = APIRouter()

@router.get("/metrics", include_in_schema=False)
async def metrics_endpoint():
    data = generate_latest()
    return PlainTextResponse(content=data.decode("utf-8"), media_type=CONTENT_TYPE_LATEST)
