from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routers import (
    apps,
    consent_requests,
    consents_revoke,
    explore,
    health,
    identities,
    identity_consents,
    user_consents,
)
from app.cache.redis_client import close_redis
from app.core.config import settings
from app.core.errors import (
    ServiceError,
    http_exception_handler,
    service_error_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from app.core.logging import setup_logging
from app.core.metrics import MetricsMiddleware, router as metrics_router
from app.db.init_db import init_db
from app.middleware.correlation import CorrelationMiddleware


app = FastAPI(title=settings.APP_NAME, version="0.1.0")
setup_logging()

@app.on_event("startup")
async def on_startup():
    if settings.INIT_DB_ON_STARTUP:
        init_db()

@app.on_event("shutdown")
async def on_shutdown():
    await close_redis()

# Middleware: correlation id propagation (adds X-Request-ID)
app.add_middleware(CorrelationMiddleware)
# Middleware: latency histogram keyed by route template
app.add_middleware(MetricsMiddleware, exclude_routes=settings.METRICS_EXCLUDE_ROUTES)

# Exception handlers (uniform error JSON)
app.add_exception_handler(ServiceError, service_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# Routers
app.include_router(health.router)
app.include_router(identities.router)
app.include_router(identity_consents.router)
app.include_router(consent_requests.router)
app.include_router(user_consents.router)
app.include_router(consents_revoke.router)
app.include_router(apps.router)
app.include_router(explore.router)

# Conditionally expose /metrics
if settings.METRICS_ENABLED:
    app.include_router(metrics_router)

@app.get("/")
def root():
    return {"service": settings.APP_NAME, "env": settings.APP_ENV}
