from fastapi import APIRouter
from app.core.config import settings

router = APIRouter(tags=["health"])

@router.get("/health", summary="Liveness")
def health():
    return {"status": "ok", "service": settings.APP_NAME}
