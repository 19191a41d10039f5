from __future__ import annotations
from typing import Optional
from redis.asyncio import Redis, from_url
from app.core.config import settings

_client: Optional[Redis] = None

def get_redis() -> Redis:
    """Process-wide async client for the idempotency store, created lazily."""
    global _client
    if _client is None:
        _client = from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,  # entries are JSON strings
            socket_connect_timeout=2,
            socket_timeout=2,
        )
    return _client

async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
