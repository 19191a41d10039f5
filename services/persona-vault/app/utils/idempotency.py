from __future__ import annotations
import json
import logging
from typing import Any, Dict, Optional
from redis.exceptions import RedisError
from app.cache.redis_client import get_redis

log = logging.getLogger("idempotency")

IDEMPOTENCY_TTL_SECONDS = 24 * 60 * 60  # 24h
_LOCK_TTL_SECONDS = 60                  # short lock while the first request runs

# Redis being down degrades to non-idempotent creation, never to a failed request
STORE_ERRORS = (RedisError, OSError)

def _key(principal: str, idem_key: str) -> str:
    return f"idem:{principal}:{idem_key}"

async def read_entry(principal: str, idem_key: str) -> Optional[Dict[str, Any]]:
    raw = await get_redis().get(_key(principal, idem_key))
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        log.warning("idempotency_entry_corrupt key=%s", idem_key)
        return None

async def try_lock(principal: str, idem_key: str, body_sha: str) -> bool:
    value = json.dumps({"state": "LOCK", "body_sha256": body_sha})
    return bool(await get_redis().set(_key(principal, idem_key), value, nx=True, ex=_LOCK_TTL_SECONDS))

async def store_final(principal: str, idem_key: str, body_sha: str,
                      response_dict: Dict[str, Any], status_code: int) -> None:
    value = json.dumps({
        "state": "FINAL",
        "body_sha256": body_sha,
        "response": response_dict,
        "status_code": status_code,
    }, default=str)
    await get_redis().set(_key(principal, idem_key), value, ex=IDEMPOTENCY_TTL_SECONDS)
