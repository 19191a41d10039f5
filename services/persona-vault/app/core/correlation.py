from __future__ import annotations
import uuid
from typing import Optional
from contextvars import ContextVar

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

def set_correlation_id(value: Optional[str]) -> str:
    # Inbound ids are echoed as-is; anything empty gets a fresh uuid4
    cid = (value or "").strip() or str(uuid.uuid4())
    _correlation_id.set(cid)
    return cid

def get_correlation_id(default: Optional[str] = None) -> Optional[str]:
    return _correlation_id.get() or default