from __future__ import annotations
import hashlib
import json
from typing import Any

def canonical_sha256(data: Any) -> str:
    """SHA-256 of ``data`` as canonical JSON.

    Key order and whitespace do not affect the digest, so a retried request
    body hashes the same as the original.
    """
    s = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str, ensure_ascii=False)
    return hashlib.sha256(s.encode("utf-8")).hexdigest()
