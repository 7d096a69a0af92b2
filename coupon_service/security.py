"""Security helpers for admin authentication and idempotency tracking."""
from __future__ import annotations

import hmac
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from fastapi import HTTPException, status

from .settings import Settings, get_settings


@dataclass(frozen=True)
class IdempotentResponse:
    coupon_id: str
    payload: Dict[str, object]


class IdempotencyStore:
    """In-memory TTL cache for Idempotency-Key tracking."""

    def __init__(self, ttl_seconds: int = 60 * 10) -> None:
        self._ttl = ttl_seconds
        self._store: Dict[str, Tuple[float, IdempotentResponse]] = {}
        self._lock = threading.Lock()

    def get(self, key: Optional[str]) -> Optional[IdempotentResponse]:
        if not key:
            return None
        now = time.time()
        with self._lock:
            record = self._store.get(key)
            if not record:
                return None
            expires_at, response = record
            if expires_at < now:
                self._store.pop(key, None)
                return None
            return response

    def remember(self, key: Optional[str], response: IdempotentResponse) -> None:
        if not key or self._ttl <= 0:
            return
        expires_at = time.time() + self._ttl
        with self._lock:
            self._store[key] = (expires_at, response)


def _extract_bearer(token_header: Optional[str]) -> Optional[str]:
    if not token_header:
        return None
    parts = token_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def verify_admin_token(token_header: Optional[str], settings: Optional[Settings] = None) -> None:
    """Validate the Authorization header for destructive endpoints.

    Nothing is enforced when no ``ADMIN_TOKEN`` is configured.
    """

    settings = settings or get_settings()
    if not settings.admin_token:
        return
    token = _extract_bearer(token_header)
    if not token or not hmac.compare_digest(token.encode(), settings.admin_token.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_admin_token")


__all__ = [
    "IdempotencyStore",
    "IdempotentResponse",
    "verify_admin_token",
]
