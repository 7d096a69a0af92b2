"""Persistence backends for coupon records.

Two stores implement the same small interface used by the aggregation engine:
an in-process memory store (default; useful for local runs and tests) and a
store backed by the Bubble Data API ``Coupon`` type. Neither store applies
any business rules; validation and normalisation happen before ``create``.
"""
from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol

from . import bubble_client
from .models import CouponRecord, NewCoupon
from .settings import Settings

LOGGER = logging.getLogger(__name__)

COUPON_TYPE = "Coupon"
CREATED_FIELD = "Created Date"
PAGE_SIZE = 100


class CouponStoreError(RuntimeError):
    """Raised when a store cannot complete an operation."""


class CouponStore(Protocol):
    def create(self, coupon: NewCoupon) -> str:
        ...

    def count_where(self, amount_display: str) -> int:
        ...

    def list_all(self) -> List[CouponRecord]:
        ...

    def delete_one_most_recent(self, amount_display: str) -> Optional[CouponRecord]:
        ...

    def delete_all(self) -> int:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryCouponStore:
    """Thread-safe in-memory store keyed by record id."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._records: Dict[str, CouponRecord] = {}
        self._lock = threading.Lock()

    def create(self, coupon: NewCoupon) -> str:
        record_id = uuid.uuid4().hex
        record = CouponRecord(
            id=record_id,
            code=coupon.code,
            amount_display=coupon.amount_display,
            amount_value=coupon.amount_value,
            raw_text=coupon.raw_text,
            created_at=self._clock(),
        )
        with self._lock:
            self._records[record_id] = record
        return record_id

    def count_where(self, amount_display: str) -> int:
        with self._lock:
            return sum(1 for record in self._records.values() if record.amount_display == amount_display)

    def list_all(self) -> List[CouponRecord]:
        with self._lock:
            return list(self._records.values())

    def delete_one_most_recent(self, amount_display: str) -> Optional[CouponRecord]:
        with self._lock:
            target: Optional[CouponRecord] = None
            # Dict order is insertion order, so ">=" prefers the later insert on ties.
            for record in self._records.values():
                if record.amount_display != amount_display:
                    continue
                if target is None or record.created_at >= target.created_at:
                    target = record
            if target is None:
                return None
            del self._records[target.id]
            return target

    def delete_all(self) -> int:
        with self._lock:
            removed = len(self._records)
            self._records.clear()
        return removed


def _parse_created(value: Any) -> datetime:
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise CouponStoreError(f"invalid_created_date:{value}") from exc
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise CouponStoreError("missing_created_date")


def _optional_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def _record_from_row(row: Dict[str, Any]) -> CouponRecord:
    record_id = row.get("_id") or row.get("id")
    if not isinstance(record_id, str):
        raise CouponStoreError("missing_coupon_id")
    return CouponRecord(
        id=record_id,
        code=str(row.get("code") or ""),
        amount_display=str(row.get("amount") or ""),
        amount_value=_optional_number(row.get("amount_value")),
        raw_text=str(row.get("raw_text") or ""),
        created_at=_parse_created(row.get(CREATED_FIELD)),
    )


def _search_container(response: Dict[str, Any]) -> Dict[str, Any]:
    container = response.get("response")
    if isinstance(container, dict):
        return container
    return response


def _results(container: Dict[str, Any]) -> List[Dict[str, Any]]:
    batch = container.get("results")
    if not isinstance(batch, list):
        return []
    return [row for row in batch if isinstance(row, dict)]


def _remaining(container: Dict[str, Any]) -> int:
    remaining = container.get("remaining")
    if isinstance(remaining, int) and not isinstance(remaining, bool):
        return remaining
    return 0


class BubbleCouponStore:
    """Coupon store backed by the Bubble Data API."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    @staticmethod
    def _amount_constraint(amount_display: str) -> List[Dict[str, Any]]:
        return [{"key": "amount", "constraint_type": "equals", "value": amount_display}]

    def _search(self, **kwargs: Any) -> Dict[str, Any]:
        response = bubble_client.bubble_search(COUPON_TYPE, settings=self._settings, **kwargs)
        return _search_container(response)

    def _iter_rows(self, constraints: Optional[List[Dict[str, Any]]] = None) -> Iterator[Dict[str, Any]]:
        cursor = 0
        while True:
            container = self._search(constraints=constraints, limit=PAGE_SIZE, cursor=cursor)
            batch = _results(container)
            yield from batch
            if not batch or _remaining(container) <= 0:
                return
            cursor += len(batch)

    def create(self, coupon: NewCoupon) -> str:
        payload = {
            "code": coupon.code,
            "amount": coupon.amount_display,
            "amount_value": coupon.amount_value,
            "raw_text": coupon.raw_text,
        }
        response = bubble_client.bubble_create(COUPON_TYPE, payload, settings=self._settings)
        container = _search_container(response)
        created_id = container.get("id") or container.get("_id") or response.get("id")
        if not isinstance(created_id, str):
            raise CouponStoreError("missing_coupon_id")
        LOGGER.info("Created coupon %s for amount %s", created_id, coupon.amount_display)
        return created_id

    def count_where(self, amount_display: str) -> int:
        container = self._search(constraints=self._amount_constraint(amount_display), limit=1)
        count = container.get("count")
        returned = count if isinstance(count, int) and not isinstance(count, bool) else len(_results(container))
        return returned + _remaining(container)

    def list_all(self) -> List[CouponRecord]:
        return [_record_from_row(row) for row in self._iter_rows()]

    def delete_one_most_recent(self, amount_display: str) -> Optional[CouponRecord]:
        container = self._search(
            constraints=self._amount_constraint(amount_display),
            limit=1,
            sort_field=CREATED_FIELD,
            descending=True,
        )
        rows = _results(container)
        if not rows:
            return None
        record = _record_from_row(rows[0])
        bubble_client.bubble_delete(COUPON_TYPE, record.id, settings=self._settings)
        return record

    def delete_all(self) -> int:
        removed = 0
        while True:
            # Deleting shifts later pages forward, so always re-read the first page.
            rows = _results(self._search(limit=PAGE_SIZE))
            if not rows:
                return removed
            for row in rows:
                record = _record_from_row(row)
                bubble_client.bubble_delete(COUPON_TYPE, record.id, settings=self._settings)
                removed += 1


def build_store(settings: Settings) -> CouponStore:
    if settings.storage_backend == "bubble":
        return BubbleCouponStore(settings)
    if settings.storage_backend == "memory":
        return MemoryCouponStore()
    raise CouponStoreError(f"unknown_storage_backend:{settings.storage_backend}")


__all__ = [
    "BubbleCouponStore",
    "CouponStore",
    "CouponStoreError",
    "MemoryCouponStore",
    "build_store",
]
