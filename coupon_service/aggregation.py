"""Coupon creation and per-amount statistics over a coupon store."""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from .bubble_client import BubbleAPIError
from .coupon_store import CouponStore, CouponStoreError
from .field_extractors.normalize import AmountInput, normalize_amount
from .models import CouponRecord, CreatedCoupon, NewCoupon, StatGroup, StatsTotals

LOGGER = logging.getLogger(__name__)


class CouponValidationError(ValueError):
    """Raised when a coupon cannot be created from the supplied fields."""


class CouponNotFoundError(LookupError):
    """Raised when no coupon matches the requested amount."""


def create_coupon(
    store: CouponStore,
    code: Optional[str],
    amount: AmountInput,
    raw_text: Optional[str] = "",
) -> CreatedCoupon:
    """Validate, normalise and persist one scanned coupon."""

    trimmed_code = code.strip() if isinstance(code, str) else ""
    if not trimmed_code:
        raise CouponValidationError("coupon_code_required")

    display = amount if isinstance(amount, str) else None
    normalized = normalize_amount(amount, display=display)
    record_id = store.create(
        NewCoupon(
            code=trimmed_code,
            amount_display=normalized.amount_display,
            amount_value=normalized.amount_value,
            raw_text=raw_text or "",
        )
    )
    # The record is already saved; a failed count must not turn into a failed create.
    amount_count: Optional[int]
    try:
        amount_count = store.count_where(normalized.amount_display)
    except (CouponStoreError, BubbleAPIError) as exc:
        LOGGER.error("Coupon %s saved but counting %s failed: %s", record_id, normalized.amount_display, exc)
        amount_count = None
    LOGGER.info("Coupon added: amount=%s count=%s", normalized.amount_display, amount_count)
    return CreatedCoupon(
        id=record_id,
        amount_display=normalized.amount_display,
        amount_value=normalized.amount_value,
        amount_count=amount_count,
    )


def _sort_key(group: StatGroup) -> Tuple[float, int, str]:
    value = group.amount_value or 0.0
    return (-value, -group.count, group.amount_display)


def compute_stats(records: Iterable[CouponRecord]) -> List[StatGroup]:
    """Group records by display string, largest amounts first."""

    counts: Dict[str, int] = {}
    values: Dict[str, Optional[float]] = {}
    for record in records:
        key = record.amount_display
        if key not in counts:
            counts[key] = 0
            values[key] = record.amount_value
        counts[key] += 1

    groups = [
        StatGroup(amount_display=key, amount_value=values[key], count=count)
        for key, count in counts.items()
    ]
    groups.sort(key=_sort_key)
    return groups


def get_stats(store: CouponStore) -> List[StatGroup]:
    return compute_stats(store.list_all())


def summarize(stats: Iterable[StatGroup]) -> StatsTotals:
    total_coupons = 0
    total_value = 0.0
    for group in stats:
        total_coupons += group.count
        total_value += (group.amount_value or 0.0) * group.count
    return StatsTotals(total_coupons=total_coupons, total_value=total_value)


def delete_one(store: CouponStore, amount_display: str) -> int:
    """Delete the newest coupon for ``amount_display`` and return how many remain."""

    deleted = store.delete_one_most_recent(amount_display)
    if deleted is None:
        raise CouponNotFoundError("coupon_not_found")
    remaining = store.count_where(amount_display)
    LOGGER.info("Deleted coupon %s for amount %s; remaining=%s", deleted.id, amount_display, remaining)
    return remaining


def clear_all(store: CouponStore) -> int:
    removed = store.delete_all()
    LOGGER.info("Cleared %s coupons", removed)
    return removed


__all__ = [
    "CouponNotFoundError",
    "CouponValidationError",
    "clear_all",
    "compute_stats",
    "create_coupon",
    "delete_one",
    "get_stats",
    "summarize",
]
