"""Record types shared by the coupon stores and the aggregation engine."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

UNKNOWN_AMOUNT = "Unknown"


@dataclass(frozen=True)
class NewCoupon:
    """Validated payload handed to a store for persistence."""

    code: str
    amount_display: str
    amount_value: Optional[float]
    raw_text: str = ""


@dataclass(frozen=True)
class CouponRecord:
    id: str
    code: str
    amount_display: str
    amount_value: Optional[float]
    raw_text: str
    created_at: datetime


@dataclass(frozen=True)
class StatGroup:
    amount_display: str
    amount_value: Optional[float]
    count: int


@dataclass(frozen=True)
class StatsTotals:
    total_coupons: int
    total_value: float


@dataclass(frozen=True)
class CreatedCoupon:
    id: str
    amount_display: str
    amount_value: Optional[float]
    amount_count: Optional[int]


__all__ = [
    "CouponRecord",
    "CreatedCoupon",
    "NewCoupon",
    "StatGroup",
    "StatsTotals",
    "UNKNOWN_AMOUNT",
]
