"""Field extraction helpers for structured coupon data."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .amount import extract_amount
from .coupon_code import extract_code
from .normalize import normalize_amount


@dataclass(frozen=True)
class ExtractedFields:
    code: str
    amount_display: str


def extract_fields(text: Optional[str]) -> ExtractedFields:
    """Parse recognised coupon text into a candidate code and amount.

    Misses are reported as empty strings; this never raises.
    """

    return ExtractedFields(
        code=extract_code(text).value,
        amount_display=extract_amount(text).display,
    )


__all__ = ["ExtractedFields", "extract_amount", "extract_code", "extract_fields", "normalize_amount"]
