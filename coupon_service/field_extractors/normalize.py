"""Amount normalisation shared by the creation path and statistics."""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from ..models import UNKNOWN_AMOUNT

CURRENCY_SIGN = "₹"

NUMBER_PATTERN = re.compile(r"(\d+(\.\d+)?)")
_STRIP_PATTERN = re.compile(r"[,\s]")

AmountInput = Union[str, int, float, None]


@dataclass(frozen=True)
class NormalizedAmount:
    amount_value: Optional[float]
    amount_display: str


def _positional(value: float) -> str:
    # repr() is the shortest round-tripping form; Decimal drops any exponent.
    return format(Decimal(repr(value)), "f")


def format_amount(value: float) -> str:
    """Render ``value`` as a canonical rupee display string."""

    if float(value).is_integer():
        return f"{CURRENCY_SIGN}{int(value)}"
    return f"{CURRENCY_SIGN}{_positional(float(value))}"


def _as_text(raw: AmountInput) -> str:
    if raw is None or isinstance(raw, bool):
        return ""
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, float):
        if not math.isfinite(raw):
            return ""
        return _positional(raw)
    return str(raw)


def parse_amount(raw: AmountInput) -> Optional[float]:
    """Return the first numeric run in ``raw`` or ``None`` when there is none."""

    cleaned = _STRIP_PATTERN.sub("", _as_text(raw))
    match = NUMBER_PATTERN.search(cleaned)
    if not match:
        return None
    try:
        value = float(match.group(1))
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def normalize_amount(raw: AmountInput, display: Optional[str] = None) -> NormalizedAmount:
    """Derive the numeric value and canonical display string for an amount.

    A non-blank ``display`` is kept verbatim (trimmed) as the display string.
    Otherwise the display is synthesised from the parsed value, or falls back
    to ``"Unknown"`` when no number could be recovered.
    """

    amount_value = parse_amount(raw)
    trimmed = display.strip() if isinstance(display, str) else ""
    if trimmed:
        amount_display = trimmed
    elif amount_value is not None:
        amount_display = format_amount(amount_value)
    else:
        amount_display = UNKNOWN_AMOUNT
    return NormalizedAmount(amount_value=amount_value, amount_display=amount_display)


__all__ = [
    "CURRENCY_SIGN",
    "NormalizedAmount",
    "format_amount",
    "normalize_amount",
    "parse_amount",
]
