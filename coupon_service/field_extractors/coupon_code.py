"""Coupon code extraction helpers."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Pattern, Sequence, Tuple

CONTEXT_CODE_PATTERN = re.compile(r"(?:CODE|COUPON|PROMO|VOUCHER)[^A-Z0-9]*([A-Z0-9]{5,12})")
STANDALONE_CODE_PATTERN = re.compile(r"\b([A-Z0-9]{6,12})\b")

CODE_STRATEGIES: Sequence[Tuple[str, Pattern[str]]] = (
    ("context_keyword", CONTEXT_CODE_PATTERN),
    ("standalone_token", STANDALONE_CODE_PATTERN),
)


@dataclass
class CodeExtraction:
    value: str
    strategy: Optional[str]


def extract_code(text: Optional[str]) -> CodeExtraction:
    normalized = (text or "").upper()
    for name, pattern in CODE_STRATEGIES:
        match = pattern.search(normalized)
        if match:
            return CodeExtraction(value=match.group(1), strategy=name)
    return CodeExtraction(value="", strategy=None)


__all__ = ["CodeExtraction", "extract_code"]
