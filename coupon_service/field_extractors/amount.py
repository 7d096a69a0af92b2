"""Rule-based amount extraction for rupee-denominated coupons."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from .normalize import format_amount

MIN_CONTEXT_AMOUNT = 50
MAX_CONTEXT_AMOUNT = 100_000

_MARKER = r"(?:₹|(?<![A-Z])(?:RS\.?|INR)(?![A-Z]))"
_NUMBER = r"(?<!\d)(\d{2,5})(?!\d)"

# Marker and number must sit on the same line, joined only by spaces, tabs or colons.
CURRENCY_CONTEXT_PATTERN = re.compile(
    _MARKER + r"[ \t:]*" + _NUMBER + "|" + _NUMBER + r"[ \t:]*" + _MARKER,
    re.IGNORECASE,
)
CURRENCY_LINE_PATTERN = re.compile(r"RS|₹|INR", re.IGNORECASE)
LINE_NUMBER_PATTERN = re.compile(r"\b\d{2,5}\b")


@dataclass
class AmountCandidate:
    value: int
    raw_text: str
    phase: str


@dataclass
class AmountExtraction:
    best: Optional[AmountCandidate]
    candidates: List[AmountCandidate]

    @property
    def display(self) -> str:
        if self.best is None:
            return ""
        return format_amount(self.best.value)


def _currency_context_candidates(text: str) -> List[AmountCandidate]:
    candidates: List[AmountCandidate] = []
    for match in CURRENCY_CONTEXT_PATTERN.finditer(text):
        raw = match.group(1) or match.group(2)
        value = int(raw)
        if MIN_CONTEXT_AMOUNT <= value <= MAX_CONTEXT_AMOUNT:
            candidates.append(AmountCandidate(value=value, raw_text=match.group(0), phase="currency_context"))
    return candidates


def _currency_line_candidates(text: str) -> List[AmountCandidate]:
    candidates: List[AmountCandidate] = []
    for line in text.splitlines():
        if not CURRENCY_LINE_PATTERN.search(line):
            continue
        for match in LINE_NUMBER_PATTERN.finditer(line):
            candidates.append(AmountCandidate(value=int(match.group(0)), raw_text=line.strip(), phase="currency_line"))
    return candidates


AMOUNT_STRATEGIES: Sequence[Callable[[str], List[AmountCandidate]]] = (
    _currency_context_candidates,
    _currency_line_candidates,
)


def extract_amount(text: Optional[str]) -> AmountExtraction:
    """Extract the coupon amount from recognised text.

    Strategies run in order and the first one that yields any candidate wins.
    Within a strategy the earliest candidate in document order is selected,
    never the largest.
    """

    text = text or ""
    for strategy in AMOUNT_STRATEGIES:
        candidates = strategy(text)
        if candidates:
            return AmountExtraction(best=candidates[0], candidates=candidates)
    return AmountExtraction(best=None, candidates=[])


__all__ = ["AmountCandidate", "AmountExtraction", "extract_amount"]
