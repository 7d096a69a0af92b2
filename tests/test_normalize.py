from __future__ import annotations

import pytest

from coupon_service.field_extractors.normalize import format_amount, normalize_amount, parse_amount


def test_blank_input_is_unknown() -> None:
    result = normalize_amount("", None)
    assert result.amount_value is None
    assert result.amount_display == "Unknown"


def test_none_input_is_unknown() -> None:
    assert normalize_amount(None).amount_display == "Unknown"


def test_commas_and_whitespace_are_stripped() -> None:
    result = normalize_amount("1,250.50")
    assert result.amount_value == 1250.5
    assert result.amount_display == "₹1250.5"


def test_supplied_display_takes_precedence() -> None:
    result = normalize_amount("₹450", display="  ₹450 ")
    assert result.amount_value == 450
    assert result.amount_display == "₹450"


def test_display_kept_even_without_number() -> None:
    result = normalize_amount("free", display="free")
    assert result.amount_value is None
    assert result.amount_display == "free"


def test_numeric_inputs() -> None:
    assert normalize_amount(300).amount_display == "₹300"
    assert normalize_amount(12.5).amount_display == "₹12.5"
    assert normalize_amount(0).amount_value == 0


def test_non_finite_numbers_are_rejected() -> None:
    assert parse_amount(float("inf")) is None
    assert parse_amount("9" * 400) is None


@pytest.mark.parametrize("value", [50, 450, 1500.75, 0.00001, 99999, "₹ 2,000", "Rs. 75.25"])
def test_display_round_trip_preserves_value(value) -> None:
    first = normalize_amount(value)
    second = normalize_amount(first.amount_display)
    assert first.amount_value is not None
    assert second.amount_value == first.amount_value


def test_format_amount_drops_integral_decimals() -> None:
    assert format_amount(450.0) == "₹450"
