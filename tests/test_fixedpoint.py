"""Tests for fixed-point conversions."""

from decimal import Decimal

import pytest

from defi_portfolio_tracker.core.errors import LedgerError, LedgerOverflowError
from defi_portfolio_tracker.core.fixedpoint import (
    UINT256_MAX,
    check_uint256,
    fixed_point_product,
    format_units,
    parse_units,
    ratio_percent,
    to_decimal,
    total,
    truncate_units,
)


def test_format_units():
    """Test exact formatting of raw amounts."""
    assert format_units(1234567890123456789, 18) == "1.234567890123456789"
    assert format_units(1500000, 6) == "1.5"
    assert format_units(10**18, 18) == "1"
    assert format_units(1, 18) == "0.000000000000000001"
    assert format_units(0, 6) == "0"
    assert format_units(-2500000, 6) == "-2.5"
    assert format_units("42", 0) == "42"


def test_format_units_keeps_uint256_precision():
    """Test that the largest uint256 survives formatting without rounding."""
    formatted = format_units(UINT256_MAX, 18)
    whole, fraction = formatted.split(".")
    assert int(whole + fraction) == UINT256_MAX


def test_format_units_rejects_negative_decimals():
    with pytest.raises(ValueError):
        format_units(1, -1)


def test_parse_units():
    """Test conversion of human-readable amounts to raw units."""
    assert parse_units("1.5", 18) == 1_500_000_000_000_000_000
    assert parse_units("2000", 18) == 2000 * 10**18
    assert parse_units(Decimal("0.000001"), 6) == 1
    assert parse_units(3, 6) == 3_000_000
    assert parse_units("1e-6", 6) == 1
    assert parse_units("-1.25", 2) == -125


@pytest.mark.parametrize("value", ["abc", "", "NaN", "Infinity", True])
def test_parse_units_rejects_invalid(value):
    with pytest.raises(ValueError):
        parse_units(value, 18)


def test_parse_units_rejects_excess_precision():
    """Test that digits beyond the token decimals are an error, not rounded."""
    with pytest.raises(ValueError, match="decimal places"):
        parse_units("1.0000001", 6)


@pytest.mark.parametrize(
    ("raw", "decimals", "formatted"),
    [
        (123456789, 0, "123456789"),
        (123456789, 6, "123.456789"),
        (123456789, 8, "1.23456789"),
        (100000000, 8, "1"),
        (5, 8, "0.00000005"),
        (123456789, 18, "0.000000000123456789"),
        (123456789012345678901234567890, 18, "123456789012.34567890123456789"),
    ],
)
def test_parse_format_inverse(raw, decimals, formatted):
    """Test exact formatting per token decimals and that parse_units undoes it."""
    assert format_units(raw, decimals) == formatted
    assert parse_units(formatted, decimals) == raw


def test_truncate_units():
    """Test that excess digits are dropped toward zero."""
    assert truncate_units(Decimal("1.2345678"), 6) == 1234567
    assert truncate_units(Decimal("0.0000009"), 6) == 0
    assert truncate_units(Decimal("5"), 18) == 5 * 10**18


def test_fixed_point_product():
    """Test exact valuation of amount x 18-decimal price."""
    value = fixed_point_product(10**18, 18, 2000 * 10**18)
    assert value == Decimal("2000")

    value = fixed_point_product(1_500_000, 6, 999_990_000_000_000_000)
    assert value == Decimal("1.499985")


def test_to_decimal_and_total():
    values = [to_decimal(1, 18), to_decimal(2, 18), to_decimal(10**18, 18)]
    assert total(values) == Decimal("1.000000000000000003")
    assert total([]) == Decimal(0)


def test_ratio_percent():
    assert ratio_percent(1, 4) == Decimal(25)
    assert ratio_percent(5, 0) is None


def test_check_uint256():
    """Test range validation for ledger values."""
    assert check_uint256(0, "amount") == 0
    assert check_uint256(UINT256_MAX, "amount") == UINT256_MAX

    with pytest.raises(LedgerOverflowError):
        check_uint256(UINT256_MAX + 1, "amount")
    with pytest.raises(LedgerOverflowError):
        check_uint256(-1, "entry_price")


def test_overflow_error_is_ledger_error():
    """Test that overflow is reported as caller misuse."""
    assert issubclass(LedgerOverflowError, LedgerError)
    assert issubclass(LedgerOverflowError, OverflowError)
