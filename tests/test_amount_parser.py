"""Tests for amount parsing."""

import pytest
from decimal import Decimal
from fintrack.utils.amount_parser import is_amount, looks_european, parse_amount


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("123.45", Decimal("123.45")),
        ("-123.45", Decimal("-123.45")),
        ("$123.45", Decimal("123.45")),
        ("-$1,234.56", Decimal("-1234.56")),
        ("(123.45)", Decimal("-123.45")),
        ("  42 ", Decimal("42")),
        ("USD 10.00", Decimal("10.00")),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.234,56", Decimal("1234.56")),
        ("-12,50", Decimal("-12.50")),
        ("€ 3,00", Decimal("3.00")),
    ],
)
def test_parse_amount_decimal_comma(raw, expected):
    assert parse_amount(raw, decimal_separator=",") == expected


@pytest.mark.parametrize("raw", ["", "   ", "abc", "1.2.3", "NaN", "Infinity"])
def test_parse_amount_invalid(raw):
    with pytest.raises(ValueError):
        parse_amount(raw)


def test_is_amount():
    assert is_amount("-4.50")
    assert not is_amount("Coffee")


def test_looks_european():
    assert looks_european("12,50")
    assert looks_european("1.234,56")
    assert looks_european("€-3,5")
    assert not looks_european("1,234.56")
    assert not looks_european("1,234")
    assert not looks_european("12.50")
