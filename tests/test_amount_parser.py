"""Tests for amount parsing."""

import pytest
from decimal import Decimal

from ledgerkit.utils.amount_parser import parse_amount


@pytest.mark.parametrize(
    "text, expected",
    [
        ("1234.56", Decimal("1234.56")),
        ("-1234.56", Decimal("-1234.56")),
        ("1,234.56", Decimal("1234.56")),
        ("$1,234.56", Decimal("1234.56")),
        ("USD 1234.56", Decimal("1234.56")),
        ("1234.56 KES", Decimal("1234.56")),
        ("(42.00)", Decimal("-42.00")),
        ("23.50 DR", Decimal("-23.50")),
        ("23.50 CR", Decimal("23.50")),
        ("  7 ", Decimal("7")),
    ],
)
def test_parse_amount(text, expected):
    """Test the formats banks export."""
    assert parse_amount(text) == expected


@pytest.mark.parametrize("text", ["", "   ", "abc", "12.3.4", "NaN"])
def test_parse_amount_invalid(text):
    """Test unparseable amounts raise ValueError."""
    with pytest.raises(ValueError):
        parse_amount(text)
