"""Tests for money helpers."""

from decimal import Decimal

import pytest

from voxpay.exceptions import ValidationError
from voxpay.utils import format_currency, require_positive, to_money


@pytest.mark.parametrize("value,expected", [
    ("10.50", Decimal("10.50")),
    ("1,000.5", Decimal("1000.50")),
    (25, Decimal("25.00")),
    (Decimal("7.100"), Decimal("7.10")),
])
def test_to_money(value, expected):
    assert to_money(value) == expected


@pytest.mark.parametrize("value", ["10.555", Decimal("0.001"), 3.14159, "abc", None, True, "NaN"])
def test_to_money_rejects_malformed(value):
    with pytest.raises(ValidationError):
        to_money(value)


def test_require_positive():
    assert require_positive("0.01") == Decimal("0.01")
    with pytest.raises(ValidationError):
        require_positive("0")


def test_format_currency():
    assert format_currency(Decimal("10000"), "NGN") == "₦10,000.00"
    assert format_currency(Decimal("5.5"), "USD") == "USD 5.50"
