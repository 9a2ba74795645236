"""Tests for rounding and display formatting."""
import pytest

from app.services.money import currency_format, format_currency, round2


def test_round2_is_half_up():
    assert round2(2.675) == 2.68
    assert round2(1.005) == 1.01
    assert round2(-1.005) == -1.01
    assert round2(12.5) == 12.5


@pytest.mark.parametrize(
    "amount,currency,expected",
    [
        (1234567.8, "COP", "$ 1.234.568"),
        (100000, "COP", "$ 100.000"),
        (0, "COP", "$ 0"),
        (25, "USD", "$25"),
        (12.5, "USD", "$12.5"),
        (1234.56, "USD", "$1,234.56"),
        (1234.56, "EUR", "1.234,56 €"),
        (0.9, "EUR", "0,9 €"),
        (1500, "MXN", "$1,500"),
    ],
)
def test_format_currency(amount, currency, expected):
    assert format_currency(amount, currency) == expected


def test_negative_values_carry_leading_minus():
    assert format_currency(-1500, "COP") == "-$ 1.500"
    assert format_currency(-12.5, "USD") == "-$12.5"


def test_negative_that_rounds_to_zero_has_no_sign():
    assert format_currency(-0.001, "USD") == "$0"


def test_unknown_currency_uses_first_configured_format():
    assert currency_format("JPY").code == "COP"
    assert format_currency(1000, "JPY") == "$ 1.000"


def test_symbol_separator_is_a_plain_space():
    assert format_currency(1234567.8, "COP") == "$ 1.234.568"
    assert "\u00a0" not in format_currency(12.5, "EUR")
