"""Tests for cross-rate conversion and the degraded (unconverted) path."""
import logging

import pytest

from app.models.rates import RateMatrix
from app.services.rates.conversion import convert, convert_detailed


@pytest.mark.parametrize("amount", [0, 1, 12.345, 100000, -50])
def test_same_currency_is_exact_identity(amount, usd_matrix):
    assert convert(amount, "COP", "COP", usd_matrix) == amount
    assert convert(amount, "usd", " USD ", None) == amount


def test_empty_matrix_returns_amount_unchanged():
    assert convert(123.45, "USD", "COP", {}) == 123.45
    assert convert(123.45, "USD", "COP", None) == 123.45
    empty = RateMatrix("USD", {})
    assert convert(123.45, "USD", "COP", empty) == 123.45


def test_cross_rate_through_usd_pivot(usd_matrix):
    assert convert(100000, "COP", "USD", usd_matrix) == 25.0
    assert convert(25, "USD", "COP", usd_matrix) == 100000.0
    # neither side is the pivot
    assert convert(4000, "COP", "EUR", usd_matrix) == 0.9


def test_pivot_choice_does_not_change_result(usd_matrix):
    cop_pivot = RateMatrix("COP", {"COP": 1.0, "USD": 1 / 4000, "EUR": 0.9 / 4000})
    assert convert(50000, "COP", "USD", cop_pivot) == convert(50000, "COP", "USD", usd_matrix)
    assert convert(10, "EUR", "USD", cop_pivot) == convert(10, "EUR", "USD", usd_matrix)


def test_round_trip_within_two_decimals(usd_matrix):
    for amount in (1.0, 99.99, 12345.67):
        there = convert(amount, "USD", "EUR", usd_matrix)
        back = convert(there, "EUR", "USD", usd_matrix)
        assert back == pytest.approx(amount, abs=0.02)


def test_plain_mapping_is_accepted():
    assert convert(10, "USD", "COP", {"USD": 1, "COP": 4000}) == 40000.0


def test_missing_rate_is_flagged_and_logged(caplog):
    matrix = RateMatrix("COP", {"COP": 1.0, "EUR": 0.00023})
    with caplog.at_level(logging.WARNING, logger="app.conversion"):
        result = convert_detailed(10, "USD", "COP", matrix)
    assert result.amount == 10
    assert result.converted is False
    assert result.rate is None
    assert "USD" in caplog.text


@pytest.mark.parametrize("bad", [0, -1.5, float("nan"), float("inf"), "abc"])
def test_unusable_rate_never_divides(bad):
    result = convert_detailed(10, "XXX", "USD", {"XXX": bad, "USD": 1})
    assert result.amount == 10
    assert not result.converted


def test_detailed_reports_effective_rate(usd_matrix):
    result = convert_detailed(10, "USD", "COP", usd_matrix)
    assert result.converted
    assert result.rate == pytest.approx(4000.0)
    assert result.from_currency == "USD" and result.to_currency == "COP"
