"""Tests for the currency converter."""

import pytest

from smartfi.engine.currency import CurrencyConverter, convert
from smartfi.models.ledger import Currency


class TestConvert:

    def test_same_currency_is_identity(self):
        assert convert(123.45, Currency.COP, Currency.COP, 4000.0) == 123.45
        assert convert(123.45, Currency.USD, Currency.USD, 0.0) == 123.45

    def test_usd_to_cop_multiplies(self):
        assert convert(10.0, Currency.USD, Currency.COP, 4000.0) == 40_000.0

    def test_cop_to_usd_divides(self):
        assert convert(40_000.0, Currency.COP, Currency.USD, 4000.0) == 10.0

    def test_round_trip(self):
        rate = 3917.35
        cop = convert(250.75, Currency.USD, Currency.COP, rate)
        assert convert(cop, Currency.COP, Currency.USD, rate) == pytest.approx(250.75)

    @pytest.mark.parametrize("rate", [0.0, -1.0])
    def test_non_positive_rate_degrades_to_zero(self, rate):
        assert convert(40_000.0, Currency.COP, Currency.USD, rate) == 0.0


class TestCurrencyConverter:

    def test_binds_rate(self):
        converter = CurrencyConverter(4000.0)
        assert converter.usd_to_cop_rate == 4000.0
        assert converter.convert(2.0, Currency.USD, Currency.COP) == 8000.0

    def test_convert_at_uses_recorded_rate(self):
        converter = CurrencyConverter(4000.0)
        assert converter.convert_at(100.0, Currency.USD, Currency.COP, 3500.0) == 350_000.0

    @pytest.mark.parametrize("recorded", [None, 0.0])
    def test_convert_at_without_rate_returns_raw_amount(self, recorded):
        converter = CurrencyConverter(4000.0)
        assert converter.convert_at(100.0, Currency.USD, Currency.COP, recorded) == 100.0
