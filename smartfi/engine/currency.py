"""
Currency Conversion

Only COP and USD exist, so a single USD→COP rate is the whole rate table.
The rate is always passed in explicitly; there is no process-wide rate.
"""

from typing import Optional

from smartfi.models.ledger import Currency


def convert(
    value: float,
    from_currency: Currency,
    to_currency: Currency,
    usd_to_cop_rate: float,
) -> float:
    """
    Convert an amount between currencies.

    USD→COP multiplies by the rate, COP→USD divides by it.
    A non-positive rate makes COP→USD degrade to 0.0 rather than raise.
    """
    if from_currency == to_currency:
        return value
    if from_currency == Currency.USD and to_currency == Currency.COP:
        return value * usd_to_cop_rate
    if usd_to_cop_rate <= 0:
        return 0.0
    return value / usd_to_cop_rate


class CurrencyConverter:
    """
    A conversion context bound to one exchange rate.

    Hand one of these to code that converts many values against
    the same rate instead of threading the raw float through.
    """

    def __init__(self, usd_to_cop_rate: float):
        self._rate = usd_to_cop_rate

    @property
    def usd_to_cop_rate(self) -> float:
        return self._rate

    def convert(
        self,
        value: float,
        from_currency: Currency,
        to_currency: Currency,
    ) -> float:
        return convert(value, from_currency, to_currency, self._rate)

    def convert_at(
        self,
        value: float,
        from_currency: Currency,
        to_currency: Currency,
        recorded_rate: Optional[float],
    ) -> float:
        """
        Convert using a historically recorded rate.

        Transactions store the rate in effect when they were created.
        When none was recorded the raw amount is used unchanged.
        """
        if not recorded_rate:
            return value
        return convert(value, from_currency, to_currency, recorded_rate)

    def __repr__(self) -> str:
        return f"CurrencyConverter(usd_to_cop_rate={self._rate})"
