"""Exchange rate source."""

from smartfi.services.rates.exchange_rate import ExchangeRateService, parse_usd_to_cop

__all__ = ["ExchangeRateService", "parse_usd_to_cop"]
