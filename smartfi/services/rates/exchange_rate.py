"""
USD→COP Exchange Rate Source

Fetches the current rate from a public JSON endpoint
(open.er-api.com by default).

DESIGN DECISION: A failed fetch returns None and is logged. The caller
keeps the rate it already has and tries again on the next refresh
interval; there is no retry loop here.
"""

import math
from typing import Optional

import httpx
import structlog

from smartfi.config import get_settings
from smartfi.config.settings import ExchangeRateSettings

logger = structlog.get_logger(__name__)


class ExchangeRateService:
    """
    Thin async client for the rate endpoint.

    The httpx client can be injected (tests pass one built on
    httpx.MockTransport); otherwise one is created per fetch.
    """

    def __init__(
        self,
        settings: Optional[ExchangeRateSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or get_settings().exchange_rate
        self._client = client

    @property
    def settings(self) -> ExchangeRateSettings:
        return self._settings

    async def fetch_usd_to_cop(self) -> Optional[float]:
        """
        Fetch COP per USD.

        Returns:
            The rate rounded to 2 decimals, or None when the request fails
            or the payload isn't a successful response with a positive COP rate
        """
        try:
            payload = await self._get_json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("exchange_rate_fetch_failed", url=self._settings.api_url, error=str(e))
            return None

        return parse_usd_to_cop(payload)

    async def _get_json(self) -> dict:
        if self._client is not None:
            response = await self._client.get(self._settings.api_url)
        else:
            async with httpx.AsyncClient(timeout=self._settings.timeout_seconds) as client:
                response = await client.get(self._settings.api_url)
        response.raise_for_status()
        return response.json()


def parse_usd_to_cop(payload) -> Optional[float]:
    """Pull the COP rate out of an er-api style payload."""
    if not isinstance(payload, dict) or payload.get("result") != "success":
        logger.warning("exchange_rate_unsuccessful_response", result=_result_of(payload))
        return None

    rates = payload.get("rates")
    raw = rates.get("COP") if isinstance(rates, dict) else None
    try:
        rate = float(raw)
    except (TypeError, ValueError):
        logger.warning("exchange_rate_missing_cop", value=raw)
        return None

    if not math.isfinite(rate) or rate <= 0:
        logger.warning("exchange_rate_not_positive", value=rate)
        return None
    return round(rate, 2)


def _result_of(payload) -> Optional[str]:
    return payload.get("result") if isinstance(payload, dict) else None
