"""Tests for the USD→COP rate client."""

import httpx
import pytest

from smartfi.config.settings import ExchangeRateSettings
from smartfi.services.rates import ExchangeRateService, parse_usd_to_cop

API_URL = "https://rates.test/v6/latest/USD"


def make_service(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ExchangeRateService(ExchangeRateSettings(api_url=API_URL), client=client)


class TestFetch:

    @pytest.mark.asyncio
    async def test_success_is_rounded(self):
        def handler(request):
            assert str(request.url) == API_URL
            return httpx.Response(200, json={"result": "success", "rates": {"COP": 4123.4567}})

        assert await make_service(handler).fetch_usd_to_cop() == 4123.46

    @pytest.mark.asyncio
    async def test_server_error(self):
        service = make_service(lambda request: httpx.Response(500))
        assert await service.fetch_usd_to_cop() is None

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        service = make_service(lambda request: httpx.Response(200, text="<html>down</html>"))
        assert await service.fetch_usd_to_cop() is None

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        assert await make_service(handler).fetch_usd_to_cop() is None


class TestParse:

    def test_error_result(self):
        assert parse_usd_to_cop({"result": "error", "error-type": "quota-reached"}) is None

    def test_missing_cop(self):
        assert parse_usd_to_cop({"result": "success", "rates": {"EUR": 0.9}}) is None

    @pytest.mark.parametrize("value", [0, -1, "abc", None])
    def test_unusable_values(self, value):
        assert parse_usd_to_cop({"result": "success", "rates": {"COP": value}}) is None

    def test_not_a_dict(self):
        assert parse_usd_to_cop(["success"]) is None

    def test_numeric_string(self):
        assert parse_usd_to_cop({"result": "success", "rates": {"COP": "3999.999"}}) == 4000.0
