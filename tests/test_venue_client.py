"""
Tests for VenueClient using httpx.MockTransport.
"""

from unittest.mock import MagicMock

import httpx
import pytest

from ladderbot.core.errors import VenueApiError
from ladderbot.core.models import OrderAction, OrderIntent
from ladderbot.infra import venue_client
from ladderbot.infra.venue_client import VenueClient

BASE = "https://venue.test"


def client_with(handler) -> VenueClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return VenueClient(BASE, "secret-key", client=http)


def intent(**overrides) -> OrderIntent:
    kw = dict(
        market_id="15",
        is_long=True,
        action=OrderAction.CLOSE,
        size=0.01,
        price=50100.0,
        leverage=10.0,
        restriction=0,
    )
    kw.update(overrides)
    return OrderIntent(**kw)


class TestProfileAddress:
    @pytest.mark.asyncio
    async def test_resolves_profile(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["key"] = request.headers.get("x-api-key")
            return httpx.Response(200, json={"success": True, "data": "0xprofile"})

        venue = client_with(handler)
        assert await venue.get_profile_address("0xuser") == "0xprofile"
        assert seen == {"path": "/getProfileAddress", "params": {"userAddress": "0xuser"}, "key": "secret-key"}
        await venue.client.aclose()

    @pytest.mark.asyncio
    async def test_resolution_logged_as_event(self, monkeypatch):
        logged = MagicMock()
        monkeypatch.setattr(venue_client, "log_event", logged)
        venue = client_with(lambda request: httpx.Response(200, json={"success": True, "data": "0xprofile"}))
        await venue.get_profile_address("0xuser")
        logged.assert_called_once_with(venue_client.log, "profile_resolved", user="0xuser", profile="0xprofile")
        await venue.client.aclose()

    @pytest.mark.asyncio
    async def test_success_false(self):
        venue = client_with(lambda r: httpx.Response(200, json={"success": False, "message": "no profile"}))
        with pytest.raises(VenueApiError, match="no profile"):
            await venue.get_profile_address("0xuser")

    @pytest.mark.asyncio
    async def test_empty_profile(self):
        venue = client_with(lambda r: httpx.Response(200, json={"success": True, "data": ""}))
        with pytest.raises(VenueApiError):
            await venue.get_profile_address("0xuser")

    @pytest.mark.asyncio
    async def test_http_error_carries_status(self):
        venue = client_with(lambda r: httpx.Response(401, json={"message": "bad key"}))
        with pytest.raises(VenueApiError) as exc_info:
            await venue.get_profile_address("0xuser")
        assert exc_info.value.status_code == 401
        assert "bad key" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        venue = client_with(lambda r: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(VenueApiError):
            await venue.get_profile_address("0xuser")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        venue = client_with(handler)
        with pytest.raises(VenueApiError):
            await venue.get_profile_address("0xuser")


class TestPlaceOrderPayload:
    @pytest.mark.asyncio
    async def test_query_params(self):
        seen = {}
        payload = {"function": "0xabc::perp::place_limit_order", "functionArguments": [1, 2]}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"success": True, "data": payload})

        venue = client_with(handler)
        assert await venue.get_place_order_payload(intent()) == payload
        assert seen["path"] == "/placeLimitOrder"
        assert seen["params"] == {
            "marketId": "15",
            "tradeSide": "true",
            "direction": "true",
            "size": "0.01",
            "price": "50100",
            "leverage": "10",
            "restriction": "0",
        }

    @pytest.mark.asyncio
    async def test_open_short_with_tp_sl(self):
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return httpx.Response(200, json={"success": True, "data": {"function": "f"}})

        venue = client_with(handler)
        await venue.get_place_order_payload(intent(
            is_long=False, action=OrderAction.OPEN, restriction=None, take_profit=48000.5, stop_loss=52000.0,
        ))
        assert seen["tradeSide"] == "false"
        assert seen["direction"] == "false"
        assert seen["takeProfit"] == "48000.5"
        assert seen["stopLoss"] == "52000"
        assert "restriction" not in seen

    @pytest.mark.asyncio
    async def test_failure_message(self):
        venue = client_with(lambda r: httpx.Response(200, json={"success": False, "message": "price out of band"}))
        with pytest.raises(VenueApiError, match="price out of band"):
            await venue.get_place_order_payload(intent())

    @pytest.mark.asyncio
    async def test_missing_payload(self):
        venue = client_with(lambda r: httpx.Response(200, json={"success": True}))
        with pytest.raises(VenueApiError):
            await venue.get_place_order_payload(intent())


class TestOwnership:
    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self):
        http = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        venue = VenueClient(BASE, "k", client=http)
        await venue.close()
        assert not http.is_closed
        await http.aclose()
