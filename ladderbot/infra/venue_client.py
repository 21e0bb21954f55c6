"""
Minimal async HTTP client for the venue REST API.

Two calls are needed: resolve the trading profile (subaccount) address for a
wallet, and fetch a ready-to-sign order-placement payload for an OrderIntent.
The client holds no trading state.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ladderbot.core.errors import VenueApiError
from ladderbot.core.models import OrderIntent
from ladderbot.infra.logging_cfg import log_event

log = logging.getLogger("ladderbot")

PROFILE_PATH = "/getProfileAddress"
PLACE_ORDER_PATH = "/placeLimitOrder"


class VenueClient:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"x-api-key": api_key, "Content-Type": "application/json"}
        # A caller-supplied client is not closed by close(); one we create is.
        if client is not None:
            self.client = client
            self.client.headers.update(headers)
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(base_url=self.base_url, http2=True, timeout=timeout, headers=headers)
            self._owns_client = True

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def get_profile_address(self, user_address: str) -> str:
        """Resolve the venue profile (subaccount) address that streams are keyed by."""
        data = await self._get(PROFILE_PATH, {"userAddress": user_address})
        profile = data.get("data")
        if not profile:
            raise VenueApiError("profile lookup returned no address")
        log_event(log, "profile_resolved", user=user_address, profile=profile)
        return str(profile)

    async def get_place_order_payload(self, intent: OrderIntent) -> Any:
        """
        Ask the venue for the transaction payload implementing an intent.

        The payload is opaque to us and handed to the OrderSubmitter unchanged.
        """
        data = await self._get(PLACE_ORDER_PATH, intent.to_query_params())
        payload = data.get("data")
        if payload is None:
            raise VenueApiError("place-order response carried no payload")
        return payload

    async def _get(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        try:
            resp = await self.client.get(self.base_url + path, params=params)
        except httpx.HTTPError as exc:
            raise VenueApiError(f"{path} request failed: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        if resp.is_error:
            message = _message(body) or resp.reason_phrase
            raise VenueApiError(f"{path} HTTP {resp.status_code}: {message}", status_code=resp.status_code)
        if not isinstance(body, dict):
            raise VenueApiError(f"{path} returned a non-JSON-object body", status_code=resp.status_code)
        if not body.get("success"):
            raise VenueApiError(
                f"{path} reported failure: {_message(body) or 'Unknown error'}",
                status_code=resp.status_code,
            )
        return body


def _message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        return body.get("message") or body.get("error")
    return None
