"""
Order submitters: turn an opaque venue payload into a confirmed settlement transaction.

OrderSubmitter is the seam the gateway calls. AptosOrderSubmitter is the
production implementation: it signs with the configured key, submits through
an Aptos fullnode and waits for the transaction to be committed.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from aptos_sdk.account import Account
from aptos_sdk.async_client import RestClient

from ladderbot.core.errors import SettlementError
from ladderbot.infra.logging_cfg import log_event

log = logging.getLogger("ladderbot")


@dataclass
class SubmitResult:
    """Result of one settlement submission."""
    success: bool
    transaction_hash: Optional[str] = None
    error: Optional[str] = None


class OrderSubmitter(ABC):
    """Settles venue payloads. Subclasses implement submit(); close() is optional."""

    @abstractmethod
    async def submit(self, payload: Any) -> SubmitResult:
        """Sign and settle one payload. May raise SettlementError."""

    async def close(self) -> None:
        return None


def to_entry_function_payload(payload: Any) -> Dict[str, Any]:
    """
    Convert the venue's payload ({function, typeArguments, functionArguments})
    to the fullnode JSON entry-function form.
    """
    if not isinstance(payload, dict) or not payload.get("function"):
        raise SettlementError(f"venue payload has no entry function: {payload!r}")
    return {
        "type": "entry_function_payload",
        "function": payload["function"],
        "type_arguments": list(payload.get("typeArguments") or payload.get("type_arguments") or []),
        "arguments": list(payload.get("functionArguments") or payload.get("arguments") or []),
    }


class AptosOrderSubmitter(OrderSubmitter):
    def __init__(self, private_key_hex: str, node_url: str) -> None:
        key = private_key_hex.strip()
        if key.startswith("ed25519-priv-"):
            key = key[len("ed25519-priv-"):]
        try:
            self.account = Account.load_key(key)
        except Exception as exc:
            raise SettlementError(f"invalid signing key: {exc}") from exc

        node_url = node_url.rstrip("/")
        if not node_url.endswith("/v1"):
            node_url += "/v1"
        self.client = RestClient(node_url)
        log_event(log, "submitter_ready", node=node_url, account=str(self.account.address()))

    async def submit(self, payload: Any) -> SubmitResult:
        entry = to_entry_function_payload(payload)
        try:
            txn_hash = await self.client.submit_transaction(self.account, entry)
        except Exception as exc:
            raise SettlementError(f"submit failed: {exc}") from exc

        try:
            await self.client.wait_for_transaction(txn_hash)
        except Exception as exc:
            raise SettlementError(f"transaction not confirmed: {exc}", transaction_hash=txn_hash) from exc

        return SubmitResult(success=True, transaction_hash=txn_hash)

    async def close(self) -> None:
        await self.client.close()
