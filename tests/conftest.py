"""
Pytest configuration and shared fixtures.

FakeSocket / FakeConnector stand in for websockets.connect so stream and
orchestrator tests run without a network.
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from ladderbot.execution.execution_gateway import ExecutionGateway
from ladderbot.state.bot_state import BotState

_CLOSE = object()


class FakeSocket:
    """In-memory websocket: frames pushed by the test are yielded by async iteration."""

    def __init__(self, send_gate: Optional[asyncio.Event] = None) -> None:
        self.sent: List[str] = []
        self.send_gate = send_gate
        self.pings = 0
        self.answer_pings = True
        self.closed = False
        self._incoming: "asyncio.Queue[Any]" = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.send_gate is not None:
            await self.send_gate.wait()
        if self.closed:
            raise ConnectionError("socket closed")
        self.sent.append(message)

    async def ping(self) -> "asyncio.Future[float]":
        """Returns the pong waiter; it never resolves while answer_pings is False."""
        self.pings += 1
        pong = asyncio.get_running_loop().create_future()
        if self.answer_pings:
            pong.set_result(0.0)
        return pong

    async def close(self) -> None:
        self.closed = True
        self._incoming.put_nowait(_CLOSE)

    def push(self, frame: Any) -> None:
        """Deliver a frame (dicts are JSON-encoded)."""
        raw = frame if isinstance(frame, (str, bytes)) else json.dumps(frame)
        self._incoming.put_nowait(raw)

    def server_close(self) -> None:
        """Simulate the server dropping the session."""
        self.closed = True
        self._incoming.put_nowait(_CLOSE)

    @property
    def subscriptions(self) -> List[Dict[str, Any]]:
        return [json.loads(m) for m in self.sent]

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> Any:
        item = await self._incoming.get()
        if item is _CLOSE:
            raise StopAsyncIteration
        return item


class FakeConnector:
    """
    Callable with the websockets.connect signature.

    outcomes: consumed in order per call; an Exception instance is raised, None
    yields a fresh FakeSocket. Once exhausted, default_outcome applies.

    gate: when set, each call blocks on it after being recorded (a slow handshake).
    send_gate: handed to every socket, so subscriptions block on it.
    """

    def __init__(self, outcomes: Optional[List[Optional[Exception]]] = None,
                 default_outcome: Optional[Exception] = None) -> None:
        self.outcomes = list(outcomes or [])
        self.default_outcome = default_outcome
        self.calls: List[Dict[str, Any]] = []
        self.sockets: List[FakeSocket] = []
        self.gate: Optional[asyncio.Event] = None
        self.send_gate: Optional[asyncio.Event] = None

    async def __call__(self, url: str, **kwargs: Any) -> FakeSocket:
        self.calls.append({"url": url, **kwargs})
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0) if self.outcomes else self.default_outcome
        if isinstance(outcome, Exception):
            raise outcome
        sock = FakeSocket(send_gate=self.send_gate)
        self.sockets.append(sock)
        return sock

    @property
    def last(self) -> FakeSocket:
        return self.sockets[-1]


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def bot_state() -> BotState:
    return BotState(address="0xuser", start_ts=1000)


@pytest.fixture
def mock_venue() -> MagicMock:
    venue = MagicMock()
    venue.get_profile_address = AsyncMock(return_value="0xprofile")
    venue.get_place_order_payload = AsyncMock(return_value={"function": "0x1::market::place_limit_order"})
    venue.close = AsyncMock()
    return venue


@pytest.fixture
def mock_gateway() -> MagicMock:
    gateway = MagicMock(spec=ExecutionGateway)
    gateway.get_stats.return_value = {}
    return gateway


def fill_item(trade_id: str = "f1", order_type: int = 2, price: str = "50000",
              size: str = "0.01", timestamp: str = "1001", **extra: Any) -> Dict[str, Any]:
    item = {
        "trade_id": trade_id,
        "market_id": "15",
        "order_type": order_type,
        "price": price,
        "size": size,
        "fee": "0.1",
        "pnl": "0",
        "timestamp": timestamp,
        "address": "0xprofile",
    }
    item.update(extra)
    return item


def position_item(trade_id: str = "p1", entry_price: str = "50000", size: str = "0.01",
                  leverage: Any = 10, **extra: Any) -> Dict[str, Any]:
    item = {
        "trade_id": trade_id,
        "market_id": "15",
        "is_long": True,
        "entry_price": entry_price,
        "size": size,
        "leverage": leverage,
        "margin": "50",
        "liq_price": "45000",
        "last_updated": "1000",
    }
    item.update(extra)
    return item
