"""
StreamConnection: lifecycle of the venue streaming session.

Handles:
- connect + per-topic subscription (never twice per session)
- fixed-interval keepalive pings; an unanswered ping closes the session
- reconnect after an unexpected close, delay = base * attempt, up to a ceiling
- idempotent teardown

Raw text frames are handed to a single synchronous callback, in arrival order,
from the reader task. Parsing is the caller's business.

Errors:
    connect() raises ConnectivityError if the first session cannot be opened.
    Anything that happens afterwards is reported through on_status only.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, Set

import websockets
from websockets.exceptions import ConnectionClosed

from ladderbot.core.errors import ConnectivityError
from ladderbot.infra.logging_cfg import log_event

log = logging.getLogger("ladderbot")

TOPIC_TRADE_HISTORY = "trade_history"
TOPIC_POSITIONS = "positions"

Connector = Callable[..., Awaitable[Any]]


class ConnectionStatus(Enum):
    CONNECTED = auto()
    RECONNECTING = auto()   # a reconnect has been scheduled
    FAILED = auto()         # attempt ceiling exceeded, no more retries
    CLOSED = auto()         # disconnect() was called


@dataclass
class StatusChange:
    status: ConnectionStatus
    attempt: int = 0
    delay_sec: float = 0.0
    reason: Optional[str] = None


@dataclass
class StreamConfig:
    """Configuration for StreamConnection."""
    url: str = "wss://perpetuals-indexer-ws-develop.kanalabs.io/ws/"
    topics: List[str] = field(default_factory=lambda: [TOPIC_TRADE_HISTORY, TOPIC_POSITIONS])

    # Keepalive: a ping not answered within pong_timeout_sec closes the session
    ping_interval_sec: float = 20.0
    pong_timeout_sec: float = 10.0

    # Reconnect: delay grows linearly with the attempt number
    reconnect_base_delay_sec: float = 5.0
    max_reconnect_attempts: int = 10

    # Handshake timeout
    open_timeout_sec: float = 10.0

    # Logging callback
    log_event_callback: Optional[Callable[..., None]] = None


class StreamConnection:
    """
    One logical streaming session, re-opened on unexpected closes.

    Single asyncio loop only; no internal locks.
    """

    def __init__(
        self,
        address: str,
        on_frame: Callable[[str], None],
        config: Optional[StreamConfig] = None,
        on_status: Optional[Callable[[StatusChange], None]] = None,
        connector: Optional[Connector] = None,
    ) -> None:
        """
        Args:
            address: Profile address sent with every subscription
            on_frame: Receives each raw text frame
            config: Optional configuration
            on_status: Receives connection status changes
            connector: Coroutine function opening a websocket (defaults to websockets.connect)
        """
        self.address = address
        self.config = config or StreamConfig()
        self._on_frame = on_frame
        self._on_status = on_status
        self._connector = connector or websockets.connect

        self._ws: Any = None
        self._subscribed: Set[str] = set()
        self._reader_task: Optional[asyncio.Task] = None
        self._keepalive_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._reconnect_attempts = 0
        self._stopping = False
        self._failed = False

        self._stats = {
            "sessions_opened": 0,
            "frames_received": 0,
            "pings_sent": 0,
            "pong_timeouts": 0,
            "reconnects_scheduled": 0,
        }

        self._log_event = self.config.log_event_callback or self._default_log

    def _default_log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log_event(log, event, level=level, **kwargs)

    # ========== State ==========

    @property
    def is_connected(self) -> bool:
        return self._ws is not None

    @property
    def is_failed(self) -> bool:
        return self._failed

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def subscribed_topics(self) -> FrozenSet[str]:
        return frozenset(self._subscribed)

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "connected": self.is_connected,
            "failed": self._failed,
            "reconnect_attempts": self._reconnect_attempts,
            "subscribed": sorted(self._subscribed),
        }

    # ========== Lifecycle ==========

    async def connect(self) -> None:
        """Open the first session and subscribe. Raises ConnectivityError on failure."""
        self._stopping = False
        self._failed = False
        self._reconnect_attempts = 0
        await self._open()

    async def disconnect(self) -> None:
        """Stop keepalive, any pending reconnect and the reader, then close the socket. Safe to repeat."""
        already_stopped = self._stopping and self._ws is None
        self._stopping = True

        current = asyncio.current_task()
        tasks = [
            t for t in (self._reconnect_task, self._keepalive_task, self._reader_task)
            if t is not None and not t.done() and t is not current
        ]
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._reconnect_task = None
        self._keepalive_task = None
        self._reader_task = None

        ws, self._ws = self._ws, None
        self._subscribed.clear()
        if ws is not None:
            await self._close_socket(ws)

        if not already_stopped:
            self._log_event("stream_disconnected")
            self._emit(StatusChange(ConnectionStatus.CLOSED))

    async def subscribe(self, topic: str) -> bool:
        """
        Subscribe the current session to a topic.

        Returns False (and sends nothing) if already subscribed on this session.
        """
        if self._ws is None:
            raise ConnectivityError(f"cannot subscribe to {topic!r}: no open session")
        if topic in self._subscribed:
            return False
        await self._ws.send(json.dumps({"topic": topic, "address": self.address}))
        self._subscribed.add(topic)
        self._log_event("stream_subscribed", topic=topic, address=self.address)
        return True

    # ========== Internals ==========

    async def _open(self) -> None:
        url = self.config.url
        self._log_event("stream_connecting", url=url, attempt=self._reconnect_attempts)
        try:
            ws = await self._connector(url, ping_interval=None, open_timeout=self.config.open_timeout_sec)
        except Exception as exc:
            raise ConnectivityError(f"connect to {url} failed: {exc}") from exc

        if self._stopping:
            await self._close_socket(ws)
            raise ConnectivityError("connection stopped during handshake")

        self._ws = ws
        self._subscribed.clear()
        try:
            for topic in self.config.topics:
                await self.subscribe(topic)
        except Exception as exc:
            self._ws = None
            self._subscribed.clear()
            await self._close_socket(ws)
            raise ConnectivityError(f"subscribe failed: {exc}") from exc
        if self._stopping:
            # disconnect() ran while subscriptions were in flight and already closed ws
            raise ConnectivityError("connection stopped during subscribe")

        self._reconnect_attempts = 0
        self._stats["sessions_opened"] += 1
        self._keepalive_task = asyncio.create_task(self._keepalive_loop(ws))
        self._reader_task = asyncio.create_task(self._read_loop(ws))
        self._log_event("stream_connected", url=url, topics=sorted(self._subscribed))
        self._emit(StatusChange(ConnectionStatus.CONNECTED))

    async def _read_loop(self, ws: Any) -> None:
        reason = "closed by server"
        try:
            async for raw in ws:
                if isinstance(raw, bytes):
                    raw = raw.decode("utf-8", errors="replace")
                self._stats["frames_received"] += 1
                try:
                    self._on_frame(raw)
                except Exception as exc:
                    self._log_event("frame_handler_error", level=logging.ERROR, error=str(exc))
        except asyncio.CancelledError:
            raise
        except ConnectionClosed as exc:
            reason = f"connection closed: {exc}"
        except Exception as exc:
            reason = f"read error: {exc}"

        if ws is self._ws:
            self._handle_close(reason)

    async def _keepalive_loop(self, ws: Any) -> None:
        while True:
            await asyncio.sleep(self.config.ping_interval_sec)
            try:
                pong = await ws.ping()
                self._stats["pings_sent"] += 1
                self._log_event("stream_ping", level=logging.DEBUG)
                await asyncio.wait_for(pong, self.config.pong_timeout_sec)
            except ConnectionClosed:
                return
            except asyncio.TimeoutError:
                self._stats["pong_timeouts"] += 1
                self._log_event("stream_pong_timeout", level=logging.WARNING, timeout_sec=self.config.pong_timeout_sec)
                # reader sees the close and runs the normal reconnect path
                await self._close_socket(ws)
                return

    def _handle_close(self, reason: str) -> None:
        self._ws = None
        self._subscribed.clear()
        if self._keepalive_task is not None and self._keepalive_task is not asyncio.current_task():
            self._keepalive_task.cancel()
        self._keepalive_task = None

        if self._stopping:
            return

        if self._reconnect_attempts >= self.config.max_reconnect_attempts:
            self._failed = True
            self._log_event(
                "stream_failed",
                level=logging.ERROR,
                reason=reason,
                attempts=self._reconnect_attempts,
                max_attempts=self.config.max_reconnect_attempts,
            )
            self._emit(StatusChange(ConnectionStatus.FAILED, attempt=self._reconnect_attempts, reason=reason))
            return

        self._reconnect_attempts += 1
        delay = self.config.reconnect_base_delay_sec * self._reconnect_attempts
        self._stats["reconnects_scheduled"] += 1
        self._log_event(
            "stream_reconnect_scheduled",
            level=logging.WARNING,
            reason=reason,
            attempt=self._reconnect_attempts,
            max_attempts=self.config.max_reconnect_attempts,
            delay_sec=delay,
        )
        self._emit(StatusChange(ConnectionStatus.RECONNECTING, attempt=self._reconnect_attempts, delay_sec=delay, reason=reason))
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay))

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._stopping:
            return
        try:
            await self._open()
        except ConnectivityError as exc:
            self._log_event(
                "stream_reconnect_failed",
                level=logging.WARNING,
                attempt=self._reconnect_attempts,
                error=str(exc),
            )
            self._handle_close(str(exc))

    async def _close_socket(self, ws: Any) -> None:
        try:
            await ws.close()
        except Exception as exc:
            self._log_event("stream_close_error", level=logging.DEBUG, error=str(exc))

    def _emit(self, change: StatusChange) -> None:
        if self._on_status is None:
            return
        try:
            self._on_status(change)
        except Exception as exc:
            self._log_event("status_callback_error", level=logging.ERROR, status=change.status.name, error=str(exc))
