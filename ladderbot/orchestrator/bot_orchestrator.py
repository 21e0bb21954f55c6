"""
BotOrchestrator: owns the bot lifecycle and routes stream events.

Architecture:
    StreamConnection delivers raw frames -> parse_frame classifies them ->
    trade_history items go through FillDeduplicator, positions snapshots
    through the position differ -> LadderStrategy turns the resulting events
    into OrderIntents -> ExecutionGateway executes them in the background.

    The orchestrator holds the only BotState and is the only writer to it.
    Frame handling is synchronous and runs on the event loop, so a fill id is
    checked and recorded atomically.

Phases:
    UNINITIALIZED -> CONNECTING -> ACTIVE <-> RECONNECTING -> FAILED
    stop() moves any phase to STOPPED (terminal).
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Dict, List, Optional

from ladderbot.core.errors import ConnectivityError, ProtocolError, VenueApiError
from ladderbot.core.models import FillObserved, Position, StrategyEvent, TradeFill
from ladderbot.execution.execution_gateway import ExecutionGateway
from ladderbot.execution.fill_deduplicator import (
    FillDeduplicator,
    FillDeduplicatorConfig,
    FillVerdict,
    WindowPolicy,
)
from ladderbot.execution.position_differ import apply_snapshot
from ladderbot.infra.logging_cfg import log_event
from ladderbot.infra.venue_client import VenueClient
from ladderbot.state.bot_state import BotState
from ladderbot.strategy.ladder import LadderStrategy
from ladderbot.stream.connection import (
    TOPIC_POSITIONS,
    TOPIC_TRADE_HISTORY,
    ConnectionStatus,
    Connector,
    StatusChange,
    StreamConfig,
    StreamConnection,
)
from ladderbot.stream.frames import parse_frame

log = logging.getLogger("ladderbot")


class BotPhase(Enum):
    UNINITIALIZED = auto()
    CONNECTING = auto()
    ACTIVE = auto()
    RECONNECTING = auto()
    STOPPED = auto()
    FAILED = auto()


VALID_TRANSITIONS: Dict[BotPhase, List[BotPhase]] = {
    BotPhase.UNINITIALIZED: [
        BotPhase.CONNECTING,    # start()
        BotPhase.STOPPED,
    ],
    BotPhase.CONNECTING: [
        BotPhase.ACTIVE,        # connected and subscribed
        BotPhase.FAILED,        # profile lookup or first connect failed
        BotPhase.STOPPED,
    ],
    BotPhase.ACTIVE: [
        BotPhase.RECONNECTING,  # unexpected close under the ceiling
        BotPhase.FAILED,        # unexpected close with a ceiling of 0
        BotPhase.STOPPED,
    ],
    BotPhase.RECONNECTING: [
        BotPhase.RECONNECTING,  # reconnect attempt failed, another scheduled
        BotPhase.ACTIVE,
        BotPhase.FAILED,        # ceiling exceeded
        BotPhase.STOPPED,
    ],
    BotPhase.FAILED: [
        BotPhase.STOPPED,
    ],
    # Terminal
    BotPhase.STOPPED: [],
}


@dataclass
class OrchestratorConfig:
    """Configuration for BotOrchestrator."""
    ws_url: str = "wss://perpetuals-indexer-ws-develop.kanalabs.io/ws/"
    topics: List[str] = field(default_factory=lambda: [TOPIC_TRADE_HISTORY, TOPIC_POSITIONS])

    # Stream
    ping_interval_sec: float = 20.0
    reconnect_base_delay_sec: float = 5.0
    max_reconnect_attempts: int = 10

    # Fill window
    window_policy: WindowPolicy = WindowPolicy.STRICT
    lookback_sec: int = 300
    max_tracked_fills: int = 0

    log_event_callback: Optional[Callable[..., None]] = None


class BotOrchestrator:
    def __init__(
        self,
        user_address: str,
        venue: VenueClient,
        gateway: ExecutionGateway,
        strategy: LadderStrategy,
        config: Optional[OrchestratorConfig] = None,
        connector: Optional[Connector] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.user_address = user_address
        self.venue = venue
        self.gateway = gateway
        self.strategy = strategy
        self.config = config or OrchestratorConfig()
        self._connector = connector
        self._clock = clock

        self.phase = BotPhase.UNINITIALIZED
        self.state: Optional[BotState] = None
        self.dedup: Optional[FillDeduplicator] = None
        self.connection: Optional[StreamConnection] = None
        self._finished = asyncio.Event()

        self._stats = {
            "frames_dropped": 0,
            "fills_observed": 0,
            "positions_closed": 0,
            "intents": 0,
        }

        self._log_event = self.config.log_event_callback or self._default_log

    def _default_log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log_event(log, event, level=level, **kwargs)

    # ========== Phases ==========

    def _transition(self, to: BotPhase, reason: str = "") -> bool:
        if to not in VALID_TRANSITIONS.get(self.phase, []):
            self._log_event(
                "invalid_phase_transition",
                level=logging.WARNING,
                from_phase=self.phase.name,
                to_phase=to.name,
                reason=reason,
            )
            return False
        self._log_event("phase_change", from_phase=self.phase.name, to_phase=to.name, reason=reason)
        self.phase = to
        if to in (BotPhase.STOPPED, BotPhase.FAILED):
            self._finished.set()
        return True

    @property
    def is_running(self) -> bool:
        return self.phase in (BotPhase.CONNECTING, BotPhase.ACTIVE, BotPhase.RECONNECTING)

    # ========== Lifecycle ==========

    async def start(self) -> None:
        """
        Resolve the profile address, connect and subscribe.

        Raises VenueApiError or ConnectivityError (phase becomes FAILED). If
        stop() runs while this is awaiting, returns quietly and leaves nothing open.
        """
        if not self._transition(BotPhase.CONNECTING, "start"):
            raise RuntimeError(f"cannot start from phase {self.phase.name}")

        self.state = BotState(address=self.user_address, start_ts=int(self._clock()))
        self.dedup = FillDeduplicator(
            self.state,
            FillDeduplicatorConfig(
                policy=self.config.window_policy,
                lookback_sec=self.config.lookback_sec,
                max_tracked=self.config.max_tracked_fills,
                log_event_callback=self.config.log_event_callback,
            ),
        )
        self._log_event(
            "bot_starting",
            address=self.user_address,
            start_ts=self.state.start_ts,
            topics=self.config.topics,
            rules=sorted(self.strategy.config.rules),
            window=self.config.window_policy.value,
            watermark=self.dedup.watermark,
        )

        try:
            profile = await self.venue.get_profile_address(self.user_address)
        except VenueApiError as exc:
            if self.phase is BotPhase.STOPPED:
                self._log_event("start_aborted", stage="profile_lookup", error=str(exc))
                return
            self._log_event("profile_lookup_failed", level=logging.ERROR, error=str(exc))
            self._transition(BotPhase.FAILED, "profile lookup failed")
            raise
        if self.phase is BotPhase.STOPPED:
            self._log_event("start_aborted", stage="profile_lookup")
            return
        self.state.profile_address = profile

        self.connection = StreamConnection(
            address=profile,
            on_frame=self.handle_frame,
            config=StreamConfig(
                url=self.config.ws_url,
                topics=list(self.config.topics),
                ping_interval_sec=self.config.ping_interval_sec,
                reconnect_base_delay_sec=self.config.reconnect_base_delay_sec,
                max_reconnect_attempts=self.config.max_reconnect_attempts,
                log_event_callback=self.config.log_event_callback,
            ),
            on_status=self._on_status,
            connector=self._connector,
        )
        try:
            await self.connection.connect()
        except ConnectivityError as exc:
            if self.phase is BotPhase.STOPPED:
                # stop() landed mid-handshake and already tore the session down
                self._log_event("start_aborted", stage="connect", error=str(exc))
                return
            self._log_event("connect_failed", level=logging.ERROR, error=str(exc))
            self._transition(BotPhase.FAILED, "initial connect failed")
            raise

    async def stop(self) -> None:
        """Tear down timers and the session, and stop caring about in-flight results. Idempotent."""
        if self.phase is BotPhase.STOPPED:
            return
        self._transition(BotPhase.STOPPED, "stop requested")
        if self.connection is not None:
            await self.connection.disconnect()
        self.gateway.abandon()
        if self.state is not None:
            self.state.connected = False

    async def wait_closed(self) -> BotPhase:
        """Block until the bot is STOPPED or FAILED; returns the phase reached."""
        await self._finished.wait()
        return self.phase

    def _on_status(self, change: StatusChange) -> None:
        if self.state is None or self.phase is BotPhase.STOPPED:
            return

        if change.status is ConnectionStatus.CONNECTED:
            self.state.connected = True
            self.state.reconnect_attempts = 0
            self._transition(BotPhase.ACTIVE, "connected")
        elif change.status is ConnectionStatus.RECONNECTING:
            self.state.reset_for_reconnect()
            self.state.reconnect_attempts = change.attempt
            self._transition(BotPhase.RECONNECTING, change.reason or "connection lost")
        elif change.status is ConnectionStatus.FAILED:
            self.state.connected = False
            self._log_event(
                "bot_failed",
                level=logging.ERROR,
                reason=change.reason,
                attempts=change.attempt,
            )
            self._transition(BotPhase.FAILED, "reconnect attempts exhausted")

    # ========== Frame routing ==========

    def handle_frame(self, raw: str) -> None:
        """Classify and act on one raw frame. Malformed frames are logged and dropped."""
        try:
            frame = parse_frame(raw)
        except ProtocolError as exc:
            self._drop(str(exc))
            return
        if frame is None or frame.topic not in self.config.topics:
            return

        if frame.topic == TOPIC_TRADE_HISTORY:
            self._handle_fills(frame.items)
        elif frame.topic == TOPIC_POSITIONS:
            self._handle_positions(frame.items)

    def _handle_fills(self, items: List[Any]) -> None:
        for item in items:
            try:
                fill = TradeFill.from_dict(item)
            except ProtocolError as exc:
                self._drop(f"bad fill entry: {exc}", topic=TOPIC_TRADE_HISTORY)
                continue

            verdict = self.dedup.classify(fill)
            if verdict is not FillVerdict.ACCEPT:
                continue

            self._stats["fills_observed"] += 1
            self._log_event(
                "fill_observed",
                trade_id=fill.trade_id,
                market_id=fill.market_id,
                order_type=fill.order_type,
                order_type_name=fill.order_type_label,
                price=fill.price,
                size=fill.size,
                fee=fill.fee,
                pnl=fill.pnl,
                timestamp=fill.timestamp,
            )
            self._react(FillObserved(fill), reason=f"fill {fill.trade_id}")

    def _handle_positions(self, items: List[Any]) -> None:
        try:
            current = [Position.from_dict(item) for item in items]
        except ProtocolError as exc:
            # a partial snapshot would read as closures
            self._drop(f"bad position entry: {exc}", topic=TOPIC_POSITIONS)
            return

        closed = apply_snapshot(self.state, current)
        self._log_event(
            "positions_snapshot",
            count=len(current),
            positions=[
                {
                    "trade_id": p.trade_id,
                    "side": "long" if p.is_long else "short",
                    "entry_price": p.entry_price,
                    "size": p.size,
                    "leverage": p.leverage,
                }
                for p in current
            ],
        )
        for event in closed:
            pos = event.position
            self._stats["positions_closed"] += 1
            self._log_event(
                "position_closed",
                trade_id=pos.trade_id,
                market_id=pos.market_id,
                side="long" if pos.is_long else "short",
                entry_price=pos.entry_price,
                size=pos.size,
                leverage=pos.leverage,
            )
            self._react(event, reason=f"position {pos.trade_id} closed")

    def _react(self, event: StrategyEvent, reason: str) -> None:
        intent = self.strategy.decide(event)
        if intent is None:
            return
        self._stats["intents"] += 1
        self.gateway.dispatch(intent, reason=reason)

    def _drop(self, error: str, topic: Optional[str] = None) -> None:
        self._stats["frames_dropped"] += 1
        self._log_event("frame_dropped", level=logging.WARNING, topic=topic, error=error)

    # ========== Stats ==========

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = {"phase": self.phase.name, **self._stats}
        if self.state is not None:
            stats["state"] = self.state.snapshot()
        if self.dedup is not None:
            stats["dedup"] = self.dedup.get_stats()
        if self.connection is not None:
            stats["connection"] = self.connection.get_stats()
        stats["gateway"] = self.gateway.get_stats()
        return stats
