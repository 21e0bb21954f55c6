"""
ExecutionGateway: fire-and-forget execution of order intents.

Each intent runs as its own asyncio task: fetch the payload from the venue,
then hand it to the OrderSubmitter. The caller (the frame path) never awaits
these tasks, so a slow confirmation cannot delay stream processing, and two
submissions may finish in any order.

Failures (VenueApiError, SettlementError, anything else the submitter raises)
become a failed OrderOutcome. Nothing is retried; the next qualifying event
produces a fresh intent.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set

from ladderbot.core.errors import SettlementError, VenueApiError
from ladderbot.core.models import OrderIntent
from ladderbot.execution.order_submitter import OrderSubmitter
from ladderbot.infra.logging_cfg import log_event
from ladderbot.infra.venue_client import VenueClient

log = logging.getLogger("ladderbot")


@dataclass
class OrderOutcome:
    """Result of executing one intent."""
    intent: OrderIntent
    reason: str
    success: bool
    transaction_hash: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    latency_ms: float = 0.0


@dataclass
class ExecutionGatewayConfig:
    """Configuration for ExecutionGateway."""
    log_event_callback: Optional[Callable[..., None]] = None


class ExecutionGateway:
    def __init__(
        self,
        venue: VenueClient,
        submitter: OrderSubmitter,
        config: Optional[ExecutionGatewayConfig] = None,
    ) -> None:
        self.venue = venue
        self.submitter = submitter
        self.config = config or ExecutionGatewayConfig()
        self._log_event = self.config.log_event_callback or self._default_log

        self._in_flight: Set[asyncio.Task] = set()
        self._abandoned = False
        self._stats = {
            "dispatched": 0,
            "succeeded": 0,
            "failed": 0,
            "abandoned": 0,
        }

    def _default_log(self, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
        log_event(log, event, level=level, **kwargs)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def dispatch(self, intent: OrderIntent, reason: str = "") -> Optional[asyncio.Task]:
        """
        Start executing an intent in the background. Must be called from the event loop.

        Returns the task, or None once abandon() has been called.
        """
        if self._abandoned:
            self._log_event("intent_skipped", level=logging.WARNING, reason=reason, **intent.describe())
            return None
        self._stats["dispatched"] += 1
        self._log_event("intent_dispatched", reason=reason, **intent.describe())
        task = asyncio.create_task(self.execute(intent, reason))
        self._in_flight.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def execute(self, intent: OrderIntent, reason: str = "") -> OrderOutcome:
        """Payload fetch then submit, sequentially. Never raises except on cancellation."""
        t0 = time.perf_counter()
        try:
            payload = await self.venue.get_place_order_payload(intent)
            result = await self.submitter.submit(payload)
        except VenueApiError as exc:
            return self._failed(intent, reason, str(exc), "venue", t0)
        except SettlementError as exc:
            return self._failed(intent, reason, str(exc), "settlement", t0, exc.transaction_hash)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return self._failed(intent, reason, f"{type(exc).__name__}: {exc}", "unexpected", t0)

        latency = (time.perf_counter() - t0) * 1000
        if not result.success:
            return OrderOutcome(
                intent=intent,
                reason=reason,
                success=False,
                transaction_hash=result.transaction_hash,
                error=result.error or "submission rejected",
                error_kind="settlement",
                latency_ms=latency,
            )
        return OrderOutcome(
            intent=intent,
            reason=reason,
            success=True,
            transaction_hash=result.transaction_hash,
            latency_ms=latency,
        )

    def _failed(
        self,
        intent: OrderIntent,
        reason: str,
        error: str,
        kind: str,
        t0: float,
        transaction_hash: Optional[str] = None,
    ) -> OrderOutcome:
        return OrderOutcome(
            intent=intent,
            reason=reason,
            success=False,
            transaction_hash=transaction_hash,
            error=error,
            error_kind=kind,
            latency_ms=(time.perf_counter() - t0) * 1000,
        )

    def _on_done(self, task: asyncio.Task) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            self._stats["abandoned"] += 1
            return
        exc = task.exception()
        if exc is not None:
            self._stats["failed"] += 1
            self._log_event("order_failed", level=logging.ERROR, error=str(exc), error_kind="unexpected")
            return
        self.record(task.result())

    def record(self, outcome: OrderOutcome) -> None:
        if outcome.success:
            self._stats["succeeded"] += 1
            self._log_event(
                "order_placed",
                reason=outcome.reason,
                tx_hash=outcome.transaction_hash,
                latency_ms=round(outcome.latency_ms, 1),
                **outcome.intent.describe(),
            )
        else:
            self._stats["failed"] += 1
            self._log_event(
                "order_failed",
                level=logging.ERROR,
                reason=outcome.reason,
                error=outcome.error,
                error_kind=outcome.error_kind,
                tx_hash=outcome.transaction_hash,
                **outcome.intent.describe(),
            )

    def abandon(self) -> None:
        """Stop accepting intents. In-flight submissions keep running; their results are still logged."""
        if self._abandoned:
            return
        self._abandoned = True
        self._log_event("gateway_abandoned", in_flight=len(self._in_flight))

    async def drain(self, timeout: float) -> int:
        """
        Wait up to timeout seconds for in-flight submissions.

        Returns how many were still running; those are cancelled locally
        (the remote transaction may still land).
        """
        pending = set(self._in_flight)
        if not pending:
            return 0
        self._log_event("gateway_draining", in_flight=len(pending), timeout_sec=timeout)
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            self._log_event("gateway_drain_timeout", level=logging.WARNING, cancelled=len(still_running))
        return len(still_running)

    def get_stats(self) -> Dict[str, Any]:
        return {**self._stats, "in_flight": len(self._in_flight)}
