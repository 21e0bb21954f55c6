"""
Entry point wiring all components.

Exit codes: 0 after a graceful stop (SIGINT/SIGTERM), 1 on configuration or
startup failure, or when the stream gives up reconnecting.
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from typing import Set

from ladderbot.config.config import Settings
from ladderbot.core.errors import ConfigurationError, ConnectivityError, SettlementError, VenueApiError
from ladderbot.execution.execution_gateway import ExecutionGateway
from ladderbot.execution.fill_deduplicator import WindowPolicy
from ladderbot.execution.order_submitter import AptosOrderSubmitter
from ladderbot.infra.logging_cfg import LOGGER_NAME, build_logger, log_event, stop_logging
from ladderbot.infra.venue_client import VenueClient
from ladderbot.orchestrator.bot_orchestrator import BotOrchestrator, BotPhase, OrchestratorConfig
from ladderbot.strategy.ladder import LadderConfig, LadderStrategy


def _bootstrap_logger() -> logging.Logger:
    # Settings are not loaded yet; read the two logging keys directly so a
    # configuration error is still reported through the normal handlers.
    level = logging.getLevelNamesMapping().get(os.getenv("BOT_LOG_LEVEL", "INFO").upper(), logging.INFO)
    return build_logger(LOGGER_NAME, level=level, file_path=os.getenv("BOT_LOG_FILE", "ladderbot.log") or None)


async def main() -> int:
    log = _bootstrap_logger()
    try:
        cfg = Settings.load()
    except ConfigurationError as exc:
        log_event(log, "config_error", level=logging.ERROR, error=str(exc))
        return 1
    build_logger(LOGGER_NAME, level=logging.getLevelNamesMapping()[cfg.log_level], file_path=cfg.log_file)

    venue = VenueClient(cfg.rest_url, cfg.api_key, timeout=cfg.http_timeout)
    try:
        submitter = AptosOrderSubmitter(cfg.private_key_hex, cfg.node_url)
    except SettlementError as exc:
        log_event(log, "config_error", level=logging.ERROR, error=str(exc))
        await venue.close()
        return 1

    gateway = ExecutionGateway(venue, submitter)
    strategy = LadderStrategy(LadderConfig(
        offset=cfg.price_offset,
        default_leverage=cfg.default_leverage,
        restriction=cfg.restriction,
        rules=frozenset(cfg.rules),
    ))
    bot = BotOrchestrator(
        user_address=cfg.user_address,
        venue=venue,
        gateway=gateway,
        strategy=strategy,
        config=OrchestratorConfig(
            ws_url=cfg.ws_url,
            topics=list(cfg.topics),
            ping_interval_sec=cfg.ping_interval_sec,
            reconnect_base_delay_sec=cfg.reconnect_base_delay_sec,
            max_reconnect_attempts=cfg.max_reconnect_attempts,
            window_policy=WindowPolicy(cfg.fill_window),
            lookback_sec=cfg.fill_lookback_sec,
            max_tracked_fills=cfg.max_tracked_fills,
        ),
    )

    loop = asyncio.get_running_loop()
    stop_tasks: Set[asyncio.Task] = set()

    def request_stop() -> None:
        log_event(log, "shutdown_signal")
        task = loop.create_task(bot.stop())
        stop_tasks.add(task)
        task.add_done_callback(stop_tasks.discard)

    # Windows doesn't support add_signal_handler, so rely on KeyboardInterrupt handling
    handled = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_stop)
            handled.append(sig)
        except NotImplementedError:
            pass

    phase = BotPhase.FAILED
    try:
        await bot.start()
        phase = await bot.wait_closed()
    except (VenueApiError, ConnectivityError) as exc:
        log_event(log, "startup_failed", level=logging.ERROR, error=str(exc))
        phase = bot.phase
    except (asyncio.CancelledError, KeyboardInterrupt):
        log_event(log, "shutdown_signal")
        phase = BotPhase.STOPPED
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)
        if stop_tasks:
            await asyncio.gather(*stop_tasks, return_exceptions=True)
        await bot.stop()
        leftover = await gateway.drain(cfg.shutdown_grace_sec)
        await submitter.close()
        await venue.close()
        log_event(log, "shutdown_complete", phase=phase.name, abandoned_submissions=leftover, stats=bot.get_stats())

    return 0 if phase is BotPhase.STOPPED else 1


def run() -> None:
    try:
        code = asyncio.run(main())
    finally:
        stop_logging()
    sys.exit(code)


if __name__ == "__main__":
    run()
