"""
Logging for the ladder bot.

Components log through log_event(): the message is the event as JSON, and the
same payload rides on the record so handlers never re-parse it.

build_logger() attaches:
- a Rich console handler, behind a RepeatFilter that mutes snapshot replays and outage noise
- optionally a JSON-lines file, written off the event loop by a QueueListener thread
"""

from __future__ import annotations

import json
import logging
import queue
import time
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, Optional, Tuple

from rich.logging import RichHandler

LOGGER_NAME = "ladderbot"
PAYLOAD_ATTR = "event_payload"

# Events that repeat while the venue replays snapshots or the stream is down,
# mapped to the payload fields that make two occurrences "the same".
REPEATING_EVENTS: Dict[str, Tuple[str, ...]] = {
    "fill_duplicate": ("trade_id",),
    "fill_too_old": ("trade_id",),
    "frame_dropped": ("topic", "error"),
    "stream_reconnect_failed": ("error",),
    "stream_close_error": (),
}

_listener: Optional[QueueListener] = None


def event_payload(record: logging.LogRecord) -> Optional[Dict[str, Any]]:
    return getattr(record, PAYLOAD_ATTR, None)


class EventFormatter(logging.Formatter):
    """File format: timestamp and level, then the event fields at top level."""

    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {"ts": round(record.created, 3), "level": record.levelname}
        payload = event_payload(record)
        if payload is None:
            line["msg"] = record.getMessage()
        else:
            line.update(payload)
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, separators=(",", ":"), default=str)


class RepeatFilter(logging.Filter):
    """
    Passes the first record for each (event, key fields) pair, then mutes the
    same pair for cooldown_sec. Records that are not repeating events always pass.
    """

    def __init__(
        self,
        cooldown_sec: float = 30.0,
        events: Optional[Dict[str, Tuple[str, ...]]] = None,
        clock=time.monotonic,
    ) -> None:
        super().__init__()
        self._cooldown = cooldown_sec
        self._events = REPEATING_EVENTS if events is None else events
        self._clock = clock
        self._last_seen: Dict[Tuple[Any, ...], float] = {}
        self.muted = 0

    def filter(self, record: logging.LogRecord) -> bool:
        payload = event_payload(record)
        if payload is None:
            return True
        event = payload.get("event")
        fields = self._events.get(event)
        if fields is None:
            return True

        key = (event,) + tuple(str(payload.get(f, "")) for f in fields)
        now = self._clock()
        last = self._last_seen.get(key)
        if last is not None and now - last < self._cooldown:
            self.muted += 1
            return False
        self._last_seen[key] = now
        return True


def build_logger(
    name: str = LOGGER_NAME,
    level: int = logging.INFO,
    file_path: Optional[str] = "ladderbot.log",
    throttle: bool = True,
) -> logging.Logger:
    """
    Build the process logger. Calling it again only adjusts levels.

    Args:
        name: Logger name
        level: Minimum log level
        file_path: JSON-lines log file (None or "" disables file logging)
        throttle: Put a RepeatFilter in front of the console
    """
    global _listener

    logger = logging.getLogger(name)
    logger.setLevel(level)

    if logger.handlers:
        for h in logger.handlers:
            h.setLevel(level)
        return logger

    console = RichHandler(show_time=True, show_level=True, show_path=False, markup=False)
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(message)s"))
    if throttle:
        console.addFilter(RepeatFilter())
    logger.addHandler(console)

    if file_path:
        file_handler = logging.FileHandler(file_path)
        file_handler.setFormatter(EventFormatter())
        records: "queue.Queue[logging.LogRecord]" = queue.Queue()
        handoff = QueueHandler(records)
        handoff.setLevel(level)
        logger.addHandler(handoff)
        _listener = QueueListener(records, file_handler)
        _listener.start()

    logger.propagate = False
    return logger


def stop_logging() -> None:
    """Flush the file queue and close the file. Safe when no file was configured."""
    global _listener
    if _listener is None:
        return
    listener, _listener = _listener, None
    listener.stop()
    for h in listener.handlers:
        h.close()


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **data: Any) -> None:
    """
    Log a structured event.

    Usage:
        log_event(log, "fill_observed", trade_id="f1", price=50000.0)
    """
    payload = {"event": event, **data}
    logger.log(level, json.dumps(payload, default=str), extra={PAYLOAD_ATTR: payload})
