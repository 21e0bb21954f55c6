"""
Stream package.

Websocket session management and frame decoding.
"""

from ladderbot.stream.connection import (
    TOPIC_POSITIONS,
    TOPIC_TRADE_HISTORY,
    ConnectionStatus,
    StatusChange,
    StreamConfig,
    StreamConnection,
)
from ladderbot.stream.frames import StreamFrame, parse_frame

__all__ = [
    "TOPIC_POSITIONS",
    "TOPIC_TRADE_HISTORY",
    "ConnectionStatus",
    "StatusChange",
    "StreamConfig",
    "StreamConnection",
    "StreamFrame",
    "parse_frame",
]
