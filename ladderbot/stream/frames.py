"""
Inbound frame decoding.

Frames look like {"message": "<topic>", "data": [...]}. Subscription acks and
topics we never subscribed to decode to None and are ignored silently.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, List, Optional

from ladderbot.core.errors import ProtocolError
from ladderbot.stream.connection import TOPIC_POSITIONS, TOPIC_TRADE_HISTORY

DATA_TOPICS = frozenset({TOPIC_TRADE_HISTORY, TOPIC_POSITIONS})


@dataclass(frozen=True)
class StreamFrame:
    topic: str
    items: List[Any]


def parse_frame(raw: str) -> Optional[StreamFrame]:
    """
    Decode one raw frame.

    Returns None for frames that carry nothing to act on. Raises ProtocolError
    when the frame is not JSON, is not an object, or carries a non-list payload.
    An empty list is a valid payload (for positions it means "no open positions").
    """
    try:
        msg = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ProtocolError(f"frame is not valid JSON: {exc}") from exc
    if not isinstance(msg, dict):
        raise ProtocolError(f"frame is not a JSON object: {type(msg).__name__}")

    topic = msg.get("message")
    if topic not in DATA_TOPICS:
        return None

    data = msg.get("data")
    if data is None:
        return None
    if not isinstance(data, list):
        raise ProtocolError(f"{topic} frame data is not a list: {type(data).__name__}")
    return StreamFrame(topic=topic, items=data)
