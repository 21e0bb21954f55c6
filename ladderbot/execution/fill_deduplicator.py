"""
FillDeduplicator: classifies each inbound fill as new, duplicate or too old.

Handles:
- Identity tracking in BotState.seen_fill_ids (recorded before any window check)
- Acceptance watermark, strict (start time) or grace (start time - lookback)
- Optional bounded FIFO eviction of the seen-set
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from ladderbot.core.models import TradeFill
from ladderbot.infra.logging_cfg import log_event
from ladderbot.state.bot_state import BotState

log = logging.getLogger("ladderbot")


class FillVerdict(Enum):
    ACCEPT = "accept"
    TOO_OLD = "too_old"
    DUPLICATE = "duplicate"


class WindowPolicy(Enum):
    STRICT = "strict"
    GRACE = "grace"


@dataclass
class FillDeduplicatorConfig:
    """Configuration for FillDeduplicator."""
    policy: WindowPolicy = WindowPolicy.STRICT
    lookback_sec: int = 300

    # 0 keeps every id for the process lifetime
    max_tracked: int = 0

    log_event_callback: Optional[Callable[..., None]] = None


class FillDeduplicator:
    """
    Fill dedup + time window over a BotState.

    Single asyncio loop only; classify() is synchronous so check-and-record
    is atomic with respect to other frames.
    """

    def __init__(self, state: BotState, config: Optional[FillDeduplicatorConfig] = None) -> None:
        self.state = state
        self.config = config or FillDeduplicatorConfig()
        self._log_event = self.config.log_event_callback or self._default_log
        self._stats = {
            "accepted": 0,
            "duplicates": 0,
            "too_old": 0,
            "evictions": 0,
        }

    def _default_log(self, event: str, level: int = logging.DEBUG, **kwargs: Any) -> None:
        log_event(log, event, level=level, **kwargs)

    @property
    def watermark(self) -> int:
        """Minimum fill timestamp that is acted on."""
        if self.config.policy is WindowPolicy.GRACE:
            return self.state.start_ts - self.config.lookback_sec
        return self.state.start_ts

    def classify(self, fill: TradeFill) -> FillVerdict:
        """
        Classify a fill and record its id.

        The id goes into the seen-set on first sight even when the fill is too
        old, so a stale fill redelivered later is reported as DUPLICATE.
        """
        seen = self.state.seen_fill_ids
        if fill.trade_id in seen:
            self._stats["duplicates"] += 1
            self._log_event("fill_duplicate", trade_id=fill.trade_id)
            return FillVerdict.DUPLICATE

        self._record(fill)

        if fill.timestamp < self.watermark:
            self._stats["too_old"] += 1
            self._log_event(
                "fill_too_old",
                trade_id=fill.trade_id,
                timestamp=fill.timestamp,
                watermark=self.watermark,
            )
            return FillVerdict.TOO_OLD

        self._stats["accepted"] += 1
        return FillVerdict.ACCEPT

    def _record(self, fill: TradeFill) -> None:
        seen = self.state.seen_fill_ids
        cap = self.config.max_tracked
        if cap > 0:
            while len(seen) >= cap:
                # dicts keep insertion order, so the first key is the oldest
                oldest = next(iter(seen))
                del seen[oldest]
                self._stats["evictions"] += 1
                self._log_event("fill_id_evicted", trade_id=oldest, max_tracked=cap)
        seen[fill.trade_id] = fill.timestamp

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._stats,
            "tracked": len(self.state.seen_fill_ids),
            "policy": self.config.policy.value,
            "watermark": self.watermark,
        }
