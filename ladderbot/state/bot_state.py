"""
Per-process bot state.

Owned by the orchestrator and mutated only from the event loop. Nothing here is
persisted; a restart starts with a fresh start_ts and empty collections.
"""

from __future__ import annotations

from typing import Dict, Optional

from ladderbot.core.models import Position


class BotState:
    def __init__(self, address: str, start_ts: int) -> None:
        self.address = address
        self._start_ts = start_ts
        self.profile_address: Optional[str] = None
        self.connected = False
        self.reconnect_attempts = 0
        # trade_id -> fill timestamp, insertion ordered (oldest first)
        self.seen_fill_ids: Dict[str, int] = {}
        # trade_id -> last-known position
        self.positions: Dict[str, Position] = {}

    @property
    def start_ts(self) -> int:
        """Unix seconds at startup. Fixed for the life of the process."""
        return self._start_ts

    def reset_for_reconnect(self) -> None:
        """
        Forget session-scoped state after the stream drops.

        The positions map is cleared so the first snapshot of the new session
        becomes the baseline. seen_fill_ids and start_ts survive.
        """
        self.connected = False
        self.positions.clear()

    def snapshot(self) -> Dict[str, object]:
        return {
            "address": self.address,
            "profile_address": self.profile_address,
            "start_ts": self._start_ts,
            "connected": self.connected,
            "reconnect_attempts": self.reconnect_attempts,
            "seen_fills": len(self.seen_fill_ids),
            "open_positions": sorted(self.positions),
        }
