"""
Position snapshot differ.

Each positions push is the full current set. A position id present in the
previous snapshot and missing from the new one is a closure; new ids are not
reported (openings are seen on the fill channel).
"""

from __future__ import annotations

from typing import Dict, List

from ladderbot.core.models import Position, PositionClosed
from ladderbot.state.bot_state import BotState


def diff_positions(previous: Dict[str, Position], current: List[Position]) -> List[PositionClosed]:
    """Closures between two snapshots, in the previous snapshot's order."""
    current_ids = {p.trade_id for p in current}
    return [PositionClosed(position=p) for tid, p in previous.items() if tid not in current_ids]


def apply_snapshot(state: BotState, current: List[Position]) -> List[PositionClosed]:
    """
    Diff against state.positions, then replace it wholesale with the new list.

    An empty list closes everything tracked; the first snapshot after startup
    (or after a reconnect) closes nothing.
    """
    closed = diff_positions(state.positions, current)
    state.positions = {p.trade_id: p for p in current}
    return closed
