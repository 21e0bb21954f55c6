"""
Ladder strategy: maps classified events to follow-up order intents.

- entry fill (market/limit/stop buy)  -> close order at fill price + offset
- exit fill (sell / exit long / exit short) -> re-entry at fill price - offset
- position closed -> re-entry at entry price - offset, with the position's leverage

Offset and default leverage are fixed configuration, never derived from market
data. Which of the three rules are active is configuration too.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from ladderbot.core.models import (
    FillObserved,
    OrderAction,
    OrderIntent,
    PositionClosed,
    StrategyEvent,
    is_entry,
    is_exit,
)


RULE_ENTRY_FILL = "entry_fill"
RULE_EXIT_FILL = "exit_fill"
RULE_POSITION_CLOSED = "position_closed"

ALL_RULES: FrozenSet[str] = frozenset({RULE_ENTRY_FILL, RULE_EXIT_FILL, RULE_POSITION_CLOSED})
DEFAULT_RULES: FrozenSet[str] = frozenset({RULE_ENTRY_FILL, RULE_POSITION_CLOSED})


@dataclass(frozen=True)
class LadderConfig:
    offset: float = 100.0
    default_leverage: float = 10.0
    restriction: Optional[int] = 0
    rules: FrozenSet[str] = field(default_factory=lambda: DEFAULT_RULES)

    def __post_init__(self) -> None:
        unknown = set(self.rules) - ALL_RULES
        if unknown:
            raise ValueError(f"unknown ladder rules: {sorted(unknown)}")
        if self.offset <= 0:
            raise ValueError("offset must be > 0")


class LadderStrategy:
    """Stateless; decide() is a pure function of the event and the config."""

    def __init__(self, config: Optional[LadderConfig] = None) -> None:
        self.config = config or LadderConfig()

    def enabled(self, rule: str) -> bool:
        return rule in self.config.rules

    def decide(self, event: StrategyEvent) -> Optional[OrderIntent]:
        if isinstance(event, FillObserved):
            return self._on_fill(event)
        if isinstance(event, PositionClosed):
            return self._on_position_closed(event)
        return None

    def _on_fill(self, event: FillObserved) -> Optional[OrderIntent]:
        fill = event.fill
        cfg = self.config

        if is_entry(fill.order_type):
            if not self.enabled(RULE_ENTRY_FILL):
                return None
            return OrderIntent(
                market_id=fill.market_id,
                is_long=True,
                action=OrderAction.CLOSE,
                size=fill.size,
                price=fill.price + cfg.offset,
                leverage=cfg.default_leverage,
                restriction=cfg.restriction,
            )

        if is_exit(fill.order_type):
            if not self.enabled(RULE_EXIT_FILL):
                return None
            return OrderIntent(
                market_id=fill.market_id,
                is_long=True,
                action=OrderAction.OPEN,
                size=fill.size,
                price=fill.price - cfg.offset,
                leverage=cfg.default_leverage,
                restriction=cfg.restriction,
            )

        return None

    def _on_position_closed(self, event: PositionClosed) -> Optional[OrderIntent]:
        if not self.enabled(RULE_POSITION_CLOSED):
            return None
        pos = event.position
        return OrderIntent(
            market_id=pos.market_id,
            is_long=pos.is_long,
            action=OrderAction.OPEN,
            size=pos.size,
            price=pos.entry_price - self.config.offset,
            leverage=pos.leverage,
            restriction=self.config.restriction,
        )
