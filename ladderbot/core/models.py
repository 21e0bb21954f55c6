"""
Venue data model: fills, positions, order intents and the events that drive the strategy.

TradeFill and Position are parsed from stream frames (all numeric fields arrive
as strings). Both carry a field named trade_id, but the ids come from different
id spaces (an execution id vs. a position lease id) and are never compared.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, Optional, Union

from ladderbot.core.errors import ProtocolError
from ladderbot.core.utils import fmt_num, opt_float, to_float, to_int


class OrderType(IntEnum):
    """Venue order_type enum (12 values)."""
    MARKET_BUY = 1
    LIMIT_BUY = 2
    STOP_BUY = 3
    MARKET_SELL = 4
    LIMIT_SELL = 5
    STOP_SELL = 6
    MARKET_EXIT_LONG = 7
    LIMIT_EXIT_LONG = 8
    STOP_EXIT_LONG = 9
    MARKET_EXIT_SHORT = 10
    LIMIT_EXIT_SHORT = 11
    STOP_EXIT_SHORT = 12

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").title()

    @classmethod
    def describe(cls, code: int) -> str:
        try:
            return cls(code).label
        except ValueError:
            return f"Unknown ({code})"


ENTRY_ORDER_TYPES: FrozenSet[int] = frozenset({
    OrderType.MARKET_BUY, OrderType.LIMIT_BUY, OrderType.STOP_BUY,
})
EXIT_ORDER_TYPES: FrozenSet[int] = frozenset(range(OrderType.MARKET_SELL, OrderType.STOP_EXIT_SHORT + 1))


def is_entry(order_type: int) -> bool:
    return order_type in ENTRY_ORDER_TYPES


def is_exit(order_type: int) -> bool:
    return order_type in EXIT_ORDER_TYPES


def _require(raw: Dict[str, Any], key: str) -> Any:
    value = raw.get(key)
    if value is None or value == "":
        raise ProtocolError(f"missing field {key!r}")
    return value


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1")
    return bool(value)


@dataclass(frozen=True)
class TradeFill:
    """A venue-reported execution. Identity is trade_id."""
    trade_id: str
    market_id: str
    order_type: int
    price: float
    size: float
    fee: float
    pnl: float
    timestamp: int
    address: str = ""

    @property
    def order_type_label(self) -> str:
        return OrderType.describe(self.order_type)

    @classmethod
    def from_dict(cls, raw: Any) -> "TradeFill":
        if not isinstance(raw, dict):
            raise ProtocolError(f"fill entry is not an object: {raw!r}")
        return cls(
            trade_id=str(_require(raw, "trade_id")),
            market_id=str(raw.get("market_id") or ""),
            order_type=to_int(raw.get("order_type"), "order_type"),
            price=to_float(raw.get("price"), "price"),
            size=to_float(raw.get("size"), "size"),
            fee=opt_float(raw.get("fee"), "fee") or 0.0,
            pnl=opt_float(raw.get("pnl"), "pnl") or 0.0,
            timestamp=to_int(raw.get("timestamp"), "timestamp"),
            address=str(raw.get("address") or ""),
        )


@dataclass(frozen=True)
class Position:
    """Full current state of one open position leg. Identity is trade_id."""
    trade_id: str
    market_id: str
    is_long: bool
    entry_price: float
    size: float
    leverage: float
    margin: float = 0.0
    liq_price: float = 0.0
    tp: Optional[float] = None
    sl: Optional[float] = None
    last_updated: int = 0

    @classmethod
    def from_dict(cls, raw: Any) -> "Position":
        if not isinstance(raw, dict):
            raise ProtocolError(f"position entry is not an object: {raw!r}")
        last_updated = raw.get("last_updated")
        return cls(
            trade_id=str(_require(raw, "trade_id")),
            market_id=str(raw.get("market_id") or ""),
            is_long=_flag(raw.get("is_long", True)),
            entry_price=to_float(raw.get("entry_price"), "entry_price"),
            size=to_float(raw.get("size"), "size"),
            leverage=to_float(raw.get("leverage"), "leverage"),
            margin=opt_float(raw.get("margin"), "margin") or 0.0,
            liq_price=opt_float(raw.get("liq_price"), "liq_price") or 0.0,
            tp=opt_float(raw.get("tp"), "tp"),
            sl=opt_float(raw.get("sl"), "sl"),
            last_updated=to_int(last_updated, "last_updated") if last_updated not in (None, "") else 0,
        )


class OrderAction(Enum):
    OPEN = "open"
    CLOSE = "close"

    @property
    def direction(self) -> bool:
        """Venue direction flag: false opens a position, true closes one."""
        return self is OrderAction.CLOSE


@dataclass(frozen=True)
class OrderIntent:
    """Follow-up order requested by the strategy; consumed by the execution gateway."""
    market_id: str
    is_long: bool
    action: OrderAction
    size: float
    price: float
    leverage: float
    restriction: Optional[int] = None
    take_profit: Optional[float] = None
    stop_loss: Optional[float] = None

    def to_query_params(self) -> Dict[str, str]:
        params = {
            "marketId": self.market_id,
            "tradeSide": "true" if self.is_long else "false",
            "direction": "true" if self.action.direction else "false",
            "size": fmt_num(self.size),
            "price": fmt_num(self.price),
            "leverage": fmt_num(self.leverage),
        }
        if self.restriction is not None:
            params["restriction"] = str(self.restriction)
        if self.take_profit is not None:
            params["takeProfit"] = fmt_num(self.take_profit)
        if self.stop_loss is not None:
            params["stopLoss"] = fmt_num(self.stop_loss)
        return params

    def describe(self) -> Dict[str, Any]:
        return {
            "market_id": self.market_id,
            "side": "long" if self.is_long else "short",
            "action": self.action.value,
            "size": self.size,
            "price": self.price,
            "leverage": self.leverage,
        }


@dataclass(frozen=True)
class FillObserved:
    """A fill that passed dedup and the time window."""
    fill: TradeFill


@dataclass(frozen=True)
class PositionClosed:
    """A position id that disappeared between two snapshots, with its last-known state."""
    position: Position


StrategyEvent = Union[FillObserved, PositionClosed]
