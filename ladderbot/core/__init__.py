"""
Core package.

Data model, error taxonomy and small shared helpers.
"""

from ladderbot.core.errors import (
    BotError,
    ConfigurationError,
    ConnectivityError,
    ProtocolError,
    SettlementError,
    VenueApiError,
)
from ladderbot.core.models import (
    FillObserved,
    OrderAction,
    OrderIntent,
    OrderType,
    Position,
    PositionClosed,
    StrategyEvent,
    TradeFill,
)
from ladderbot.core.utils import fmt_num

__all__ = [
    "BotError",
    "ConfigurationError",
    "ConnectivityError",
    "ProtocolError",
    "SettlementError",
    "VenueApiError",
    "FillObserved",
    "OrderAction",
    "OrderIntent",
    "OrderType",
    "Position",
    "PositionClosed",
    "StrategyEvent",
    "TradeFill",
    "fmt_num",
]
