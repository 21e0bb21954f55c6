"""
Strategy package.

The ladder rules that turn fills and position closures into order intents.
"""

from ladderbot.strategy.ladder import (
    ALL_RULES,
    DEFAULT_RULES,
    RULE_ENTRY_FILL,
    RULE_EXIT_FILL,
    RULE_POSITION_CLOSED,
    LadderConfig,
    LadderStrategy,
)

__all__ = [
    "ALL_RULES",
    "DEFAULT_RULES",
    "RULE_ENTRY_FILL",
    "RULE_EXIT_FILL",
    "RULE_POSITION_CLOSED",
    "LadderConfig",
    "LadderStrategy",
]
