"""
Execution layer.

- FillDeduplicator: dedup + time window for inbound fills
- position_differ: closures between two position snapshots
- ExecutionGateway: background execution of order intents
- OrderSubmitter / AptosOrderSubmitter: settlement of venue payloads
"""

from ladderbot.execution.execution_gateway import (
    ExecutionGateway,
    ExecutionGatewayConfig,
    OrderOutcome,
)
from ladderbot.execution.fill_deduplicator import (
    FillDeduplicator,
    FillDeduplicatorConfig,
    FillVerdict,
    WindowPolicy,
)
from ladderbot.execution.order_submitter import (
    AptosOrderSubmitter,
    OrderSubmitter,
    SubmitResult,
    to_entry_function_payload,
)
from ladderbot.execution.position_differ import apply_snapshot, diff_positions

__all__ = [
    "ExecutionGateway",
    "ExecutionGatewayConfig",
    "OrderOutcome",
    "FillDeduplicator",
    "FillDeduplicatorConfig",
    "FillVerdict",
    "WindowPolicy",
    "AptosOrderSubmitter",
    "OrderSubmitter",
    "SubmitResult",
    "to_entry_function_payload",
    "apply_snapshot",
    "diff_positions",
]
