from ladderbot.orchestrator.bot_orchestrator import (
    VALID_TRANSITIONS,
    BotOrchestrator,
    BotPhase,
    OrchestratorConfig,
)

__all__ = [
    "VALID_TRANSITIONS",
    "BotOrchestrator",
    "BotPhase",
    "OrchestratorConfig",
]
