"""
Infrastructure package.

Logging setup and the venue REST client.
"""

from ladderbot.infra.logging_cfg import (
    LOGGER_NAME,
    EventFormatter,
    RepeatFilter,
    build_logger,
    log_event,
    stop_logging,
)
from ladderbot.infra.venue_client import VenueClient

__all__ = [
    "LOGGER_NAME",
    "EventFormatter",
    "RepeatFilter",
    "build_logger",
    "log_event",
    "stop_logging",
    "VenueClient",
]
