"""
Error taxonomy for the ladder bot.

Only ConfigurationError is fatal by itself. ConnectivityError is raised from the
initial connect; after that, session drops are reported through status
callbacks. ProtocolError marks a frame (or one entry of it) to drop. VenueApiError
and SettlementError end up as failed order outcomes, never as crashes of the
stream loop.
"""

from __future__ import annotations

from typing import Optional


class BotError(Exception):
    """Base class for all ladder bot errors."""


class ConfigurationError(BotError):
    """Missing or invalid configuration detected at startup."""


class ConnectivityError(BotError):
    """Streaming session could not be opened or was lost."""


class ProtocolError(BotError):
    """Inbound frame or record does not match the expected shape."""


class VenueApiError(BotError):
    """Venue REST call failed or reported success=false."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SettlementError(BotError):
    """Signing, submission or confirmation of a settlement transaction failed."""

    def __init__(self, message: str, transaction_hash: Optional[str] = None) -> None:
        super().__init__(message)
        self.transaction_hash = transaction_hash
