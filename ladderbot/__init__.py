"""
ladderbot: stream-driven ladder trading bot for a perpetuals venue.

Watches the venue's trade-history and positions streams and answers each
realized entry, exit or position closure with a limit order a fixed offset away.
"""

__version__ = "0.1.0"
