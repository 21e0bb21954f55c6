"""
Environment-driven configuration with validation.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import List, Tuple

from dotenv import load_dotenv

from ladderbot.core.errors import ConfigurationError
from ladderbot.infra.logging_cfg import log_event

load_dotenv()

REQUIRED_KEYS: Tuple[str, ...] = ("KANA_API_KEY", "APTOS_PRIVATE_KEY_HEX", "APTOS_ADDRESS")

KNOWN_TOPICS = frozenset({"trade_history", "positions"})
KNOWN_RULES = frozenset({"entry_fill", "exit_fill", "position_closed"})
KNOWN_WINDOW_POLICIES = frozenset({"strict", "grace"})


def env_list(key: str, default: str) -> List[str]:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        raw = default
    return [item.strip() for item in raw.split(",") if item.strip()]


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from exc


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    api_key: str
    rest_url: str
    ws_url: str
    private_key_hex: str
    user_address: str
    node_url: str
    topics: List[str]
    rules: List[str]
    fill_window: str
    fill_lookback_sec: int
    max_tracked_fills: int
    price_offset: float
    default_leverage: float
    restriction: int
    ping_interval_sec: float
    reconnect_base_delay_sec: float
    max_reconnect_attempts: int
    http_timeout: float
    shutdown_grace_sec: float
    log_level: str
    log_file: str | None

    def dump(self) -> dict:
        """Settings without secrets, for the startup log line."""
        data = self.__dict__.copy()
        data.pop("api_key", None)
        data.pop("private_key_hex", None)
        return data

    @classmethod
    def load(cls) -> "Settings":
        missing = [key for key in REQUIRED_KEYS if not os.getenv(key)]
        if missing:
            raise ConfigurationError(f"missing required environment variables: {', '.join(missing)}")

        cfg = cls(
            api_key=os.environ["KANA_API_KEY"],
            rest_url=os.getenv("KANA_REST", "https://perps-tradeapi.kanalabs.io"),
            ws_url=os.getenv("KANA_WS", "wss://perpetuals-indexer-ws-develop.kanalabs.io/ws/"),
            private_key_hex=os.environ["APTOS_PRIVATE_KEY_HEX"],
            user_address=os.environ["APTOS_ADDRESS"],
            node_url=os.getenv("APTOS_NODE", "https://fullnode.mainnet.aptoslabs.com"),
            topics=env_list("BOT_TOPICS", "trade_history,positions"),
            rules=env_list("BOT_RULES", "entry_fill,position_closed"),
            fill_window=os.getenv("BOT_FILL_WINDOW", "strict").strip().lower(),
            fill_lookback_sec=_int_env("BOT_FILL_LOOKBACK_SEC", 300),
            max_tracked_fills=_int_env("BOT_MAX_TRACKED_FILLS", 0),
            price_offset=_float_env("BOT_PRICE_OFFSET", 100.0),
            default_leverage=_float_env("BOT_DEFAULT_LEVERAGE", 10.0),
            restriction=_int_env("BOT_RESTRICTION", 0),
            ping_interval_sec=_float_env("BOT_PING_INTERVAL_SEC", 20.0),
            reconnect_base_delay_sec=_float_env("BOT_RECONNECT_BASE_DELAY_SEC", 5.0),
            max_reconnect_attempts=_int_env("BOT_MAX_RECONNECT_ATTEMPTS", 10),
            http_timeout=_float_env("BOT_HTTP_TIMEOUT", 10.0),
            shutdown_grace_sec=_float_env("BOT_SHUTDOWN_GRACE_SEC", 30.0),
            log_level=os.getenv("BOT_LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("BOT_LOG_FILE", "ladderbot.log") or None,
        )
        cfg._validate()
        _log_loaded(cfg)
        return cfg

    def _validate(self) -> None:
        unknown_topics = set(self.topics) - KNOWN_TOPICS
        if unknown_topics or not self.topics:
            raise ConfigurationError(f"BOT_TOPICS must be a subset of {sorted(KNOWN_TOPICS)}, got {self.topics}")
        unknown_rules = set(self.rules) - KNOWN_RULES
        if unknown_rules:
            raise ConfigurationError(f"BOT_RULES must be a subset of {sorted(KNOWN_RULES)}, got {self.rules}")
        if self.fill_window not in KNOWN_WINDOW_POLICIES:
            raise ConfigurationError(f"BOT_FILL_WINDOW must be 'strict' or 'grace', got {self.fill_window!r}")
        if self.fill_lookback_sec < 0:
            raise ConfigurationError("BOT_FILL_LOOKBACK_SEC must be >= 0")
        if self.max_tracked_fills < 0:
            raise ConfigurationError("BOT_MAX_TRACKED_FILLS must be >= 0")
        if self.price_offset <= 0:
            raise ConfigurationError("BOT_PRICE_OFFSET must be > 0")
        if self.default_leverage <= 0:
            raise ConfigurationError("BOT_DEFAULT_LEVERAGE must be > 0")
        if self.ping_interval_sec <= 0:
            raise ConfigurationError("BOT_PING_INTERVAL_SEC must be > 0")
        if self.reconnect_base_delay_sec < 0:
            raise ConfigurationError("BOT_RECONNECT_BASE_DELAY_SEC must be >= 0")
        if self.max_reconnect_attempts < 0:
            raise ConfigurationError("BOT_MAX_RECONNECT_ATTEMPTS must be >= 0")
        if self.http_timeout <= 0:
            raise ConfigurationError("BOT_HTTP_TIMEOUT must be > 0")
        if self.log_level not in logging.getLevelNamesMapping():
            raise ConfigurationError(f"BOT_LOG_LEVEL {self.log_level!r} is not a logging level")
        if "exit_fill" in self.rules and "position_closed" in self.rules:
            logging.getLogger("ladderbot").warning(
                "WARNING: exit_fill and position_closed are both enabled; "
                "one exit can trigger two re-entry orders."
            )


def _log_loaded(cfg: Settings) -> None:
    """Log the effective settings once at startup so overrides are obvious."""
    log_event(logging.getLogger("ladderbot"), "config_loaded", **cfg.dump())
