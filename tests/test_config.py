"""
Tests for Settings.load() - environment parsing and validation.
"""

from unittest.mock import MagicMock

import pytest

from ladderbot.config import config as config_module
from ladderbot.config.config import REQUIRED_KEYS, Settings, env_list
from ladderbot.core.errors import ConfigurationError

OPTIONAL_KEYS = [
    "KANA_REST", "KANA_WS", "APTOS_NODE", "BOT_TOPICS", "BOT_RULES", "BOT_FILL_WINDOW",
    "BOT_FILL_LOOKBACK_SEC", "BOT_MAX_TRACKED_FILLS", "BOT_PRICE_OFFSET", "BOT_DEFAULT_LEVERAGE",
    "BOT_RESTRICTION", "BOT_PING_INTERVAL_SEC", "BOT_RECONNECT_BASE_DELAY_SEC",
    "BOT_MAX_RECONNECT_ATTEMPTS", "BOT_HTTP_TIMEOUT", "BOT_SHUTDOWN_GRACE_SEC",
    "BOT_LOG_LEVEL", "BOT_LOG_FILE",
]


@pytest.fixture
def env(monkeypatch):
    for key in OPTIONAL_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("KANA_API_KEY", "api-key")
    monkeypatch.setenv("APTOS_PRIVATE_KEY_HEX", "0x" + "11" * 32)
    monkeypatch.setenv("APTOS_ADDRESS", "0xuser")
    return monkeypatch


class TestRequired:
    @pytest.mark.parametrize("missing", REQUIRED_KEYS)
    def test_missing_key_named(self, env, missing):
        env.delenv(missing)
        with pytest.raises(ConfigurationError, match=missing):
            Settings.load()

    def test_all_missing_listed(self, env):
        for key in REQUIRED_KEYS:
            env.delenv(key)
        with pytest.raises(ConfigurationError) as exc_info:
            Settings.load()
        for key in REQUIRED_KEYS:
            assert key in str(exc_info.value)


class TestDefaults:
    def test_defaults(self, env):
        cfg = Settings.load()
        assert cfg.topics == ["trade_history", "positions"]
        assert cfg.rules == ["entry_fill", "position_closed"]
        assert cfg.fill_window == "strict"
        assert cfg.fill_lookback_sec == 300
        assert cfg.max_tracked_fills == 0
        assert cfg.price_offset == 100.0
        assert cfg.default_leverage == 10.0
        assert cfg.restriction == 0
        assert cfg.ping_interval_sec == 20.0
        assert cfg.reconnect_base_delay_sec == 5.0
        assert cfg.max_reconnect_attempts == 10
        assert cfg.rest_url == "https://perps-tradeapi.kanalabs.io"

    def test_dump_hides_secrets(self, env):
        dumped = Settings.load().dump()
        assert "api_key" not in dumped
        assert "private_key_hex" not in dumped
        assert dumped["user_address"] == "0xuser"

    def test_loaded_event_without_secrets(self, env):
        logged = MagicMock()
        env.setattr(config_module, "log_event", logged)
        Settings.load()
        (call,) = logged.call_args_list
        assert call.args[1] == "config_loaded"
        assert call.kwargs["user_address"] == "0xuser"
        assert "api_key" not in call.kwargs


class TestOverrides:
    def test_overrides(self, env):
        env.setenv("BOT_TOPICS", "positions")
        env.setenv("BOT_RULES", "entry_fill, exit_fill")
        env.setenv("BOT_FILL_WINDOW", "GRACE")
        env.setenv("BOT_PRICE_OFFSET", "50.5")
        env.setenv("BOT_MAX_RECONNECT_ATTEMPTS", "3")
        env.setenv("BOT_LOG_FILE", "")
        cfg = Settings.load()
        assert cfg.topics == ["positions"]
        assert cfg.rules == ["entry_fill", "exit_fill"]
        assert cfg.fill_window == "grace"
        assert cfg.price_offset == 50.5
        assert cfg.max_reconnect_attempts == 3
        assert cfg.log_file is None

    @pytest.mark.parametrize("key,value", [
        ("BOT_TOPICS", "orders"),
        ("BOT_RULES", "martingale"),
        ("BOT_FILL_WINDOW", "loose"),
        ("BOT_PRICE_OFFSET", "0"),
        ("BOT_DEFAULT_LEVERAGE", "-1"),
        ("BOT_MAX_RECONNECT_ATTEMPTS", "-1"),
        ("BOT_FILL_LOOKBACK_SEC", "abc"),
        ("BOT_PING_INTERVAL_SEC", "fast"),
        ("BOT_LOG_LEVEL", "LOUD"),
    ])
    def test_invalid_values(self, env, key, value):
        env.setenv(key, value)
        with pytest.raises(ConfigurationError):
            Settings.load()


class TestEnvList:
    def test_strips_and_drops_empty(self, monkeypatch):
        monkeypatch.setenv("SOME_LIST", " a, ,b ,")
        assert env_list("SOME_LIST", "x") == ["a", "b"]

    def test_default_when_unset(self, monkeypatch):
        monkeypatch.delenv("SOME_LIST", raising=False)
        assert env_list("SOME_LIST", "x,y") == ["x", "y"]
