"""
Configuration package.

Settings are loaded from the environment (and .env) at startup.
"""

from ladderbot.config.config import Settings, env_list

__all__ = [
    "Settings",
    "env_list",
]
