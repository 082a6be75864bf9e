"""
Runtime configuration for the Apple Mail MCP server, read from the environment.
"""

import os
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT_TIMEOUT = 120.0
DEFAULT_STARTUP_TIMEOUT = 1.0
DEFAULT_STARTUP_POLL_INTERVAL = 0.25
DEFAULT_PORT = 3000

TRANSPORTS = ("stdio", "streamable-http")


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default
    if value <= 0:
        logger.warning(f"Ignoring non-positive {name}={raw!r}, using {default}")
        return default
    return value


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw, 10)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    user_preferences: str = ""
    osascript: str = "osascript"
    script_timeout: float = DEFAULT_SCRIPT_TIMEOUT
    startup_timeout: float = DEFAULT_STARTUP_TIMEOUT
    startup_poll_interval: float = DEFAULT_STARTUP_POLL_INTERVAL
    transport: str = "stdio"
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (``os.environ`` by default)."""
        if env is None:
            env = os.environ

        transport = env.get("TRANSPORT", "stdio").strip().lower() or "stdio"
        if transport == "http":
            transport = "streamable-http"
        if transport not in TRANSPORTS:
            logger.warning(f"Unknown TRANSPORT={transport!r}, falling back to stdio")
            transport = "stdio"

        return cls(
            user_preferences=env.get("USER_EMAIL_PREFERENCES", ""),
            osascript=env.get("APPLE_MAIL_OSASCRIPT", "osascript") or "osascript",
            script_timeout=_float_env(env, "APPLE_MAIL_SCRIPT_TIMEOUT", DEFAULT_SCRIPT_TIMEOUT),
            startup_timeout=_float_env(env, "APPLE_MAIL_STARTUP_TIMEOUT", DEFAULT_STARTUP_TIMEOUT),
            startup_poll_interval=_float_env(
                env, "APPLE_MAIL_STARTUP_POLL_INTERVAL", DEFAULT_STARTUP_POLL_INTERVAL
            ),
            transport=transport,
            host=env.get("HOST", "127.0.0.1") or "127.0.0.1",
            port=_int_env(env, "PORT", DEFAULT_PORT),
            log_level=env.get("LOG_LEVEL", "INFO").upper() or "INFO",
        )


settings = Settings.from_env()
