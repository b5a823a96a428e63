"""Environment-driven runtime settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_THINK_DELAY = 0.6
DEFAULT_SESSION_TTL = 60 * 30  # 30 minutes


def _env(environ: Mapping[str, str], name: str, default: str) -> str:
    value = environ.get(name)
    if value is not None and value.strip() != "":
        return value.strip()
    return default


def _env_number(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = _env(environ, name, "")
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", name, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring %s=%r: must not be negative, using %s", name, raw, default)
        return default
    return value


@dataclass(frozen=True)
class Settings:
    host: str = "0.0.0.0"
    port: int = 8000
    think_delay: float = DEFAULT_THINK_DELAY
    session_ttl: float = DEFAULT_SESSION_TTL
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            host=_env(env, "TICTACTOE_HOST", cls.host),
            port=int(_env_number(env, "TICTACTOE_PORT", cls.port)),
            think_delay=_env_number(env, "TICTACTOE_THINK_DELAY", cls.think_delay),
            session_ttl=_env_number(env, "TICTACTOE_SESSION_TTL", cls.session_ttl),
            log_level=_env(env, "LOG_LEVEL", cls.log_level).upper(),
        )
