"""Startup configuration validation and runtime settings.

Checks that all required environment variables are set before the server
accepts connections.  Called from bot.py at import time so that a missing
key causes a clear startup failure rather than a silent mid-call crash.
"""

import os
import sys
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

REQUIRED_VARS = [
    "OPENAI_API_KEY",
    "FRONTLINE_BACKEND_URL",
]

OPTIONAL_VARS = [
    "FRONTLINE_BACKEND_API_KEY",
    "LLM_MODEL",
    "LLM_TIMEOUT_S",
    "CLARIFIER_TIMEOUT_S",
    "FRONTLINE_LATE_TURN_THRESHOLD",
    "LOOP_TTL_S",
    "LOOP_SWEEP_INTERVAL_S",
    "LOG_LEVEL",
]


def validate_config() -> None:
    """Validate environment variables at startup.

    Exits the process with a clear error if any required variable is missing
    or empty.  Logs warnings for missing optional variables.
    """
    missing = [var for var in REQUIRED_VARS if not os.getenv(var)]

    if missing:
        print(
            f"\nFATAL: Missing required environment variables:\n"
            f"  {', '.join(missing)}\n"
            f"\nSet them in .env (local) or in the deployment secrets.\n",
            file=sys.stderr,
        )
        sys.exit(1)

    for var in OPTIONAL_VARS:
        if not os.getenv(var):
            logger.warning("Optional env var %s is not set", var)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


@dataclass(frozen=True)
class Settings:
    openai_api_key: str = ""
    backend_url: str = ""
    backend_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_timeout_s: float = 5.0
    clarifier_timeout_s: float = 3.0
    late_turn_threshold: int = 3
    loop_ttl_s: float = 1800.0
    loop_sweep_interval_s: float = 300.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            backend_url=os.getenv("FRONTLINE_BACKEND_URL", ""),
            backend_api_key=os.getenv("FRONTLINE_BACKEND_API_KEY", ""),
            llm_model=os.getenv("LLM_MODEL", "") or "gpt-4o-mini",
            llm_timeout_s=_env_float("LLM_TIMEOUT_S", 5.0),
            clarifier_timeout_s=_env_float("CLARIFIER_TIMEOUT_S", 3.0),
            late_turn_threshold=_env_int("FRONTLINE_LATE_TURN_THRESHOLD", 3),
            loop_ttl_s=_env_float("LOOP_TTL_S", 1800.0),
            loop_sweep_interval_s=_env_float("LOOP_SWEEP_INTERVAL_S", 300.0),
            log_level=os.getenv("LOG_LEVEL", "") or "INFO",
        )
