# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Runtime configuration.

Everything is read from the environment at call time so tests (and the
standalone host after loading .env) can change it without re-importing.

Environment variables:
    HOME: Home directory holding .pi/agent (falls back to the OS home)
    PI_CODING_AGENT_DIR: Agent directory override (default: ~/.pi/agent)
    CODEX_HOME: Codex CLI home (default: ~/.codex)
    Z_AI_API_KEY: Z.AI key used when auth.json has no zai entry
    PI_USAGE_FETCH_TIMEOUT: Per-request timeout for the usage panel (default: 10)
    PI_SELECT_FETCH_TIMEOUT: Per-request timeout for account pickers (default: 5)
    PI_USAGE_RACE_TIMEOUT: Ceiling for one provider's usage group (default: 15)
    PI_STATUS_RACE_TIMEOUT: Ceiling for a status page fetch (default: 8)
    PI_COST_DEFAULT_DAYS: Days covered by the cost panel's month tab (default: 30)
"""

import logging
import os
from pathlib import Path

lib_logger = logging.getLogger("pi_extensions")


def _env_int(name: str, default: int) -> int:
    """Parse an integer from environment variable with fallback to default."""
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        lib_logger.warning(f"Invalid {name} value, using default {default}")
        return default


def _env_float(name: str, default: float) -> float:
    """Parse a float from environment variable with fallback to default."""
    try:
        return float(os.environ.get(name, str(default)))
    except ValueError:
        lib_logger.warning(f"Invalid {name} value, using default {default}")
        return default


# =============================================================================
# PATHS
# =============================================================================


def home_dir() -> Path:
    home = os.environ.get("HOME")
    return Path(home) if home else Path.home()


def agent_dir() -> Path:
    """The host's agent directory (~/.pi/agent)."""
    override = os.environ.get("PI_CODING_AGENT_DIR")
    if override:
        return Path(override).expanduser()
    return home_dir() / ".pi" / "agent"


def auth_path() -> Path:
    return agent_dir() / "auth.json"


def sessions_dir() -> Path:
    return agent_dir() / "sessions"


def codex_home() -> Path:
    value = os.environ.get("CODEX_HOME")
    return Path(value) if value else home_dir() / ".codex"


# =============================================================================
# TIMEOUTS (seconds)
# =============================================================================


def usage_fetch_timeout() -> float:
    return _env_float("PI_USAGE_FETCH_TIMEOUT", 10.0)


def select_fetch_timeout() -> float:
    return _env_float("PI_SELECT_FETCH_TIMEOUT", 5.0)


def usage_race_timeout() -> float:
    return _env_float("PI_USAGE_RACE_TIMEOUT", 15.0)


def status_race_timeout() -> float:
    return _env_float("PI_STATUS_RACE_TIMEOUT", 8.0)


# Email lookup against api.openai.com is a best-effort extra call
EMAIL_LOOKUP_TIMEOUT = 3.0


def default_cost_days() -> int:
    """Days scanned by the cost panel's month tab."""
    return max(1, _env_int("PI_COST_DEFAULT_DAYS", 30))
