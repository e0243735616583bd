"""
Application settings resolved from environment variables and .env.

Settings cover the process-level knobs (paths, on/off switches, window
override). Algorithm constants live in the per-component config
dataclasses and are combined by EngineConfig.from_settings().
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from fraudlink.config.env import (
    env_flag,
    env_float,
    get_db_path,
    get_model_path,
    load_fraudlink_env,
)


@dataclass(frozen=True)
class Settings:
    """Process-level settings; immutable once loaded."""

    db_path: Path
    model_path: Path
    persist_enabled: bool = True
    ensemble_enabled: bool = True
    time_window_sec: float | None = None
    """Override for the temporal / VPN linking window; None keeps the default."""


def load_settings() -> Settings:
    """Build Settings from the current environment (no caching)."""
    load_fraudlink_env()
    return Settings(
        db_path=get_db_path(),
        model_path=get_model_path(),
        persist_enabled=env_flag("FRAUDLINK_PERSIST", True),
        ensemble_enabled=env_flag("FRAUDLINK_ENSEMBLE", True),
        time_window_sec=env_float("FRAUDLINK_TIME_WINDOW_SEC"),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return load_settings()
