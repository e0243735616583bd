"""
Environment variable loading for fraudlink.

- FRAUDLINK_DB_PATH: SQLite file for the persistence sink (default: fraudlink.db)
- FRAUDLINK_MODEL_PATH: joblib file for the trained model ensemble
- FRAUDLINK_PERSIST: 1/0, write clusters to the sink after each run (default: 1)
- FRAUDLINK_ENSEMBLE: 1/0, blend model scores into the rule score (default: 1)
- FRAUDLINK_TIME_WINDOW_SEC: temporal / VPN linking window override
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

# Project root: config is fraudlink/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_DB_FILENAME = "fraudlink.db"
DEFAULT_MODEL_PATH = _PACKAGE_DIR / "ml" / "models" / "cluster_ensemble.joblib"

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def load_fraudlink_env() -> None:
    """Load .env from project root. Safe to call multiple times."""
    from dotenv import load_dotenv

    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH)


def env_flag(name: str, default: bool) -> bool:
    """Read a boolean env var; unknown values fall back to default."""
    raw = (os.getenv(name) or "").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    return default


def env_float(name: str) -> float | None:
    """Read a float env var; None when unset or unparseable."""
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def get_db_path() -> Path:
    """Return FRAUDLINK_DB_PATH or fraudlink.db in cwd."""
    load_fraudlink_env()
    raw = (os.getenv("FRAUDLINK_DB_PATH") or "").strip()
    return Path(raw or DEFAULT_DB_FILENAME)


def get_model_path() -> Path:
    """Return FRAUDLINK_MODEL_PATH or the packaged default path."""
    load_fraudlink_env()
    raw = (os.getenv("FRAUDLINK_MODEL_PATH") or "").strip()
    return Path(raw) if raw else DEFAULT_MODEL_PATH
