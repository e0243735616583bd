"""
Pytest fixtures for fraudlink tests. Raw transaction builders and a temporary SQLite DB.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_tx(
    tx_id: str,
    sender: str,
    receiver: str | None = None,
    *,
    offset_sec: float = 0.0,
    amount: float = 100.0,
    **extra,
) -> dict:
    """Raw transaction record shaped like an ingested JSON row."""
    record = {
        "id": tx_id,
        "from_account_id": sender,
        "to_account_id": receiver,
        "amount": amount,
        "timestamp": (BASE_TIME + timedelta(seconds=offset_sec)).isoformat().replace("+00:00", "Z"),
    }
    record.update(extra)
    return record


@pytest.fixture
def tx():
    """The make_tx builder, for tests that prefer a fixture."""
    return make_tx


@pytest.fixture
def cluster_db(tmp_path):
    """Fresh Database on a temporary SQLite file, schema ensured."""
    from fraudlink.database import get_database

    return get_database(tmp_path / "fraudlink_test.db")


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """get_settings() is cached per process; reset around each test."""
    from fraudlink.config.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
