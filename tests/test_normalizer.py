"""
Tests for the event normalizer (raw records -> TransactionEvent).
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from fraudlink.ingestion.normalizer import (
    derive_ip_subnet,
    parse_timestamp,
    to_transaction_event,
    to_transaction_events,
)


def test_full_record_normalized(tx):
    """All known keys map onto the event; subnet is derived from the IP."""
    raw = tx(
        "t1", "A", "B",
        amount="250.5",
        device_id="dev-1",
        device_fingerprint_id="fp-1",
        ip_address="10.1.2.3",
        asn="AS123",
        vpn_flag="true",
        biometric_score=0.4,
        session_score="0.6",
    )
    ev = to_transaction_event(raw)
    assert ev is not None
    assert ev.id == "t1"
    assert ev.account_id == "A"
    assert ev.counterparty_id == "B"
    assert ev.amount == 250.5
    assert ev.timestamp == datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert ev.device_id == "dev-1"
    assert ev.device_fingerprint_id == "fp-1"
    assert ev.ip_subnet == "10.1.2.0/24"
    assert ev.asn == "AS123"
    assert ev.vpn_flag is True
    assert ev.biometric_score == 0.4
    assert ev.session_score == 0.6


def test_missing_sender_skipped(tx):
    """Records without a sender produce no event."""
    raw = tx("t1", "A", "B")
    raw["from_account_id"] = None
    assert to_transaction_event(raw) is None
    assert to_transaction_events([raw, tx("t2", "C", "D")])[0].account_id == "C"


def test_to_account_number_fallback(tx):
    """to_account_number is used when to_account_id is absent."""
    raw = tx("t1", "A", None, to_account_number="ACC-9")
    ev = to_transaction_event(raw)
    assert ev.counterparty_id == "ACC-9"


def test_nan_fields_are_absent(tx):
    """NaN (pandas empty CSV cells) is treated as a missing value."""
    nan = float("nan")
    raw = tx("t1", "A", nan, device_id=nan, ip_address=nan, vpn_flag=nan, biometric_score=nan)
    ev = to_transaction_event(raw)
    assert ev.counterparty_id is None
    assert ev.device_id is None
    assert ev.ip_address is None
    assert ev.ip_subnet is None
    assert ev.vpn_flag is False
    assert ev.biometric_score is None


def test_nan_sender_falls_back_to_account_id(tx):
    ev = to_transaction_event(tx("t1", float("nan"), "B", account_id="A"))
    assert ev.account_id == "A"


def test_fingerprint_fallback_flag(tx):
    """Device id stands in for a missing fingerprint only when enabled."""
    raw = tx("t1", "A", "B", device_id="dev-1")
    assert to_transaction_event(raw).device_fingerprint_id is None
    ev = to_transaction_event(raw, fingerprint_falls_back_to_device_id=True)
    assert ev.device_fingerprint_id == "dev-1"


def test_scores_clamped(tx):
    """External scores are clamped to [0, 1]."""
    ev = to_transaction_event(tx("t1", "A", "B", biometric_score=1.7, session_score=-0.2))
    assert ev.biometric_score == 1.0
    assert ev.session_score == 0.0


def test_bad_amount_becomes_zero(tx):
    ev = to_transaction_event(tx("t1", "A", "B", amount="not-a-number"))
    assert ev.amount == 0.0


@pytest.mark.parametrize(
    "value,expected",
    [
        ("2024-03-01T12:00:00Z", datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)),
        ("2024-03-01T14:00:00+02:00", datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)),
        ("2024-03-01T12:00:00", datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)),
        (0, datetime(1970, 1, 1, tzinfo=timezone.utc)),
        ("garbage", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == expected


def test_unparseable_timestamp_keeps_event(tx):
    """A bad timestamp does not drop the record; the event has no time."""
    ev = to_transaction_event(tx("t1", "A", "B", timestamp="yesterday"))
    assert ev is not None
    assert ev.timestamp is None
    assert ev.ts is None


@pytest.mark.parametrize(
    "ip,expected",
    [
        ("192.168.1.77", "192.168.1.0/24"),
        ("10.0.01.5", "10.0.1.0/24"),
        ("256.1.1.1", None),
        ("1.2.3", None),
        ("2001:db8::1", None),
        ("not-an-ip", None),
        (None, None),
    ],
)
def test_derive_ip_subnet(ip, expected):
    assert derive_ip_subnet(ip) == expected
