"""
Event normalizer: raw transaction records to canonical TransactionEvents.

Maps heterogeneous records (JSON rows, CSV rows loaded with pandas, DB rows)
into one immutable event shape keyed by the sending account. Purely
structural; no linking or scoring logic. Missing or malformed optional
fields become None, never an error.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from fraudlink.fraudlink_logging import get_logger

logger = get_logger(__name__)

_TRUE_STRINGS = ("1", "true", "yes", "y", "t")


@dataclass(frozen=True)
class TransactionEvent:
    """
    Canonical transaction event; one per transaction, keyed by sender.

    Immutable once constructed. Schema is scoring-agnostic.
    """

    id: str
    account_id: str
    """Sending account (from_account_id)."""
    counterparty_id: str | None
    """Receiving account (to_account_id / to_account_number)."""
    amount: float
    timestamp: datetime | None
    """Timezone-aware UTC timestamp; None if the raw value could not be parsed."""
    device_id: str | None = None
    device_fingerprint_id: str | None = None
    ip_address: str | None = None
    ip_subnet: str | None = None
    """First three IPv4 octets + '.0/24'; None for non-IPv4 or missing addresses."""
    asn: str | None = None
    vpn_flag: bool = False
    biometric_score: float | None = None
    """External per-transaction biometric anomaly score in [0, 1], if supplied."""
    session_score: float | None = None
    """External per-transaction session anomaly score in [0, 1], if supplied."""

    @property
    def ts(self) -> float | None:
        """Unix timestamp (seconds) or None."""
        return self.timestamp.timestamp() if self.timestamp is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "counterparty_id": self.counterparty_id,
            "amount": self.amount,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "device_id": self.device_id,
            "device_fingerprint_id": self.device_fingerprint_id,
            "ip_address": self.ip_address,
            "ip_subnet": self.ip_subnet,
            "asn": self.asn,
            "vpn_flag": self.vpn_flag,
            "biometric_score": self.biometric_score,
            "session_score": self.session_score,
        }


def _clean_str(value: Any) -> str | None:
    """Strip strings; empty, None and NaN are absent. Numbers are stringified."""
    if value is None:
        return None
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    return text or None


def _parse_amount(value: Any) -> float:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(amount) or math.isinf(amount):
        return 0.0
    return amount


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return not math.isnan(value) and value != 0
    return str(value).strip().lower() in _TRUE_STRINGS


def _parse_score(value: Any) -> float | None:
    """Optional external score, clamped to [0, 1]."""
    if value is None or isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(score):
        return None
    return max(0.0, min(1.0, score))


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse ISO-8601 strings (with optional 'Z'), datetimes, or epoch seconds.

    Naive values are treated as UTC. Returns None when unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        if math.isnan(value):
            return None
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def derive_ip_subnet(ip_address: str | None) -> str | None:
    """
    Return 'a.b.c.0/24' for a dotted-decimal IPv4 address, else None.

    Octets are read as decimal, so zero-padded forms (10.0.01.5) land in the
    same /24 as their canonical spelling.
    """
    if not ip_address:
        return None
    octets = ip_address.strip().split(".")
    if len(octets) != 4 or not all(o.isdigit() for o in octets):
        return None
    values = [int(o) for o in octets]
    if any(v > 255 for v in values):
        return None
    return f"{values[0]}.{values[1]}.{values[2]}.0/24"


def to_transaction_event(
    raw: dict[str, Any],
    *,
    fingerprint_falls_back_to_device_id: bool = False,
) -> TransactionEvent | None:
    """
    Normalize one raw record. Returns None only when the sender is missing.

    Keys: id, from_account_id, to_account_id | to_account_number, amount,
    timestamp, device_id, device_fingerprint_id, ip_address, asn, vpn_flag,
    biometric_score, session_score.
    """
    account_id = _clean_str(raw.get("from_account_id")) or _clean_str(raw.get("account_id"))
    if account_id is None:
        logger.debug("normalizer_record_skipped_no_sender", record_id=raw.get("id"))
        return None

    timestamp = parse_timestamp(raw.get("timestamp"))
    if timestamp is None and raw.get("timestamp") is not None:
        logger.debug("normalizer_timestamp_unparseable", record_id=raw.get("id"))

    device_id = _clean_str(raw.get("device_id"))
    fingerprint = _clean_str(raw.get("device_fingerprint_id"))
    if fingerprint is None and fingerprint_falls_back_to_device_id:
        fingerprint = device_id

    ip_address = _clean_str(raw.get("ip_address"))
    counterparty = _clean_str(raw.get("to_account_id")) or _clean_str(raw.get("to_account_number"))

    return TransactionEvent(
        id=_clean_str(raw.get("id")) or "",
        account_id=account_id,
        counterparty_id=counterparty,
        amount=_parse_amount(raw.get("amount")),
        timestamp=timestamp,
        device_id=device_id,
        device_fingerprint_id=fingerprint,
        ip_address=ip_address,
        ip_subnet=derive_ip_subnet(ip_address),
        asn=_clean_str(raw.get("asn")),
        vpn_flag=_parse_bool(raw.get("vpn_flag")),
        biometric_score=_parse_score(raw.get("biometric_score")),
        session_score=_parse_score(raw.get("session_score")),
    )


def to_transaction_events(
    raw_records: Iterable[dict[str, Any]],
    *,
    fingerprint_falls_back_to_device_id: bool = False,
) -> list[TransactionEvent]:
    """Normalize a batch, preserving input order and dropping sender-less rows."""
    events: list[TransactionEvent] = []
    skipped = 0
    for raw in raw_records:
        event = to_transaction_event(
            raw, fingerprint_falls_back_to_device_id=fingerprint_falls_back_to_device_id
        )
        if event is None:
            skipped += 1
            continue
        events.append(event)
    if skipped:
        logger.info("normalizer_records_skipped", skipped=skipped, kept=len(events))
    return events
