"""
Ingestion: raw transaction records to canonical TransactionEvents.
"""

from fraudlink.ingestion.normalizer import (
    TransactionEvent,
    derive_ip_subnet,
    parse_timestamp,
    to_transaction_event,
    to_transaction_events,
)

__all__ = [
    "TransactionEvent",
    "derive_ip_subnet",
    "parse_timestamp",
    "to_transaction_event",
    "to_transaction_events",
]
