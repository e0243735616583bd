"""
Domain models for persisted cluster rows.

No ORM coupling so backends stay swappable.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class FraudClusterRecord:
    """One stored cluster row (fraud_clusters table)."""

    cluster_label: str
    account_ids: list[str]
    risk_score: float
    risk_level: str
    metrics: dict[str, Any] = field(default_factory=dict)
    """Normalized metrics plus ml_score / anomaly_score."""
    explanation: str = ""
    edge_count: int = 0
    id: int | None = None
    created_at: int | None = None
    """Unix timestamp (seconds) when the row was written."""

    def to_row(self) -> tuple[str, str, float, str, str, str, int]:
        """Column values for insert, JSON-encoding list/dict fields."""
        return (
            self.cluster_label,
            json.dumps(self.account_ids),
            float(self.risk_score),
            self.risk_level,
            json.dumps(self.metrics, sort_keys=True),
            self.explanation,
            int(self.edge_count),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "cluster_label": self.cluster_label,
            "account_ids": self.account_ids,
            "risk_score": self.risk_score,
            "risk_level": self.risk_level,
            "metrics": self.metrics,
            "explanation": self.explanation,
            "edge_count": self.edge_count,
            "created_at": self.created_at,
        }
