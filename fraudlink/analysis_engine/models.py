"""
Data models for analysis engine output.

Identity links, per-cluster normalized metrics, clusters, and per-account
risk results. All are derived, read-only artifacts of one engine run.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class LinkType(str, Enum):
    FINGERPRINT = "fingerprint"
    DEVICE_ID = "device_id"
    IP = "ip"
    SUBNET = "subnet"
    ASN = "asn"
    VPN = "vpn"
    TIME = "time"
    BEHAVIOR = "behavior"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class IdentityLink:
    """
    Undirected, typed edge between two accounts.

    Canonical form: account_a < account_b. At most one link per
    (pair, link_type); never mutated after creation.
    """

    account_a: str
    account_b: str
    link_type: LinkType
    strength: float
    """Rule-specific strength in [0, 1]."""
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    """Rule evidence (shared value, time difference, similarity)."""

    @property
    def key(self) -> tuple[str, str, LinkType]:
        return (self.account_a, self.account_b, self.link_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_a": self.account_a,
            "account_b": self.account_b,
            "link_type": self.link_type.value,
            "strength": self.strength,
            "metadata": self.metadata,
        }


@dataclass
class ClusterMetrics:
    """
    Normalized suspicion signals for one cluster; every score is in [0, 1].

    biometric_signal_available is not a score: False when no member
    transaction carried an external biometric/session input.
    """

    fingerprint_reuse_score: float = 0.0
    device_id_reuse_score: float = 0.0
    ip_subnet_asn_reuse_score: float = 0.0
    vpn_presence_score: float = 0.0
    time_sync_score: float = 0.0
    graph_density_score: float = 0.0
    burst_window_score: float = 0.0
    synchronized_activity_score: float = 0.0
    funnel_score: float = 0.0
    circular_flow_score: float = 0.0
    pass_through_score: float = 0.0
    automation_score: float = 0.0
    physical_consistency_score: float = 0.0
    biometric_session_score: float = 0.0
    biometric_signal_available: bool = False

    def scores(self) -> dict[str, float]:
        """The named scores only, in declaration order."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name.endswith("_score")
        }

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = dict(self.scores())
        out["biometric_signal_available"] = self.biometric_signal_available
        return out


@dataclass
class Cluster:
    """
    Connected component of the identity-link graph.

    account_ids: sorted member accounts.
    links: links whose both endpoints are members.
    risk_score: ensemble score; rule_score / ml_score / anomaly_score are its parts.
    """

    id: str
    account_ids: list[str]
    links: list[IdentityLink]
    metrics: ClusterMetrics
    label: str = ""
    rule_score: float = 0.0
    ml_score: float = 0.0
    anomaly_score: float = 0.0
    risk_score: float = 0.0
    risk_level: RiskLevel = RiskLevel.LOW
    explanation: str = ""
    model_flags: list[str] = field(default_factory=list)

    @property
    def link_types(self) -> set[LinkType]:
        return {link.link_type for link in self.links}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "account_ids": list(self.account_ids),
            "links": [link.to_dict() for link in self.links],
            "metrics": self.metrics.to_dict(),
            "rule_score": self.rule_score,
            "ml_score": self.ml_score,
            "anomaly_score": self.anomaly_score,
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "explanation": self.explanation,
            "model_flags": list(self.model_flags),
        }


@dataclass(frozen=True)
class RiskResult:
    """Final per-account output; cluster_id is None for singleton accounts."""

    risk_score: float
    risk_level: RiskLevel
    cluster_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "cluster_id": self.cluster_id,
        }
