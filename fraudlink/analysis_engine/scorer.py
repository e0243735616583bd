"""
Rule-based cluster risk score and risk classification.

score = clamp(sum(weight_i * metric_i) + amplification(active signals), 0, 1)

A metric is "active" above active_signal_threshold; several independent
active signals add a fixed bonus. Fully explainable; no ML. The model
ensemble blend lives here too so the classifier always sees one number.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from fraudlink.analysis_engine.models import ClusterMetrics, RiskLevel

BIOMETRIC_METRIC = "biometric_session_score"


def _default_weights() -> dict[str, float]:
    return {
        # identity / infrastructure (0.34)
        "fingerprint_reuse_score": 0.12,
        "device_id_reuse_score": 0.08,
        "ip_subnet_asn_reuse_score": 0.08,
        "vpn_presence_score": 0.06,
        # temporal coordination (0.20)
        "time_sync_score": 0.10,
        "burst_window_score": 0.05,
        "synchronized_activity_score": 0.05,
        # network density (0.06)
        "graph_density_score": 0.06,
        # money-flow structure (0.15)
        "funnel_score": 0.05,
        "circular_flow_score": 0.05,
        "pass_through_score": 0.05,
        # automation (0.08)
        "automation_score": 0.08,
        # physical consistency (0.05)
        "physical_consistency_score": 0.05,
        # biometric / session (0.12)
        BIOMETRIC_METRIC: 0.12,
    }


def _default_amplification() -> list[tuple[int, float]]:
    """(minimum active signals, bonus), highest tier first."""
    return [(6, 0.30), (4, 0.20), (3, 0.12), (2, 0.05)]


@dataclass
class ScoringConfig:
    """
    Category weights, amplification tiers, and level thresholds.

    rebalance_unavailable_biometric: when True and a cluster carries no
    biometric/session input, that weight is dropped and the remaining
    weights are rescaled to their original total.
    """

    weights: dict[str, float] = field(default_factory=_default_weights)
    amplification: list[tuple[int, float]] = field(default_factory=_default_amplification)
    active_signal_threshold: float = 0.3

    high_threshold: float = 0.55
    medium_threshold: float = 0.30

    singleton_vpn_score: float = 0.20

    rebalance_unavailable_biometric: bool = False


@dataclass
class EnsembleWeights:
    """Blend of rule score, supervised model, and anomaly detector."""

    rule: float = 0.5
    supervised: float = 0.3
    anomaly: float = 0.2


def _effective_weights(metrics: ClusterMetrics, config: ScoringConfig) -> dict[str, float]:
    weights = dict(config.weights)
    if not config.rebalance_unavailable_biometric or metrics.biometric_signal_available:
        return weights
    total = sum(weights.values())
    dropped = weights.pop(BIOMETRIC_METRIC, 0.0)
    remaining = total - dropped
    if remaining <= 0:
        return weights
    scale = total / remaining
    return {name: w * scale for name, w in weights.items()}


def count_active_signals(metrics: ClusterMetrics, config: ScoringConfig | None = None) -> int:
    config = config or ScoringConfig()
    return sum(1 for value in metrics.scores().values() if value > config.active_signal_threshold)


def amplification_bonus(active_signals: int, config: ScoringConfig | None = None) -> float:
    config = config or ScoringConfig()
    for minimum, bonus in config.amplification:
        if active_signals >= minimum:
            return bonus
    return 0.0


def compute_rule_score(metrics: ClusterMetrics, config: ScoringConfig | None = None) -> float:
    """
    Weighted sum of normalized metrics plus multi-signal amplification, clamped to [0, 1].

    Non-decreasing in every metric.
    """
    config = config or ScoringConfig()
    scores = metrics.scores()
    base = sum(w * scores.get(name, 0.0) for name, w in _effective_weights(metrics, config).items())
    bonus = amplification_bonus(count_active_signals(metrics, config), config)
    return max(0.0, min(1.0, base + bonus))


def blend_ensemble(
    rule_score: float,
    supervised_risk: float,
    anomaly_score: float,
    weights: EnsembleWeights | None = None,
) -> float:
    """rule * 0.5 + supervised * 0.3 + anomaly * 0.2 by default; clamped to [0, 1]."""
    weights = weights or EnsembleWeights()
    blended = (
        rule_score * weights.rule
        + supervised_risk * weights.supervised
        + anomaly_score * weights.anomaly
    )
    return max(0.0, min(1.0, blended))


def classify_risk(score: float, config: ScoringConfig | None = None) -> RiskLevel:
    """score >= 0.55 -> HIGH; >= 0.30 -> MEDIUM; else LOW."""
    config = config or ScoringConfig()
    if score >= config.high_threshold:
        return RiskLevel.HIGH
    if score >= config.medium_threshold:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def singleton_score(used_vpn: bool, config: ScoringConfig | None = None) -> float:
    """Baseline for accounts with no links: fixed VPN score or 0."""
    config = config or ScoringConfig()
    return config.singleton_vpn_score if used_vpn else 0.0
