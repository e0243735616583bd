"""
Analysis engine package: identity linking, clustering, and cluster risk.

The FraudEngine orchestrator lives in fraudlink.analysis_engine.engine and
is imported from there; it depends on the ml and database packages, which
in turn import the models defined here.
"""

from fraudlink.analysis_engine.models import (
    Cluster,
    ClusterMetrics,
    IdentityLink,
    LinkType,
    RiskLevel,
    RiskResult,
)
from fraudlink.analysis_engine.identity_links import LinkingConfig, detect_identity_links
from fraudlink.analysis_engine.union_find import UnionFind, build_clusters
from fraudlink.analysis_engine.metrics import MetricsConfig, calculate_cluster_metrics
from fraudlink.analysis_engine.scorer import (
    EnsembleWeights,
    ScoringConfig,
    amplification_bonus,
    blend_ensemble,
    classify_risk,
    compute_rule_score,
    count_active_signals,
    singleton_score,
)
from fraudlink.analysis_engine.explanation import generate_explanation

__all__ = [
    "Cluster",
    "ClusterMetrics",
    "IdentityLink",
    "LinkType",
    "RiskLevel",
    "RiskResult",
    "LinkingConfig",
    "detect_identity_links",
    "UnionFind",
    "build_clusters",
    "MetricsConfig",
    "calculate_cluster_metrics",
    "EnsembleWeights",
    "ScoringConfig",
    "amplification_bonus",
    "blend_ensemble",
    "classify_risk",
    "compute_rule_score",
    "count_active_signals",
    "singleton_score",
    "generate_explanation",
]
