"""
Fraud cluster engine: one synchronous pass over a transaction snapshot.

raw records -> events -> identity links -> clusters -> per cluster:
metrics -> rule score -> model ensemble -> classification -> explanation;
plus a risk result for every account in the snapshot and an optional
fire-and-forget write of the clusters to a sink.

The engine holds no mutable state between runs. The only shared
collaborator is the injected ModelRegistry, whose one-time training is
lock-guarded. Model failures degrade to zero model scores; sink failures
are logged by the sink thread.
"""

from __future__ import annotations

import hashlib
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from fraudlink.analysis_engine.explanation import generate_explanation
from fraudlink.analysis_engine.identity_links import LinkingConfig, detect_identity_links
from fraudlink.analysis_engine.metrics import MetricsConfig, calculate_cluster_metrics
from fraudlink.analysis_engine.models import Cluster, IdentityLink, RiskLevel, RiskResult
from fraudlink.analysis_engine.scorer import (
    EnsembleWeights,
    ScoringConfig,
    blend_ensemble,
    classify_risk,
    compute_rule_score,
    singleton_score,
)
from fraudlink.analysis_engine.union_find import build_clusters
from fraudlink.config.settings import Settings
from fraudlink.database.sink import ClusterSink, persist_clusters_async
from fraudlink.fraudlink_logging import bind_cluster, get_logger
from fraudlink.ingestion.normalizer import TransactionEvent, to_transaction_events
from fraudlink.ml.features import build_cluster_features
from fraudlink.ml.registry import ModelPrediction, ModelRegistry

logger = get_logger(__name__)


@dataclass
class EngineConfig:
    """All tunable constants for one engine, grouped per component."""

    linking: LinkingConfig = field(default_factory=LinkingConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    ensemble_weights: EnsembleWeights = field(default_factory=EnsembleWeights)

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineConfig":
        config = cls()
        if settings.time_window_sec is not None and settings.time_window_sec > 0:
            config.linking.time_window_sec = settings.time_window_sec
        return config


@dataclass
class EngineResult:
    """
    clusters: highest risk first.
    account_risk: one RiskResult per account seen as sender or counterparty.
    persist_thread: sink writer thread, None when no sink was given.
    """

    clusters: list[Cluster]
    links: list[IdentityLink]
    account_risk: dict[str, RiskResult]
    persist_thread: threading.Thread | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "clusters": [c.to_dict() for c in self.clusters],
            "account_risk": {acc: r.to_dict() for acc, r in self.account_risk.items()},
            "link_count": len(self.links),
        }


def build_cluster_id(account_ids: Iterable[str]) -> str:
    """Deterministic cluster id from the sorted member set."""
    members = sorted(account_ids)
    if not members:
        return "cluster_0"
    digest = hashlib.sha256(" ".join(members).encode()).hexdigest()[:12]
    return f"cluster_{digest}"


def cluster_label(index: int) -> str:
    """0 -> 'Cluster A', 25 -> 'Cluster Z', 26 -> 'Cluster AA'."""
    letters = ""
    index += 1
    while index > 0:
        index, rem = divmod(index - 1, 26)
        letters = chr(65 + rem) + letters
    return f"Cluster {letters}"


def _accounts_in_order(events: list[TransactionEvent]) -> list[str]:
    seen: dict[str, None] = {}
    for ev in events:
        seen.setdefault(ev.account_id, None)
        if ev.counterparty_id is not None:
            seen.setdefault(ev.counterparty_id, None)
    return list(seen)


class FraudEngine:
    """
    Cluster detection and risk scoring over finite snapshots.

    model_registry None disables the ensemble: model scores are 0 and the
    final score is rule_weight * rule score. sink None skips persistence.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        model_registry: ModelRegistry | None = None,
        sink: ClusterSink | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.model_registry = model_registry
        self.sink = sink

    def _predict(self, cluster: Cluster, events: list[TransactionEvent]) -> ModelPrediction:
        if self.model_registry is None:
            return ModelPrediction()
        try:
            features = build_cluster_features(cluster.account_ids, cluster.metrics, events)
            return self.model_registry.predict(features.feature_vector)
        except Exception as e:
            logger.warning("model_inference_failed", cluster_id=cluster.id, error=str(e))
            return ModelPrediction()

    def score_cluster(
        self,
        account_ids: list[str],
        links: list[IdentityLink],
        events: list[TransactionEvent],
        account_names: Mapping[str, str] | None = None,
    ) -> Cluster:
        """Metrics, rule score, ensemble, level, and explanation for one component."""
        cfg = self.config
        cluster_id = build_cluster_id(account_ids)
        metrics = calculate_cluster_metrics(account_ids, links, events, cfg.metrics)
        cluster = Cluster(id=cluster_id, account_ids=list(account_ids), links=list(links), metrics=metrics)
        cluster.rule_score = compute_rule_score(metrics, cfg.scoring)

        prediction = self._predict(cluster, events)
        cluster.ml_score = prediction.supervised_risk
        cluster.anomaly_score = prediction.anomaly_score
        cluster.model_flags = list(prediction.explanation_flags)
        cluster.risk_score = blend_ensemble(
            cluster.rule_score, cluster.ml_score, cluster.anomaly_score, cfg.ensemble_weights
        )
        cluster.risk_level = classify_risk(cluster.risk_score, cfg.scoring)
        cluster.explanation = generate_explanation(
            cluster.account_ids,
            cluster.links,
            metrics,
            cluster.risk_level,
            account_names,
            cluster.model_flags,
            time_window_sec=cfg.linking.time_window_sec,
        )
        bind_cluster(cluster_id).debug(
            "cluster_scored",
            size=len(account_ids),
            rule_score=round(cluster.rule_score, 4),
            risk_score=round(cluster.risk_score, 4),
            risk_level=cluster.risk_level.value,
        )
        return cluster

    def run_events(
        self,
        events: list[TransactionEvent],
        account_names: Mapping[str, str] | None = None,
    ) -> EngineResult:
        """Run on already-normalized events."""
        cfg = self.config
        links = detect_identity_links(events, cfg.linking)
        components = build_clusters(links)

        component_of: dict[str, int] = {}
        for idx, members in enumerate(components):
            for account in members:
                component_of[account] = idx
        links_by_component: dict[int, list[IdentityLink]] = defaultdict(list)
        for link in links:
            links_by_component[component_of[link.account_a]].append(link)

        clusters = [
            self.score_cluster(members, links_by_component[idx], events, account_names)
            for idx, members in enumerate(components)
        ]
        clusters.sort(key=lambda c: (-c.risk_score, c.account_ids[0]))
        for idx, cluster in enumerate(clusters):
            cluster.label = cluster_label(idx)

        account_risk: dict[str, RiskResult] = {}
        for cluster in clusters:
            result = RiskResult(cluster.risk_score, cluster.risk_level, cluster.id)
            for account in cluster.account_ids:
                account_risk[account] = result
        vpn_senders = {ev.account_id for ev in events if ev.vpn_flag}
        for account in _accounts_in_order(events):
            if account in account_risk:
                continue
            score = singleton_score(account in vpn_senders, cfg.scoring)
            account_risk[account] = RiskResult(score, classify_risk(score, cfg.scoring), None)

        persist_thread = None
        if self.sink is not None:
            persist_thread = persist_clusters_async(self.sink, clusters)

        logger.info(
            "fraud_engine_complete",
            event_count=len(events),
            link_count=len(links),
            cluster_count=len(clusters),
            account_count=len(account_risk),
            high_risk_clusters=sum(1 for c in clusters if c.risk_level == RiskLevel.HIGH),
        )
        return EngineResult(clusters, links, account_risk, persist_thread)

    def run(
        self,
        raw_transactions: Iterable[dict[str, Any]],
        account_names: Mapping[str, str] | None = None,
    ) -> EngineResult:
        """Normalize raw records, then run_events."""
        events = to_transaction_events(
            raw_transactions,
            fingerprint_falls_back_to_device_id=self.config.linking.fingerprint_falls_back_to_device_id,
        )
        logger.info("fraud_engine_started", event_count=len(events))
        return self.run_events(events, account_names)


def run_fraud_engine(
    raw_transactions: Iterable[dict[str, Any]],
    account_names: Mapping[str, str] | None = None,
    *,
    config: EngineConfig | None = None,
    model_registry: ModelRegistry | None = None,
    sink: ClusterSink | None = None,
) -> EngineResult:
    """Convenience wrapper: build a FraudEngine and run it once."""
    engine = FraudEngine(config, model_registry=model_registry, sink=sink)
    return engine.run(raw_transactions, account_names)
