"""
Tests for the rule score, amplification, ensemble blend, and risk classification.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from fraudlink.analysis_engine.models import ClusterMetrics, RiskLevel
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


def test_default_weights_sum_to_one():
    assert sum(ScoringConfig().weights.values()) == pytest.approx(1.0)


def test_zero_metrics_score_zero():
    assert compute_rule_score(ClusterMetrics()) == 0.0


def test_device_time_density_scenario():
    """Device + time sync + density at 1.0: 0.24 base plus the three-signal bonus."""
    metrics = ClusterMetrics(
        device_id_reuse_score=1.0,
        time_sync_score=1.0,
        graph_density_score=1.0,
    )
    assert count_active_signals(metrics) == 3
    score = compute_rule_score(metrics)
    assert score == pytest.approx(0.36)
    assert classify_risk(score) == RiskLevel.MEDIUM


@pytest.mark.parametrize(
    "active,bonus",
    [(0, 0.0), (1, 0.0), (2, 0.05), (3, 0.12), (4, 0.20), (5, 0.20), (6, 0.30), (14, 0.30)],
)
def test_amplification_tiers(active, bonus):
    assert amplification_bonus(active) == bonus


def test_active_signal_threshold_is_strict():
    metrics = ClusterMetrics(device_id_reuse_score=0.3, time_sync_score=0.31)
    assert count_active_signals(metrics) == 1


def test_all_metrics_maxed_clamps_to_one():
    names = ClusterMetrics().scores()
    metrics = ClusterMetrics(**{name: 1.0 for name in names})
    assert compute_rule_score(metrics) == 1.0


def test_score_monotone_in_each_metric():
    """Raising any single metric never lowers the rule score."""
    base = ClusterMetrics(
        fingerprint_reuse_score=0.2,
        time_sync_score=0.25,
        funnel_score=0.1,
    )
    base_score = compute_rule_score(base)
    for name in base.scores():
        for value in (0.29, 0.31, 0.6, 1.0):
            if value <= getattr(base, name):
                continue
            raised = replace(base, **{name: value})
            assert compute_rule_score(raised) >= base_score, name


@pytest.mark.parametrize(
    "score,level",
    [
        (0.0, RiskLevel.LOW),
        (0.2999, RiskLevel.LOW),
        (0.30, RiskLevel.MEDIUM),
        (0.5499, RiskLevel.MEDIUM),
        (0.55, RiskLevel.HIGH),
        (1.0, RiskLevel.HIGH),
    ],
)
def test_classify_risk_boundaries(score, level):
    assert classify_risk(score) == level


def test_singleton_score():
    assert singleton_score(True) == pytest.approx(0.20)
    assert singleton_score(False) == 0.0
    assert classify_risk(singleton_score(True)) == RiskLevel.LOW


def test_blend_ensemble_weights():
    assert blend_ensemble(0.4, 0.0, 0.0) == pytest.approx(0.2)
    assert blend_ensemble(1.0, 1.0, 1.0) == pytest.approx(1.0)
    assert blend_ensemble(0.36, 0.9, 0.5) == pytest.approx(0.18 + 0.27 + 0.10)
    custom = EnsembleWeights(rule=1.0, supervised=0.0, anomaly=0.0)
    assert blend_ensemble(0.36, 0.9, 0.5, custom) == pytest.approx(0.36)


def test_rebalance_unavailable_biometric():
    """With rebalancing on, missing biometric input rescales the other weights."""
    metrics = ClusterMetrics(fingerprint_reuse_score=0.2)
    plain = compute_rule_score(metrics)
    rebalanced = compute_rule_score(metrics, ScoringConfig(rebalance_unavailable_biometric=True))
    assert plain == pytest.approx(0.12 * 0.2)
    assert rebalanced == pytest.approx(0.12 * 0.2 / 0.88)

    with_signal = replace(metrics, biometric_signal_available=True)
    assert compute_rule_score(
        with_signal, ScoringConfig(rebalance_unavailable_biometric=True)
    ) == pytest.approx(plain)
