"""
Tests for cluster explanation text.
"""

from __future__ import annotations

import pytest

from fraudlink.analysis_engine.explanation import (
    LINK_TYPE_PHRASES,
    format_metrics,
    generate_explanation,
    link_type_phrase,
)
from fraudlink.analysis_engine.models import ClusterMetrics, IdentityLink, LinkType, RiskLevel


def _link(link_type):
    return IdentityLink("acct-aaaa-1111", "acct-bbbb-2222", link_type, 0.5)


def test_every_link_type_has_a_phrase():
    assert set(LINK_TYPE_PHRASES) == set(LinkType)


@pytest.mark.parametrize("link_type", list(LinkType))
def test_phrase_included_for_present_link_type(link_type):
    text = generate_explanation(
        ["acct-aaaa-1111", "acct-bbbb-2222"],
        [_link(link_type)],
        ClusterMetrics(),
        RiskLevel.LOW,
    )
    assert link_type_phrase(link_type) in text


def test_time_phrase_uses_window_minutes():
    assert link_type_phrase(LinkType.TIME) == "transacted within a 3-minute window"
    assert link_type_phrase(LinkType.TIME, 90) == "transacted within a 1.5-minute window"


def test_account_labels_prefer_names():
    text = generate_explanation(
        ["acct-aaaa-1111", "acct-bbbb-2222"],
        [_link(LinkType.DEVICE_ID)],
        ClusterMetrics(),
        RiskLevel.LOW,
        account_names={"acct-aaaa-1111": "Alice"},
    )
    assert text.startswith("Accounts Alice, acct-bbb are linked.")


def test_risk_level_implication():
    args = (["a", "b"], [_link(LinkType.IP)], ClusterMetrics())
    assert "high probability of coordinated fraudulent activity" in generate_explanation(*args, RiskLevel.HIGH)
    assert "warrants closer investigation" in generate_explanation(*args, RiskLevel.MEDIUM)
    low = generate_explanation(*args, RiskLevel.LOW)
    assert "probability" not in low
    assert "investigation" not in low


def test_metrics_and_model_flags_appended():
    metrics = ClusterMetrics(device_id_reuse_score=1.0, time_sync_score=0.5)
    text = generate_explanation(
        ["a", "b"],
        [_link(LinkType.DEVICE_ID)],
        metrics,
        RiskLevel.MEDIUM,
        model_flags=["High device reuse."],
    )
    assert "Metrics: Device Reuse: 100% | Time Sync: 50%." in text
    assert text.endswith("High device reuse.")


def test_format_metrics_skips_zero():
    assert format_metrics(ClusterMetrics()) == ""
    assert format_metrics(ClusterMetrics(funnel_score=0.25)) == "Funnel: 25%"
