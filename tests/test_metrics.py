"""
Tests for per-cluster metrics. Every score must stay within [0, 1].
"""

from __future__ import annotations

import pytest

from fraudlink.analysis_engine.identity_links import detect_identity_links
from fraudlink.analysis_engine.metrics import build_flow_graph, calculate_cluster_metrics
from fraudlink.analysis_engine.models import ClusterMetrics
from fraudlink.ingestion.normalizer import to_transaction_events

HOUR = 3600.0


def _metrics(raw, members):
    events = to_transaction_events(raw)
    links = [
        link
        for link in detect_identity_links(events)
        if link.account_a in members and link.account_b in members
    ]
    return calculate_cluster_metrics(members, links, events)


def _assert_bounded(metrics: ClusterMetrics):
    for name, value in metrics.scores().items():
        assert 0.0 <= value <= 1.0, name


def test_device_pair_metrics(tx):
    """Two accounts on one device, 60 s apart: device reuse, time sync, density at 1."""
    raw = [
        tx("t1", "A", "X", offset_sec=0, device_id="dev-1", amount=15_000),
        tx("t2", "B", "Y", offset_sec=60, device_id="dev-1", amount=15_000),
    ]
    m = _metrics(raw, ["A", "B"])
    _assert_bounded(m)
    assert m.device_id_reuse_score == pytest.approx(1.0)
    assert m.time_sync_score == pytest.approx(1.0)
    assert m.graph_density_score == pytest.approx(1.0)
    assert m.fingerprint_reuse_score == 0.0
    assert m.ip_subnet_asn_reuse_score == 0.0
    assert m.burst_window_score == 0.0
    assert m.automation_score == 0.0
    assert m.biometric_signal_available is False


def test_fingerprint_reuse_partial_group(tx):
    """Two of four members share a fingerprint: 0.6 + 0.4 * 2/4."""
    raw = [
        tx("t1", "A", "X", offset_sec=0, device_fingerprint_id="fp"),
        tx("t2", "B", "X", offset_sec=HOUR, device_fingerprint_id="fp"),
        tx("t3", "C", "X", offset_sec=2 * HOUR),
        tx("t4", "D", "X", offset_sec=3 * HOUR),
    ]
    m = calculate_cluster_metrics(["A", "B", "C", "D"], [], to_transaction_events(raw))
    assert m.fingerprint_reuse_score == pytest.approx(0.8)


def test_burst_and_synchronized_activity(tx):
    raw = [
        tx("t1", "A", "X", offset_sec=0.0),
        tx("t2", "B", "X", offset_sec=0.5),
        tx("t3", "C", "X", offset_sec=10.0),
        tx("t4", "A", "X", offset_sec=20.0),
    ]
    m = _metrics(raw, ["A", "B", "C"])
    _assert_bounded(m)
    # windows starting at t1 and t2 each hold >= 3 transactions
    assert m.burst_window_score == pytest.approx(2 / 3)
    # only A/B are within one second of each other
    assert m.synchronized_activity_score == pytest.approx(0.5)


def test_funnel_and_pass_through(tx):
    """Three members feed D, which forwards within five minutes."""
    raw = [
        tx("t1", "A", "D", offset_sec=0, amount=900),
        tx("t2", "B", "D", offset_sec=30, amount=900),
        tx("t3", "C", "D", offset_sec=60, amount=900),
        tx("t4", "D", "Z", offset_sec=120, amount=2700),
    ]
    m = _metrics(raw, ["A", "B", "C", "D"])
    _assert_bounded(m)
    assert m.funnel_score == pytest.approx(0.5)
    assert m.pass_through_score == pytest.approx(1.0)
    assert m.circular_flow_score == 0.0


def test_circular_flow(tx):
    raw = [
        tx("t1", "A", "B", offset_sec=0),
        tx("t2", "B", "C", offset_sec=10),
        tx("t3", "C", "A", offset_sec=20),
    ]
    m = _metrics(raw, ["A", "B", "C"])
    assert m.circular_flow_score == pytest.approx(0.5)


def test_flow_graph_skips_self_and_missing_counterparty(tx):
    events = to_transaction_events([
        tx("t1", "A", "A"),
        tx("t2", "A", None),
        tx("t3", "A", "B"),
    ])
    graph = build_flow_graph(events)
    assert list(graph.edges) == [("A", "B")]


def test_automation_regular_repeated_amounts(tx):
    """Evenly spaced identical amounts score as scripted."""
    raw = [tx(f"t{i}", "A" if i % 2 else "B", "X", offset_sec=i * 10.0, amount=49.99) for i in range(6)]
    m = _metrics(raw, ["A", "B"])
    # strict regularity 0.4 + repeats 0.3 + combined bonus 0.2
    assert m.automation_score == pytest.approx(0.9)


def test_automation_needs_three_transactions(tx):
    raw = [tx("t1", "A", "X", offset_sec=0, amount=10), tx("t2", "B", "X", offset_sec=10, amount=10)]
    assert _metrics(raw, ["A", "B"]).automation_score == 0.0


def test_physical_consistency_conflict(tx):
    """One account transacting from two IPs within a minute."""
    raw = [
        tx("t1", "A", "X", offset_sec=0, ip_address="1.1.1.1"),
        tx("t2", "A", "X", offset_sec=20, ip_address="9.9.9.9"),
        tx("t3", "B", "X", offset_sec=30, ip_address="1.1.1.1"),
    ]
    m = _metrics(raw, ["A", "B"])
    assert m.physical_consistency_score == pytest.approx(0.5)


def test_vpn_presence(tx):
    raw = [
        tx("t1", "A", "X", offset_sec=0, vpn_flag=True),
        tx("t2", "B", "X", offset_sec=30),
    ]
    m = _metrics(raw, ["A", "B"])
    assert m.vpn_presence_score == pytest.approx(0.75)


def test_biometric_session_average(tx):
    raw = [
        tx("t1", "A", "X", offset_sec=0, biometric_score=0.8, session_score=0.4),
        tx("t2", "B", "X", offset_sec=30, biometric_score=0.6),
    ]
    m = _metrics(raw, ["A", "B"])
    assert m.biometric_signal_available is True
    # mean(biometric avg 0.7, session avg 0.4)
    assert m.biometric_session_score == pytest.approx(0.55)


def test_heavy_cluster_stays_bounded(tx):
    """Many overlapping signals never push a metric above 1."""
    raw = []
    for i in range(40):
        raw.append(
            tx(
                f"t{i}",
                f"acc{i % 5}",
                f"acc{(i + 1) % 5}",
                offset_sec=i * 0.5,
                amount=500,
                device_id="dev",
                device_fingerprint_id="fp",
                ip_address=f"10.0.0.{i % 3}",
                asn="AS1",
                vpn_flag=True,
                biometric_score=0.9,
            )
        )
    members = [f"acc{i}" for i in range(5)]
    m = _metrics(raw, members)
    _assert_bounded(m)
    assert m.graph_density_score == 1.0
