"""
Per-cluster suspicion metrics, each normalized to [0, 1].

Categories: identity/infrastructure reuse, temporal coordination, graph
density, money-flow structure (funnel, circular, pass-through), automation,
physical consistency, and aggregated external biometric/session scores.
Inputs are the cluster's members, the links among them, and the snapshot's
events; nothing is mutated.

Cycle detection is bounded to length 3 (A->B->A, A->B->C->A). Longer
laundering chains are not searched.
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Iterable

import networkx as nx
import numpy as np

from fraudlink.analysis_engine.models import ClusterMetrics, IdentityLink, LinkType
from fraudlink.fraudlink_logging import get_logger
from fraudlink.ingestion.normalizer import TransactionEvent

logger = get_logger(__name__)


@dataclass
class MetricsConfig:
    """
    Normalization constants for cluster metrics. Times in seconds.
    """

    # Shared fingerprint / device id: base offset + span * (max group / n)
    fingerprint_base: float = 0.6
    fingerprint_span: float = 0.4
    device_id_base: float = 0.5
    device_id_span: float = 0.5

    # Network reuse: weighted link count / max pairs
    ip_link_weight: float = 1.0
    subnet_link_weight: float = 0.7
    asn_link_weight: float = 0.4

    vpn_base: float = 0.5
    vpn_span: float = 0.5

    density_exponent: float = 0.7

    burst_window_sec: float = 60.0
    burst_min_tx: int = 3
    burst_divisor: float = 3.0

    sync_window_sec: float = 1.0
    sync_divisor: float = 2.0

    funnel_min_in_degree: int = 3
    funnel_max_out_degree: int = 1
    funnel_divisor: float = 2.0

    circular_max_length: int = 3
    circular_divisor: float = 2.0

    pass_through_window_sec: float = 300.0
    pass_through_divisor: float = 3.0

    # Automation
    automation_min_tx: int = 3
    automation_cv_strict: float = 0.05
    automation_cv_strict_points: float = 0.4
    automation_cv_loose: float = 0.15
    automation_cv_loose_points: float = 0.2
    automation_repeat_high: float = 0.7
    automation_repeat_high_points: float = 0.3
    automation_repeat_mid: float = 0.5
    automation_repeat_mid_points: float = 0.15
    automation_subsecond_gap_sec: float = 1.0
    automation_subsecond_points: float = 0.15
    automation_regular_bonus: float = 0.2

    physical_window_sec: float = 60.0
    physical_divisor: float = 2.0


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _timed_sorted(events: Iterable[TransactionEvent]) -> list[TransactionEvent]:
    return sorted((ev for ev in events if ev.timestamp is not None), key=lambda ev: ev.ts)


# -----------------------------------------------------------------------------
# Identity / infrastructure
# -----------------------------------------------------------------------------


def _shared_attribute_score(
    events: list[TransactionEvent],
    attr: str,
    n: int,
    base: float,
    span: float,
) -> float:
    """0 without sharing; otherwise base + span * (largest sharing group / n), capped."""
    if n < 2:
        return 0.0
    accounts_by_value: dict[str, set[str]] = defaultdict(set)
    for ev in events:
        value = getattr(ev, attr)
        if value is not None:
            accounts_by_value[value].add(ev.account_id)
    max_sharing = max((len(a) for a in accounts_by_value.values() if len(a) > 1), default=0)
    if max_sharing == 0:
        return 0.0
    return _clamp(base + (max_sharing / n) * span)


def _network_reuse_score(links: list[IdentityLink], max_pairs: float, config: MetricsConfig) -> float:
    weights = {
        LinkType.IP: config.ip_link_weight,
        LinkType.SUBNET: config.subnet_link_weight,
        LinkType.ASN: config.asn_link_weight,
    }
    if max_pairs <= 0:
        return 0.0
    total = sum(weights.get(link.link_type, 0.0) for link in links)
    return _clamp(total / max_pairs)


def _vpn_presence_score(events: list[TransactionEvent], n: int, config: MetricsConfig) -> float:
    vpn_accounts = {ev.account_id for ev in events if ev.vpn_flag}
    if n <= 0 or not vpn_accounts:
        return 0.0
    return _clamp(config.vpn_base + (len(vpn_accounts) / n) * config.vpn_span)


# -----------------------------------------------------------------------------
# Temporal coordination and density
# -----------------------------------------------------------------------------


def _time_sync_score(links: list[IdentityLink], max_pairs: float) -> float:
    if max_pairs <= 0:
        return 0.0
    time_links = sum(1 for link in links if link.link_type == LinkType.TIME)
    return _clamp(math.sqrt(time_links / max_pairs))


def _graph_density_score(links: list[IdentityLink], max_pairs: float, exponent: float) -> float:
    if max_pairs <= 0:
        return 0.0
    return _clamp((len(links) / max_pairs) ** exponent)


def _burst_window_score(timed: list[TransactionEvent], config: MetricsConfig) -> float:
    """Windows (one per starting event) holding >= burst_min_tx transactions."""
    stamps = [ev.ts for ev in timed]
    windows = 0
    end = 0
    for start in range(len(stamps)):
        end = max(end, start)
        while end + 1 < len(stamps) and stamps[end + 1] - stamps[start] <= config.burst_window_sec:
            end += 1
        if end - start + 1 >= config.burst_min_tx:
            windows += 1
    return _clamp(windows / config.burst_divisor)


def _synchronized_activity_score(timed: list[TransactionEvent], config: MetricsConfig) -> float:
    """Cross-account event pairs no more than sync_window_sec apart."""
    stamps = [ev.ts for ev in timed]
    pairs = 0
    for i in range(len(timed)):
        for j in range(i + 1, len(timed)):
            if stamps[j] - stamps[i] > config.sync_window_sec:
                break
            if timed[i].account_id != timed[j].account_id:
                pairs += 1
    return _clamp(pairs / config.sync_divisor)


# -----------------------------------------------------------------------------
# Money flow
# -----------------------------------------------------------------------------


def build_flow_graph(events: Iterable[TransactionEvent]) -> nx.DiGraph:
    """Directed sender -> counterparty graph; self-transfers and missing counterparties skipped."""
    graph = nx.DiGraph()
    for ev in events:
        if ev.counterparty_id is None or ev.counterparty_id == ev.account_id:
            continue
        graph.add_edge(ev.account_id, ev.counterparty_id)
    return graph


def _funnel_score(graph: nx.DiGraph, config: MetricsConfig) -> float:
    funnels = sum(
        1
        for node in graph.nodes
        if graph.in_degree(node) >= config.funnel_min_in_degree
        and graph.out_degree(node) <= config.funnel_max_out_degree
    )
    return _clamp(funnels / config.funnel_divisor)


def _circular_flow_score(graph: nx.DiGraph, config: MetricsConfig) -> float:
    cycles = sum(
        1
        for cycle in nx.simple_cycles(graph, length_bound=config.circular_max_length)
        if len(cycle) >= 2
    )
    return _clamp(cycles / config.circular_divisor)


def _pass_through_score(
    account_ids: set[str],
    cluster_events: list[TransactionEvent],
    all_events: list[TransactionEvent],
    config: MetricsConfig,
) -> float:
    """(inflow, outflow) pairs at one member where the outflow follows within the window."""
    inflows: dict[str, list[float]] = defaultdict(list)
    for ev in all_events:
        if ev.timestamp is None or ev.counterparty_id not in account_ids:
            continue
        if ev.counterparty_id == ev.account_id:
            continue
        inflows[ev.counterparty_id].append(ev.ts)
    outflows: dict[str, list[float]] = defaultdict(list)
    for ev in cluster_events:
        if ev.timestamp is None or ev.counterparty_id == ev.account_id:
            continue
        outflows[ev.account_id].append(ev.ts)

    matches = 0
    for account, in_stamps in inflows.items():
        out_stamps = outflows.get(account)
        if not out_stamps:
            continue
        for t_in in in_stamps:
            for t_out in out_stamps:
                if 0 <= t_out - t_in <= config.pass_through_window_sec:
                    matches += 1
    return _clamp(matches / config.pass_through_divisor)


# -----------------------------------------------------------------------------
# Automation and physical consistency
# -----------------------------------------------------------------------------


def _automation_score(timed: list[TransactionEvent], config: MetricsConfig) -> float:
    """
    Scripted-activity signature over the cluster's time-ordered transactions:
    regular gaps (low coefficient of variation), repeated identical amounts,
    sub-second gaps, and a bonus when amounts and timing are both regular.
    """
    if len(timed) < config.automation_min_tx:
        return 0.0
    stamps = np.array([ev.ts for ev in timed], dtype=np.float64)
    gaps = np.diff(stamps)
    mean_gap = float(gaps.mean())
    cv = float(gaps.std() / mean_gap) if mean_gap > 0 else 0.0

    amounts = Counter(ev.amount for ev in timed)
    repeat_ratio = amounts.most_common(1)[0][1] / len(timed)

    score = 0.0
    if cv < config.automation_cv_strict:
        score += config.automation_cv_strict_points
    elif cv < config.automation_cv_loose:
        score += config.automation_cv_loose_points
    if repeat_ratio > config.automation_repeat_high:
        score += config.automation_repeat_high_points
    elif repeat_ratio > config.automation_repeat_mid:
        score += config.automation_repeat_mid_points
    if bool((gaps < config.automation_subsecond_gap_sec).any()):
        score += config.automation_subsecond_points
    if cv < config.automation_cv_strict and repeat_ratio > config.automation_repeat_high:
        score += config.automation_regular_bonus
    return _clamp(score)


def _physical_consistency_score(timed: list[TransactionEvent], config: MetricsConfig) -> float:
    """Same-account pairs within the window that came from different IP addresses."""
    by_account: dict[str, list[TransactionEvent]] = defaultdict(list)
    for ev in timed:
        by_account[ev.account_id].append(ev)
    conflicts = 0
    for account_events in by_account.values():
        for i in range(len(account_events)):
            left = account_events[i]
            for j in range(i + 1, len(account_events)):
                right = account_events[j]
                if right.ts - left.ts > config.physical_window_sec:
                    break
                if left.ip_address and right.ip_address and left.ip_address != right.ip_address:
                    conflicts += 1
    return _clamp(conflicts / config.physical_divisor)


def _biometric_session_score(events: list[TransactionEvent]) -> tuple[float, bool]:
    """Mean of the available biometric and session averages; (0.0, False) when none supplied."""
    parts: list[float] = []
    biometric = [ev.biometric_score for ev in events if ev.biometric_score is not None]
    session = [ev.session_score for ev in events if ev.session_score is not None]
    if biometric:
        parts.append(sum(biometric) / len(biometric))
    if session:
        parts.append(sum(session) / len(session))
    if not parts:
        return 0.0, False
    return _clamp(sum(parts) / len(parts)), True


def calculate_cluster_metrics(
    account_ids: Iterable[str],
    cluster_links: list[IdentityLink],
    events: list[TransactionEvent],
    config: MetricsConfig | None = None,
) -> ClusterMetrics:
    """
    Compute all normalized metrics for one cluster.

    events is the full snapshot; member events are those sent by a member.
    Inbound transfers from non-members still count toward pass-through.
    """
    config = config or MetricsConfig()
    members = set(account_ids)
    n = len(members)
    max_pairs = n * (n - 1) / 2
    cluster_events = [ev for ev in events if ev.account_id in members]
    timed = _timed_sorted(cluster_events)
    flow_graph = build_flow_graph(cluster_events)
    biometric_score, biometric_available = _biometric_session_score(cluster_events)
    logger.debug(
        "cluster_metrics_started",
        size=n,
        event_count=len(cluster_events),
        flow_edges=flow_graph.number_of_edges(),
    )

    return ClusterMetrics(
        fingerprint_reuse_score=_shared_attribute_score(
            cluster_events, "device_fingerprint_id", n, config.fingerprint_base, config.fingerprint_span
        ),
        device_id_reuse_score=_shared_attribute_score(
            cluster_events, "device_id", n, config.device_id_base, config.device_id_span
        ),
        ip_subnet_asn_reuse_score=_network_reuse_score(cluster_links, max_pairs, config),
        vpn_presence_score=_vpn_presence_score(cluster_events, n, config),
        time_sync_score=_time_sync_score(cluster_links, max_pairs),
        graph_density_score=_graph_density_score(cluster_links, max_pairs, config.density_exponent),
        burst_window_score=_burst_window_score(timed, config),
        synchronized_activity_score=_synchronized_activity_score(timed, config),
        funnel_score=_funnel_score(flow_graph, config),
        circular_flow_score=_circular_flow_score(flow_graph, config),
        pass_through_score=_pass_through_score(members, cluster_events, events, config),
        automation_score=_automation_score(timed, config),
        physical_consistency_score=_physical_consistency_score(timed, config),
        biometric_session_score=biometric_score,
        biometric_signal_available=biometric_available,
    )
