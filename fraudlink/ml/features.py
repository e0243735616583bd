"""
Feature builder for the cluster model ensemble.

Builds a fixed-size (18) numeric feature vector from a cluster's member
transactions and its normalized metrics, for training and inference.
Every feature is clipped to [0, 1] so the synthetic training set and
real clusters share one scale.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable

import numpy as np

from fraudlink.analysis_engine.models import ClusterMetrics
from fraudlink.ingestion.normalizer import TransactionEvent

# Fixed order; the models are trained on exactly this layout.
FEATURE_NAMES = [
    "velocity",
    "log_amount_variance",
    "burst_rate",
    "ip_ratio",
    "device_ratio",
    "vpn_ratio",
    "graph_density",
    "burst_window",
    "synchronized_activity",
    "funnel",
    "circular_flow",
    "pass_through",
    "automation",
    "physical_consistency",
    "biometric_anomaly",
    "session_anomaly",
    "amount_scale",
    "tx_count_scale",
]
FEATURE_INDEX = {name: i for i, name in enumerate(FEATURE_NAMES)}

VELOCITY_CAP_PER_MIN = 10.0
LOG_VARIANCE_SCALE = 5.0
BURST_CAP = 5.0
BURST_WINDOW_SEC = 60.0
AMOUNT_SCALE = 100_000.0
TX_COUNT_SCALE = 20.0


@dataclass
class ClusterFeatures:
    """Raw cluster statistics plus the normalized model vector."""

    tx_count: int
    total_amount: float
    avg_amount: float
    amount_variance: float
    time_span_minutes: float
    velocity: float
    """Transactions per minute; equals tx_count when all share one instant."""
    burst_rate: int
    """Max transactions in any 1-minute window."""
    unique_ips: int
    unique_devices: int
    unique_accounts: int
    ip_ratio: float
    device_ratio: float
    vpn_ratio: float
    feature_vector: np.ndarray

    def to_dict(self) -> dict[str, Any]:
        return {
            "tx_count": self.tx_count,
            "total_amount": self.total_amount,
            "avg_amount": self.avg_amount,
            "amount_variance": self.amount_variance,
            "time_span_minutes": self.time_span_minutes,
            "velocity": self.velocity,
            "burst_rate": self.burst_rate,
            "unique_ips": self.unique_ips,
            "unique_devices": self.unique_devices,
            "unique_accounts": self.unique_accounts,
            "ip_ratio": self.ip_ratio,
            "device_ratio": self.device_ratio,
            "vpn_ratio": self.vpn_ratio,
            "feature_vector": self.feature_vector.tolist(),
        }


def get_feature_names() -> list[str]:
    return list(FEATURE_NAMES)


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _max_burst(stamps: list[float]) -> int:
    best = 0
    end = 0
    for start in range(len(stamps)):
        end = max(end, start)
        while end + 1 < len(stamps) and stamps[end + 1] - stamps[start] <= BURST_WINDOW_SEC:
            end += 1
        best = max(best, end - start + 1)
    return best


def build_cluster_features(
    account_ids: Iterable[str],
    metrics: ClusterMetrics,
    events: list[TransactionEvent],
) -> ClusterFeatures:
    """
    Build features for one cluster from the snapshot's events.

    Member events are those sent by a member account. Returns an all-zero
    vector when the cluster has no events.
    """
    members = set(account_ids)
    cluster_events = [ev for ev in events if ev.account_id in members]
    count = len(cluster_events)
    if count == 0:
        return ClusterFeatures(
            tx_count=0, total_amount=0.0, avg_amount=0.0, amount_variance=0.0,
            time_span_minutes=0.0, velocity=0.0, burst_rate=0, unique_ips=0,
            unique_devices=0, unique_accounts=len(members), ip_ratio=0.0,
            device_ratio=0.0, vpn_ratio=0.0,
            feature_vector=np.zeros(len(FEATURE_NAMES), dtype=np.float64),
        )

    amounts = np.array([ev.amount for ev in cluster_events], dtype=np.float64)
    total_amount = float(amounts.sum())
    avg_amount = total_amount / count
    variance = float(amounts.var())

    stamps = sorted(ev.ts for ev in cluster_events if ev.timestamp is not None)
    time_span_minutes = (stamps[-1] - stamps[0]) / 60.0 if stamps else 0.0
    velocity = count / time_span_minutes if time_span_minutes > 0 else float(count)
    burst_rate = _max_burst(stamps)

    unique_ips = len({ev.ip_address for ev in cluster_events if ev.ip_address})
    unique_devices = len({ev.device_fingerprint_id for ev in cluster_events if ev.device_fingerprint_id})
    vpn_count = sum(1 for ev in cluster_events if ev.vpn_flag)
    ip_ratio = unique_ips / count
    device_ratio = unique_devices / count
    vpn_ratio = vpn_count / count

    biometric = _mean([ev.biometric_score for ev in cluster_events if ev.biometric_score is not None])
    session = _mean([ev.session_score for ev in cluster_events if ev.session_score is not None])

    vector = np.array(
        [
            velocity / VELOCITY_CAP_PER_MIN,
            math.log10(variance + 1.0) / LOG_VARIANCE_SCALE,
            burst_rate / BURST_CAP,
            ip_ratio,
            device_ratio,
            vpn_ratio,
            metrics.graph_density_score,
            metrics.burst_window_score,
            metrics.synchronized_activity_score,
            metrics.funnel_score,
            metrics.circular_flow_score,
            metrics.pass_through_score,
            metrics.automation_score,
            metrics.physical_consistency_score,
            biometric,
            session,
            total_amount / AMOUNT_SCALE,
            count / TX_COUNT_SCALE,
        ],
        dtype=np.float64,
    )
    np.clip(vector, 0.0, 1.0, out=vector)

    return ClusterFeatures(
        tx_count=count,
        total_amount=total_amount,
        avg_amount=avg_amount,
        amount_variance=variance,
        time_span_minutes=time_span_minutes,
        velocity=velocity,
        burst_rate=burst_rate,
        unique_ips=unique_ips,
        unique_devices=unique_devices,
        unique_accounts=len(members),
        ip_ratio=ip_ratio,
        device_ratio=device_ratio,
        vpn_ratio=vpn_ratio,
        feature_vector=vector,
    )
