"""
Persistence sink: fire-and-forget write of computed clusters.

Rows are built synchronously from the engine result, then written on a
daemon thread. Write failures are logged and swallowed; they never reach
the engine's caller or change its result. Callers must not assume the
write has finished when the engine returns (join the returned thread if
they need to).
"""

from __future__ import annotations

import threading
from typing import Protocol, Sequence

from fraudlink.analysis_engine.models import Cluster
from fraudlink.database.models import FraudClusterRecord
from fraudlink.fraudlink_logging import get_logger

logger = get_logger(__name__)


class ClusterSink(Protocol):
    """Anything that can atomically replace the stored cluster set."""

    def replace_fraud_clusters(self, records: list[FraudClusterRecord]) -> int: ...


def cluster_to_record(cluster: Cluster) -> FraudClusterRecord:
    metrics = cluster.metrics.to_dict()
    metrics["rule_score"] = cluster.rule_score
    metrics["ml_score"] = cluster.ml_score
    metrics["anomaly_score"] = cluster.anomaly_score
    return FraudClusterRecord(
        cluster_label=cluster.label,
        account_ids=list(cluster.account_ids),
        risk_score=cluster.risk_score,
        risk_level=cluster.risk_level.value,
        metrics=metrics,
        explanation=cluster.explanation,
        edge_count=len(cluster.links),
    )


def write_records(sink: ClusterSink, records: list[FraudClusterRecord]) -> int | None:
    """Replace stored clusters; returns rows written, or None when the write failed."""
    try:
        written = sink.replace_fraud_clusters(records)
    except Exception as e:
        logger.warning("cluster_persistence_failed", row_count=len(records), error=str(e))
        return None
    logger.info("cluster_persistence_complete", row_count=written)
    return written


def persist_clusters(sink: ClusterSink, clusters: Sequence[Cluster]) -> int | None:
    """Synchronous variant of persist_clusters_async."""
    return write_records(sink, [cluster_to_record(c) for c in clusters])


def persist_clusters_async(sink: ClusterSink, clusters: Sequence[Cluster]) -> threading.Thread:
    """Start the write on a daemon thread and return it immediately."""
    records = [cluster_to_record(c) for c in clusters]
    thread = threading.Thread(
        target=write_records,
        args=(sink, records),
        name="cluster-sink",
        daemon=True,
    )
    thread.start()
    return thread
