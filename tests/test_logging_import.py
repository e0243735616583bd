"""
Test that fraudlink_logging can be imported without circular import and logger works.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from fraudlink_logging and use the logger."""
    from fraudlink.fraudlink_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "debug")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "error")
    logger.info("test_message", key="value")


def test_bind_cluster_logger():
    """bind_cluster returns a logger usable with cluster context."""
    from fraudlink.fraudlink_logging import bind_cluster

    logger = bind_cluster("cluster_abc123")
    logger.info("cluster_test_message", risk_score=0.5)


def test_engine_imports_without_cycle():
    """The engine pulls in ml, database, and analysis_engine without a cycle."""
    from fraudlink.analysis_engine.engine import FraudEngine
    from fraudlink.ml import ModelRegistry

    assert FraudEngine is not None
    assert ModelRegistry is not None


def test_bind_cluster_attaches_cluster_id():
    from structlog.testing import capture_logs

    from fraudlink.fraudlink_logging import bind_cluster

    with capture_logs() as logs:
        bind_cluster("cluster_abc123").info("cluster_scored", risk_score=0.5)
    assert logs[0]["event"] == "cluster_scored"
    assert logs[0]["cluster_id"] == "cluster_abc123"
    assert logs[0]["logger"] == "fraudlink.cluster"


def test_json_records_use_event_type_and_timestamp():
    """The processor chain renames event to event_type and stamps UTC time."""
    import json

    from fraudlink.fraudlink_logging.logger import _build_processors

    event_dict = {"event": "clusters_built", "cluster_count": 3}
    for processor in _build_processors("json"):
        event_dict = processor(None, "info", event_dict)
    record = json.loads(event_dict)
    assert record["event_type"] == "clusters_built"
    assert "event" not in record
    assert record["level"] == "info"
    assert record["cluster_count"] == 3
    assert record["timestamp"].endswith("Z")
