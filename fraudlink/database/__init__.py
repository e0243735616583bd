"""
Database abstraction layer: persisted fraud clusters.

SQLite via Database and get_database(); backend is swappable. The sink
module writes engine results fire-and-forget.
"""

from fraudlink.database.database import (
    ClusterStoreBackend,
    Database,
    SQLiteBackend,
    get_database,
)
from fraudlink.database.models import FraudClusterRecord
from fraudlink.database.sink import (
    ClusterSink,
    cluster_to_record,
    persist_clusters,
    persist_clusters_async,
)

__all__ = [
    "ClusterStoreBackend",
    "Database",
    "SQLiteBackend",
    "get_database",
    "FraudClusterRecord",
    "ClusterSink",
    "cluster_to_record",
    "persist_clusters",
    "persist_clusters_async",
]
