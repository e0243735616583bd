"""
Database abstraction layer for computed fraud clusters.

Uses SQLite; designed so the backend can be swapped (e.g. PostgreSQL) via a
different backend implementation. All access goes through the abstract
interface; SQL and placeholders are backend-specific.
"""

from __future__ import annotations

import json
import sqlite3
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from fraudlink.core.exceptions import PersistenceError
from fraudlink.database.models import FraudClusterRecord
from fraudlink.fraudlink_logging import get_logger

logger = get_logger(__name__)

# -----------------------------------------------------------------------------
# Schema (SQLite). For PostgreSQL: use SERIAL, JSONB, TIMESTAMPTZ, and %s.
# -----------------------------------------------------------------------------

SCHEMA_FRAUD_CLUSTERS = """
CREATE TABLE IF NOT EXISTS fraud_clusters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    cluster_label TEXT NOT NULL,
    account_ids TEXT NOT NULL,
    risk_score REAL NOT NULL,
    risk_level TEXT NOT NULL,
    metrics TEXT,
    explanation TEXT,
    edge_count INTEGER NOT NULL DEFAULT 0,
    created_at INTEGER
);
CREATE INDEX IF NOT EXISTS ix_fraud_clusters_risk_score ON fraud_clusters(risk_score);
"""


# -----------------------------------------------------------------------------
# Abstract backend
# -----------------------------------------------------------------------------


class ClusterStoreBackend(ABC):
    """Storage operations for fraud cluster rows."""

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create tables and indexes if missing."""

    @abstractmethod
    def replace_fraud_clusters(self, records: list[FraudClusterRecord], created_at: int) -> int:
        """Delete every stored cluster, then insert records, atomically. Returns rows inserted."""

    @abstractmethod
    def get_fraud_clusters(self, *, limit: int = 1000) -> list[FraudClusterRecord]:
        """Stored clusters, highest risk first."""


# -----------------------------------------------------------------------------
# SQLite backend
# -----------------------------------------------------------------------------


class SQLiteBackend(ClusterStoreBackend):
    """SQLite implementation; single file, one connection per operation."""

    def __init__(self, path: str | Path, *, timeout_sec: float = 5.0) -> None:
        self._path = Path(path)
        self._timeout_sec = timeout_sec

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._path), timeout=self._timeout_sec)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        conn = self._connect()
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            cur.executescript(SCHEMA_FRAUD_CLUSTERS)

    def replace_fraud_clusters(self, records: list[FraudClusterRecord], created_at: int) -> int:
        with self._cursor() as cur:
            cur.execute("DELETE FROM fraud_clusters")
            cur.executemany(
                """
                INSERT INTO fraud_clusters (
                    cluster_label, account_ids, risk_score, risk_level,
                    metrics, explanation, edge_count, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [record.to_row() + (created_at,) for record in records],
            )
        return len(records)

    def get_fraud_clusters(self, *, limit: int = 1000) -> list[FraudClusterRecord]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, cluster_label, account_ids, risk_score, risk_level,
                       metrics, explanation, edge_count, created_at
                FROM fraud_clusters
                ORDER BY risk_score DESC, id ASC
                LIMIT ?
                """,
                (limit,),
            )
            rows = cur.fetchall()
        return [
            FraudClusterRecord(
                id=row["id"],
                cluster_label=row["cluster_label"],
                account_ids=json.loads(row["account_ids"]),
                risk_score=row["risk_score"],
                risk_level=row["risk_level"],
                metrics=json.loads(row["metrics"]) if row["metrics"] else {},
                explanation=row["explanation"] or "",
                edge_count=row["edge_count"],
                created_at=row["created_at"],
            )
            for row in rows
        ]


# -----------------------------------------------------------------------------
# Database facade: single entrypoint; backend is swappable.
# -----------------------------------------------------------------------------


class Database:
    """
    Cluster store facade. Backend errors surface as PersistenceError.
    """

    def __init__(self, backend: ClusterStoreBackend) -> None:
        self._backend = backend

    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        try:
            self._backend.ensure_schema()
        except sqlite3.Error as e:
            raise PersistenceError(f"schema setup failed: {e}") from e

    def replace_fraud_clusters(self, records: list[FraudClusterRecord]) -> int:
        """Clear all stored clusters and insert the given ones. Returns rows inserted."""
        try:
            inserted = self._backend.replace_fraud_clusters(records, int(time.time()))
        except sqlite3.Error as e:
            raise PersistenceError(f"cluster write failed: {e}") from e
        logger.info("fraud_clusters_replaced", row_count=inserted)
        return inserted

    def get_fraud_clusters(self, *, limit: int = 1000) -> list[FraudClusterRecord]:
        try:
            return self._backend.get_fraud_clusters(limit=limit)
        except sqlite3.Error as e:
            raise PersistenceError(f"cluster read failed: {e}") from e


def get_database(path: str | Path | None = None) -> Database:
    """
    Return a Database backed by SQLite, schema ensured.

    path: SQLite file; default "fraudlink.db" in cwd.
    """
    if path is None:
        path = Path("fraudlink.db")
    db = Database(SQLiteBackend(path))
    db.ensure_schema()
    return db
