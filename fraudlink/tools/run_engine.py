"""
Run the fraud engine once over a transaction snapshot file.

Input is a JSON array of transaction records or a CSV with one record per
row. Optional --names maps account ids to display names (JSON object or
CSV with account_id,name columns). The result (clusters plus per-account
risk) is written as JSON to --out or stdout; logs go to stderr.

Usage:
  python -m fraudlink.tools.run_engine --input transactions.csv
  python -m fraudlink.tools.run_engine --input tx.json --names names.json --no-persist
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import pandas as pd

from fraudlink.analysis_engine.engine import EngineConfig, FraudEngine
from fraudlink.config.settings import get_settings
from fraudlink.database import get_database
from fraudlink.fraudlink_logging import get_logger
from fraudlink.ml.registry import ModelRegistry

logger = get_logger(__name__)

PERSIST_JOIN_TIMEOUT_SEC = 30.0


def load_transactions(path: Path) -> list[dict[str, Any]]:
    """Read raw records from JSON (array) or CSV."""
    if path.suffix.lower() == ".json":
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a JSON array of transactions")
        return [row for row in data if isinstance(row, dict)]
    # every column as text: ids keep leading zeros, the normalizer parses amounts and flags
    df = pd.read_csv(path, dtype=str)
    return df.to_dict("records")


def load_account_names(path: Path) -> dict[str, str]:
    if path.suffix.lower() == ".json":
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
        return {str(k): str(v) for k, v in data.items()}
    df = pd.read_csv(path, dtype=str).dropna(subset=["account_id", "name"])
    return dict(zip(df["account_id"], df["name"]))


def build_engine(*, use_models: bool, persist: bool, db_path: Path | None = None) -> FraudEngine:
    settings = get_settings()
    registry = None
    if use_models and settings.ensemble_enabled:
        registry = ModelRegistry(model_path=settings.model_path)
        if not registry.load_or_train():
            logger.warning("model_ensemble_unavailable", model_path=str(settings.model_path))
    sink = None
    if persist and settings.persist_enabled:
        sink = get_database(db_path or settings.db_path)
    return FraudEngine(EngineConfig.from_settings(settings), model_registry=registry, sink=sink)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Detect fraud clusters in a transaction snapshot.")
    parser.add_argument("--input", type=Path, required=True, help="transactions (.json or .csv)")
    parser.add_argument("--names", type=Path, default=None, help="account display names (.json or .csv)")
    parser.add_argument("--db", type=Path, default=None, help="SQLite path for fraud_clusters")
    parser.add_argument("--no-models", action="store_true", help="rule score only")
    parser.add_argument("--no-persist", action="store_true", help="do not write clusters")
    parser.add_argument("--out", type=Path, default=None, help="result JSON path (default stdout)")
    args = parser.parse_args(argv)

    if not args.input.is_file():
        print(f"[run_engine] input not found: {args.input}", file=sys.stderr)
        return 1
    try:
        raw = load_transactions(args.input)
        names = load_account_names(args.names) if args.names else None
    except (OSError, ValueError, KeyError) as e:
        print(f"[run_engine] could not read input: {e}", file=sys.stderr)
        return 1

    engine = build_engine(use_models=not args.no_models, persist=not args.no_persist, db_path=args.db)
    result = engine.run(raw, names)
    if result.persist_thread is not None:
        result.persist_thread.join(timeout=PERSIST_JOIN_TIMEOUT_SEC)

    payload = json.dumps(result.to_dict(), indent=2)
    if args.out:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(payload + "\n", encoding="utf-8")
        print(f"[run_engine] wrote {len(result.clusters)} clusters to {args.out}", file=sys.stderr)
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
