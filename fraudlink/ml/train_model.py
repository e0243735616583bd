"""
Train the cluster model ensemble (RandomForestClassifier + IsolationForest).

No labelled cluster history exists, so training uses a seeded synthetic
set over the 18-feature layout of fraudlink.ml.features. Fraud rows
follow one of four archetypes on top of a normal baseline:
  - identity ring: low unique-IP/device ratios, dense link graph
  - automated burst: high velocity, bursts, synchronized and scripted activity
  - money mule: funnel, circular and pass-through flow, large volume
  - VPN ring: VPN usage, location conflicts, biometric/session anomalies

Usage:
  py -m fraudlink.ml.train_model --out fraudlink/ml/models/cluster_ensemble.joblib
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd
from sklearn.ensemble import IsolationForest, RandomForestClassifier

from fraudlink.fraudlink_logging import get_logger
from fraudlink.ml.features import FEATURE_INDEX, FEATURE_NAMES

logger = get_logger(__name__)

# (feature, low, high) ranges for the normal baseline; unlisted features are 0.
NORMAL_RANGES: list[tuple[str, float, float]] = [
    ("velocity", 0.0, 0.2),
    ("log_amount_variance", 0.0, 1.0),
    ("burst_rate", 0.0, 0.2),
    ("ip_ratio", 0.7, 1.0),
    ("device_ratio", 0.7, 1.0),
    ("vpn_ratio", 0.0, 0.1),
    ("graph_density", 0.0, 0.3),
    ("pass_through", 0.0, 0.1),
    ("automation", 0.0, 0.2),
    ("biometric_anomaly", 0.0, 0.3),
    ("session_anomaly", 0.0, 0.3),
    ("amount_scale", 0.0, 0.5),
    ("tx_count_scale", 0.0, 0.5),
]

FRAUD_ARCHETYPES: dict[str, list[tuple[str, float, float]]] = {
    "identity_ring": [
        ("ip_ratio", 0.0, 0.4),
        ("device_ratio", 0.0, 0.4),
        ("graph_density", 0.5, 1.0),
        ("velocity", 0.1, 0.6),
        ("burst_rate", 0.2, 0.8),
    ],
    "automated_burst": [
        ("velocity", 0.5, 1.0),
        ("burst_rate", 0.6, 1.0),
        ("burst_window", 0.3, 1.0),
        ("synchronized_activity", 0.5, 1.0),
        ("automation", 0.4, 1.0),
        ("ip_ratio", 0.2, 0.8),
        ("device_ratio", 0.2, 0.8),
        ("graph_density", 0.3, 1.0),
    ],
    "money_mule": [
        ("funnel", 0.5, 1.0),
        ("circular_flow", 0.0, 1.0),
        ("pass_through", 0.3, 1.0),
        ("amount_scale", 0.3, 1.0),
        ("tx_count_scale", 0.3, 1.0),
        ("graph_density", 0.3, 1.0),
    ],
    "vpn_ring": [
        ("vpn_ratio", 0.5, 1.0),
        ("physical_consistency", 0.3, 1.0),
        ("ip_ratio", 0.1, 0.5),
        ("graph_density", 0.4, 1.0),
        ("biometric_anomaly", 0.4, 1.0),
        ("session_anomaly", 0.4, 1.0),
    ],
}


def _fill(row: np.ndarray, ranges: list[tuple[str, float, float]], rng: np.random.Generator) -> None:
    for name, low, high in ranges:
        row[FEATURE_INDEX[name]] = rng.uniform(low, high)


def generate_synthetic_training_data(
    count: int = 2000,
    fraud_rate: float = 0.2,
    seed: int = 42,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Return (X, y): X shape (count, 18) in [0, 1], y in {0 normal, 1 fraud}.

    Deterministic for a given seed.
    """
    rng = np.random.default_rng(seed)
    archetypes = list(FRAUD_ARCHETYPES.values())
    X = np.zeros((count, len(FEATURE_NAMES)), dtype=np.float64)
    y = np.zeros(count, dtype=np.int64)
    for i in range(count):
        _fill(X[i], NORMAL_RANGES, rng)
        if rng.random() < fraud_rate:
            y[i] = 1
            _fill(X[i], archetypes[int(rng.integers(len(archetypes)))], rng)
    return X, y


def train_classifier(
    X: np.ndarray,
    y: np.ndarray,
    *,
    n_estimators: int = 25,
    max_depth: int = 7,
    random_state: int = 42,
) -> RandomForestClassifier:
    clf = RandomForestClassifier(
        n_estimators=n_estimators,
        max_depth=max_depth,
        random_state=random_state,
    )
    clf.fit(X, y)
    logger.info("classifier_trained", rows=len(y), n_estimators=n_estimators, max_depth=max_depth)
    return clf


def train_anomaly_detector(
    X: np.ndarray,
    *,
    n_estimators: int = 25,
    random_state: int = 42,
) -> IsolationForest:
    detector = IsolationForest(n_estimators=n_estimators, random_state=random_state)
    detector.fit(X)
    logger.info("anomaly_detector_trained", rows=len(X), n_estimators=n_estimators)
    return detector


def training_summary(X: np.ndarray, y: np.ndarray) -> pd.DataFrame:
    """Per-feature mean by class, for the training log / CLI printout."""
    df = pd.DataFrame(X, columns=FEATURE_NAMES)
    df["label"] = y
    return df.groupby("label").mean().T.rename(columns={0: "normal", 1: "fraud"})


def main(argv: list[str] | None = None) -> int:
    from fraudlink.config.env import get_model_path
    from fraudlink.ml.registry import EnsembleConfig, ModelRegistry

    parser = argparse.ArgumentParser(description="Train and save the fraudlink model ensemble.")
    parser.add_argument("--out", type=Path, default=None, help="joblib output path")
    parser.add_argument("--rows", type=int, default=2000, help="synthetic training rows")
    parser.add_argument("--fraud-rate", type=float, default=0.2)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--summary", action="store_true", help="print per-class feature means")
    args = parser.parse_args(argv)

    config = EnsembleConfig(
        training_rows=args.rows,
        fraud_rate=args.fraud_rate,
        random_state=args.seed,
    )
    registry = ModelRegistry(config, model_path=args.out or get_model_path())
    if not registry.train(save=True):
        print("[train_model] training failed", file=sys.stderr)
        return 1
    if args.summary:
        X, y = generate_synthetic_training_data(args.rows, args.fraud_rate, args.seed)
        print(training_summary(X, y).round(3).to_string())
    print(f"[train_model] saved ensemble to {registry.model_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
