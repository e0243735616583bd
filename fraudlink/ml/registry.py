"""
Model registry: explicit lifecycle for the cluster model ensemble.

load_or_train() loads the joblib bundle from model_path, or trains on the
synthetic set and saves it. It runs at most once per registry; a
threading.Lock makes concurrent first callers block until that single run
finishes, then share the result. predict() never mutates its input.

The engine receives a registry as a dependency; there is no module-level
model state.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

import joblib
import numpy as np

from fraudlink.core.exceptions import ModelUnavailableError
from fraudlink.fraudlink_logging import get_logger
from fraudlink.ml.features import FEATURE_INDEX, FEATURE_NAMES
from fraudlink.ml.train_model import (
    generate_synthetic_training_data,
    train_anomaly_detector,
    train_classifier,
)

logger = get_logger(__name__)

BUNDLE_VERSION = 1

# Explanation flag thresholds
SUPERVISED_FLAG_THRESHOLD = 0.5
ANOMALY_FLAG_THRESHOLD = 0.6
VELOCITY_FLAG_THRESHOLD = 0.4
BURST_FLAG_THRESHOLD = 0.4
DEVICE_RATIO_FLAG_THRESHOLD = 0.3
VPN_FLAG_THRESHOLD = 0.5


@dataclass
class EnsembleConfig:
    """Hyper-parameters and synthetic training size for the ensemble."""

    rf_n_estimators: int = 25
    rf_max_depth: int = 7
    if_n_estimators: int = 25
    random_state: int = 42
    training_rows: int = 2000
    fraud_rate: float = 0.2


@dataclass(frozen=True)
class ModelPrediction:
    """Independent model scores in [0, 1] plus human-readable flags."""

    supervised_risk: float = 0.0
    anomaly_score: float = 0.0
    explanation_flags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "supervised_risk": self.supervised_risk,
            "anomaly_score": self.anomaly_score,
            "explanation_flags": list(self.explanation_flags),
        }


def explanation_flags(vector: np.ndarray, supervised_risk: float, anomaly_score: float) -> list[str]:
    flags: list[str] = []
    if supervised_risk > SUPERVISED_FLAG_THRESHOLD:
        flags.append("ML classifier detected fraud patterns.")
    if anomaly_score > ANOMALY_FLAG_THRESHOLD:
        flags.append("High behavioral anomaly detected.")
    if vector[FEATURE_INDEX["velocity"]] > VELOCITY_FLAG_THRESHOLD:
        flags.append("High transaction velocity.")
    if vector[FEATURE_INDEX["burst_rate"]] > BURST_FLAG_THRESHOLD:
        flags.append("Abnormal burst rate.")
    if vector[FEATURE_INDEX["device_ratio"]] < DEVICE_RATIO_FLAG_THRESHOLD:
        flags.append("High device reuse.")
    if vector[FEATURE_INDEX["vpn_ratio"]] > VPN_FLAG_THRESHOLD:
        flags.append("Suspicious VPN usage.")
    return flags


class ModelRegistry:
    """
    Holds the trained classifier and anomaly detector.

    model_path None keeps the ensemble in memory only (train, never save).
    """

    def __init__(
        self,
        config: EnsembleConfig | None = None,
        model_path: str | Path | None = None,
    ) -> None:
        self.config = config or EnsembleConfig()
        self.model_path = Path(model_path) if model_path is not None else None
        self._lock = threading.Lock()
        self._classifier: Any = None
        self._detector: Any = None
        self._attempted = False
        self.train_count = 0

    @property
    def is_ready(self) -> bool:
        return self._classifier is not None and self._detector is not None

    # --- lifecycle ---

    def load_or_train(self) -> bool:
        """
        Make the ensemble ready exactly once. Returns True when ready.

        Failures are logged and remembered; later calls return False
        without retrying.
        """
        if self.is_ready:
            return True
        with self._lock:
            if self.is_ready:
                return True
            if self._attempted:
                return False
            self._attempted = True
            if self._load():
                return True
            return self._train_locked(save=self.model_path is not None)

    def train(self, *, save: bool = True) -> bool:
        """Train unconditionally (replacing any loaded models); save when a path is set."""
        with self._lock:
            self._attempted = True
            return self._train_locked(save=save and self.model_path is not None)

    def _load(self) -> bool:
        path = self.model_path
        if path is None or not path.is_file():
            return False
        try:
            bundle = joblib.load(path)
        except Exception as e:
            logger.warning("model_registry_load_failed", path=str(path), error=str(e))
            return False
        if not isinstance(bundle, dict) or bundle.get("feature_names") != FEATURE_NAMES:
            logger.warning("model_registry_bundle_stale", path=str(path))
            return False
        self._classifier = bundle.get("classifier")
        self._detector = bundle.get("anomaly_detector")
        logger.info("model_registry_loaded", path=str(path), trained_at=bundle.get("trained_at"))
        return self.is_ready

    def _train_locked(self, *, save: bool) -> bool:
        cfg = self.config
        logger.info("model_training_started", rows=cfg.training_rows, fraud_rate=cfg.fraud_rate)
        try:
            X, y = generate_synthetic_training_data(cfg.training_rows, cfg.fraud_rate, cfg.random_state)
            classifier = train_classifier(
                X, y,
                n_estimators=cfg.rf_n_estimators,
                max_depth=cfg.rf_max_depth,
                random_state=cfg.random_state,
            )
            detector = train_anomaly_detector(
                X, n_estimators=cfg.if_n_estimators, random_state=cfg.random_state
            )
        except Exception as e:
            logger.error("model_training_failed", error=str(e))
            return False
        self._classifier = classifier
        self._detector = detector
        self.train_count += 1
        logger.info("model_training_complete", rows=len(y), fraud_rows=int(y.sum()))
        if save:
            self._save()
        return True

    def _save(self) -> None:
        path = self.model_path
        bundle = {
            "version": BUNDLE_VERSION,
            "feature_names": list(FEATURE_NAMES),
            "classifier": self._classifier,
            "anomaly_detector": self._detector,
            "trained_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            joblib.dump(bundle, path)
        except OSError as e:
            logger.warning("model_registry_save_failed", path=str(path), error=str(e))
            return
        logger.info("model_registry_saved", path=str(path))

    # --- inference ---

    def predict(self, feature_vector: Sequence[float] | np.ndarray) -> ModelPrediction:
        """
        Score one 18-dim feature vector.

        Raises ModelUnavailableError when the ensemble cannot be made ready,
        ValueError on a vector of the wrong size.
        """
        if not self.load_or_train():
            raise ModelUnavailableError("model ensemble is not available")
        vector = np.array(feature_vector, dtype=np.float64)
        if vector.shape != (len(FEATURE_NAMES),):
            raise ValueError(f"expected {len(FEATURE_NAMES)} features, got shape {vector.shape}")
        X = vector.reshape(1, -1)
        with self._lock:
            classifier, detector = self._classifier, self._detector

        proba = classifier.predict_proba(X)[0]
        classes = list(getattr(classifier, "classes_", []))
        supervised = float(proba[classes.index(1)]) if 1 in classes else 0.0

        # score_samples is the negated isolation score; higher = more anomalous after negation
        anomaly = float(-detector.score_samples(X)[0])

        supervised = max(0.0, min(1.0, supervised))
        anomaly = max(0.0, min(1.0, anomaly))
        return ModelPrediction(
            supervised_risk=supervised,
            anomaly_score=anomaly,
            explanation_flags=explanation_flags(vector, supervised, anomaly),
        )
