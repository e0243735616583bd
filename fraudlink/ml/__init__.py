"""
Model ensemble for cluster risk: feature builder, synthetic training, registry.
"""

from fraudlink.ml.features import FEATURE_NAMES, ClusterFeatures, build_cluster_features
from fraudlink.ml.registry import EnsembleConfig, ModelPrediction, ModelRegistry

__all__ = [
    "FEATURE_NAMES",
    "ClusterFeatures",
    "build_cluster_features",
    "EnsembleConfig",
    "ModelPrediction",
    "ModelRegistry",
]
