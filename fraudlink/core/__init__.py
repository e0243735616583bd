"""
Core utilities shared across the engine, model registry, and persistence layer.
"""

from fraudlink.core.exceptions import (
    FraudLinkError,
    ModelUnavailableError,
    PersistenceError,
)

__all__ = ["FraudLinkError", "ModelUnavailableError", "PersistenceError"]
