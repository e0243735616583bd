"""
Application-level exceptions.

The core algorithm has no fatal conditions; these cover the two external
collaborators (model ensemble, persistence sink), whose failures the
engine catches, logs, and degrades around.
"""

from __future__ import annotations


class FraudLinkError(Exception):
    """Base class for fraudlink errors."""


class ModelUnavailableError(FraudLinkError):
    """Model ensemble is not trained or could not be loaded/trained."""


class PersistenceError(FraudLinkError):
    """Cluster sink write failed."""
