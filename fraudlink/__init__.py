"""
FraudLink: fraud cluster detection and risk scoring.

Links accounts through shared identity signals and synchronized activity,
groups them into clusters, scores each cluster with a weighted rule set
blended with a small model ensemble, and explains the result in plain
language.
"""

__version__ = "0.1.0"
