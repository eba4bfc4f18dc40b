"""
Decision fairness and synthetic-identity risk analytics for consumer banking.
"""

from lume_fairness.analytics.bias import BiasDetector
from lume_fairness.analytics.fairness import FairnessMetricsEngine
from lume_fairness.analytics.synthetic_identity import SyntheticIdentityRiskEngine

__all__ = ["BiasDetector", "FairnessMetricsEngine", "SyntheticIdentityRiskEngine"]
