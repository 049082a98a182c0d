"""
Intelligence: session history, metrics and the cognitive state classifier.
"""

from .classifier import RECOMMENDATIONS, CognitiveClassifier
from .history import (
    ErrorClusterReport,
    RecentError,
    SessionHistory,
    SessionMetrics,
    VelocitySample,
    compute_metrics,
    error_clusters,
    velocity_profile,
)
from .plugin import CognitiveModelPlugin

__all__ = [
    "SessionHistory",
    "SessionMetrics",
    "ErrorClusterReport",
    "RecentError",
    "VelocitySample",
    "compute_metrics",
    "error_clusters",
    "velocity_profile",
    "CognitiveClassifier",
    "RECOMMENDATIONS",
    "CognitiveModelPlugin",
]
