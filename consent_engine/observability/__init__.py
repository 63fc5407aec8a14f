"""Observability layer: metrics and failure classification. No external SaaS."""

from consent_engine.observability.failure_classifier import FailureCategory, FailureClassifier
from consent_engine.observability.metrics import MetricsCollector

__all__ = [
    "FailureCategory",
    "FailureClassifier",
    "MetricsCollector",
]
