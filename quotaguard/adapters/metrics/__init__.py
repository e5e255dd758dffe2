"""Metrics recorders for rate limiter outcomes."""

from quotaguard.adapters.metrics.base import AbstractMetricsRecorder, NoOpMetricsRecorder
from quotaguard.adapters.metrics.prometheus import PrometheusMetricsRecorder

__all__ = [
    "AbstractMetricsRecorder",
    "NoOpMetricsRecorder",
    "PrometheusMetricsRecorder",
]
