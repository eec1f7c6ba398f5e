"""Observability: structlog setup, per-request diagnostic capture and Prometheus metrics."""

from reviewscout.observability.log_capture import DiagnosticSink
from reviewscout.observability.metrics import metrics

__all__ = ["DiagnosticSink", "metrics"]
