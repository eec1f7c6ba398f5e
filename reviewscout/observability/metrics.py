"""
Prometheus metrics for the review scout.

All metrics are no-op when observability.metrics_enabled is False.
Exposes record_tier_attempt, record_tier_escalation, record_acquisition,
record_analysis, track_tier and start_server.
"""

from __future__ import annotations

import contextlib
import threading
import time
from typing import Any

import structlog
from prometheus_client import (
    Counter,
    Histogram,
    start_http_server as prometheus_start_http_server,
)

logger = structlog.get_logger()


def _enabled() -> bool:
    try:
        from reviewscout.config import get_settings
        return bool(get_settings().observability.metrics_enabled)
    except Exception:
        return False


# Lazy registry: only create metrics when enabled and first used
_metrics_created = False


def _ensure_metrics() -> bool:
    global _metrics_created
    if _metrics_created or not _enabled():
        return _metrics_created
    _create_metrics()
    _metrics_created = True
    return True


def _create_metrics() -> None:
    """Create all Prometheus metrics (called once when enabled)."""
    _acquisitions = Counter(
        "review_acquisitions_total",
        "Acquisitions by the tier that finally produced the result",
        ["tier", "empty"],
    )
    _tier_attempts = Counter(
        "tier_attempts_total",
        "Tier attempts by outcome",
        ["tier", "outcome"],
    )
    _tier_duration = Histogram(
        "tier_attempt_duration_seconds",
        "Latency of a single tier attempt",
        ["tier"],
        buckets=[0.5, 1, 2, 5, 10, 30, 60],
    )
    _tier_escalation = Counter(
        "tier_escalation_total",
        "Fallbacks from one tier to the next",
        ["from_tier", "to_tier"],
    )
    _reviews_analyzed = Counter(
        "reviews_analyzed_total",
        "Review strings scored by the selector",
        [],
    )

    _registry = {
        "acquisitions": _acquisitions,
        "tier_attempts": _tier_attempts,
        "tier_duration": _tier_duration,
        "tier_escalation": _tier_escalation,
        "reviews_analyzed": _reviews_analyzed,
    }
    setattr(_MetricsCollector, "_registry", _registry)


class _MetricsCollector:
    """Collector that delegates to Prometheus when enabled, no-op otherwise."""

    _registry: dict[str, Any] = {}

    def _get(self, name: str) -> Any:
        _ensure_metrics()
        return self._registry.get(name)

    # --- Tiers ---
    def record_tier_attempt(self, tier: str, outcome: str, duration: float) -> None:
        c = self._get("tier_attempts")
        h = self._get("tier_duration")
        if c:
            c.labels(tier=tier or "unknown", outcome=outcome or "unknown").inc()
        if h:
            h.labels(tier=tier or "unknown").observe(duration)

    def record_tier_escalation(self, from_tier: str, to_tier: str) -> None:
        c = self._get("tier_escalation")
        if c:
            c.labels(from_tier=from_tier or "unknown", to_tier=to_tier or "unknown").inc()

    @contextlib.asynccontextmanager
    async def track_tier(self, tier: str):
        """Time a tier attempt and count it as ok/error."""
        start = time.perf_counter()
        outcome = "ok"
        try:
            yield
        except Exception:
            outcome = "error"
            raise
        finally:
            self.record_tier_attempt(tier, outcome, time.perf_counter() - start)

    # --- Results ---
    def record_acquisition(self, tier: str, empty: bool = False) -> None:
        c = self._get("acquisitions")
        if c:
            c.labels(tier=tier or "unknown", empty=str(bool(empty)).lower()).inc()

    def record_analysis(self, review_count: int) -> None:
        c = self._get("reviews_analyzed")
        if c and review_count > 0:
            c.inc(review_count)

    def start_server(self, port: int = 9100) -> None:
        if not _enabled():
            return
        _ensure_metrics()

        def run() -> None:
            try:
                prometheus_start_http_server(port, addr="0.0.0.0")
            except OSError as e:
                logger.warning("metrics_server_failed", port=port, error=str(e))

        t = threading.Thread(target=run, daemon=True)
        t.start()


metrics = _MetricsCollector()
