"""Prometheus metrics for the relay sidecar.

Creates a dedicated CollectorRegistry so each sidecar instance (and each
test) gets isolated collectors instead of sharing the global default
registry.
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)

from relay_sidecar.correlation import CorrelationTable


class SidecarMetrics:
    """Prometheus-backed metrics for probes and relayed traffic."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

        self._health_check = Gauge(
            "health_check",
            "Indicates the outcome of the last completed health check (1 for OK, 0 for failure).",
            registry=self._registry,
        )

        self._events_relayed = Counter(
            "smee_events_relayed",
            "Total number of regular events relayed by the sidecar.",
            registry=self._registry,
        )

        self._probes_intercepted = Counter(
            "smee_probes_intercepted",
            "Total number of health check events intercepted on the relay path.",
            ["matched"],
            registry=self._registry,
        )

        self._outstanding_probes = Gauge(
            "smee_outstanding_probes",
            "Number of health check probes currently awaiting their round-trip.",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    @property
    def content_type(self) -> str:
        return CONTENT_TYPE_LATEST

    def set_health(self, healthy: bool) -> None:
        self._health_check.set(1 if healthy else 0)

    def inc_relayed(self) -> None:
        self._events_relayed.inc()

    def inc_intercepted(self, matched: bool) -> None:
        self._probes_intercepted.labels(matched="true" if matched else "false").inc()

    def track_outstanding(self, table: CorrelationTable) -> None:
        """Report the table size on every scrape."""
        self._outstanding_probes.set_function(lambda: len(table))

    def render(self) -> bytes:
        """Serialize all collectors in Prometheus text exposition format."""
        return generate_latest(self._registry)


__all__ = ["SidecarMetrics"]
