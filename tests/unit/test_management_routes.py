"""Tests for the management application."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from relay_sidecar.config import Config
from relay_sidecar.correlation import CorrelationTable
from relay_sidecar.interceptor import ProbeInterceptor
from relay_sidecar.metrics import SidecarMetrics
from relay_sidecar.probe import ProbeEmitter
from relay_sidecar.web import create_management_app
from relay_sidecar.web.management import NOT_CONFIGURED_MESSAGE
from tests.helpers import make_config, make_echo_transport, make_error_transport


def make_client(emitter: ProbeEmitter, config: Config, metrics: SidecarMetrics) -> TestClient:
    return TestClient(create_management_app(emitter, config, metrics))


class TestLivez:
    """Tests for /livez."""

    @pytest.mark.parametrize("method", ["GET", "POST", "HEAD"])
    def test_always_alive(
        self, table: CorrelationTable, metrics: SidecarMetrics, method: str
    ) -> None:
        client = make_client(ProbeEmitter(table), make_config(smee_channel_url=""), metrics)

        response = client.request(method, "/livez")

        assert response.status_code == 200
        if method != "HEAD":
            assert response.text == "alive"


class TestMetricsEndpoint:
    """Tests for /metrics."""

    def test_exposes_prometheus_text(
        self, table: CorrelationTable, metrics: SidecarMetrics, config: Config
    ) -> None:
        metrics.set_health(True)
        metrics.inc_relayed()
        metrics.track_outstanding(table)
        client = make_client(ProbeEmitter(table), config, metrics)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "health_check 1.0" in response.text
        assert "smee_events_relayed_total 1.0" in response.text
        assert "smee_outstanding_probes 0.0" in response.text


class TestHealthz:
    """Tests for /healthz."""

    def test_not_configured(self, table: CorrelationTable, metrics: SidecarMetrics) -> None:
        client = make_client(ProbeEmitter(table), make_config(smee_channel_url=""), metrics)

        response = client.get("/healthz")

        assert response.status_code == 500
        assert response.text == NOT_CONFIGURED_MESSAGE

    def test_round_trip_ok(
        self,
        table: CorrelationTable,
        interceptor: ProbeInterceptor,
        metrics: SidecarMetrics,
        config: Config,
    ) -> None:
        transport, requests = make_echo_transport(interceptor)
        client = make_client(ProbeEmitter(table, transport=transport), config, metrics)

        response = client.get("/healthz")

        assert response.status_code == 200
        assert response.text == "OK"
        assert str(requests[0].url) == config.smee_channel_url
        assert len(table) == 0

    def test_timeout_returns_503(
        self, table: CorrelationTable, interceptor: ProbeInterceptor, metrics: SidecarMetrics
    ) -> None:
        transport, _ = make_echo_transport(interceptor, echo=False)
        config = make_config(health_check_timeout=0.2)
        client = make_client(ProbeEmitter(table, transport=transport), config, metrics)

        response = client.get("/healthz")

        assert response.status_code == 503
        assert response.text == ProbeEmitter.TIMEOUT_MESSAGE

    def test_send_failure_returns_503(
        self, table: CorrelationTable, metrics: SidecarMetrics, config: Config
    ) -> None:
        emitter = ProbeEmitter(
            table, transport=make_error_transport(httpx.ConnectError("connection refused"))
        )
        client = make_client(emitter, config, metrics)

        response = client.get("/healthz")

        assert response.status_code == 503
        assert response.text.startswith(ProbeEmitter.SEND_FAILURE_PREFIX)

    def test_does_not_touch_health_gauge(
        self, table: CorrelationTable, metrics: SidecarMetrics, config: Config
    ) -> None:
        """The gauge reflects the periodic cycle, not on-demand checks."""
        metrics.set_health(True)
        emitter = ProbeEmitter(
            table, transport=make_error_transport(httpx.ConnectError("connection refused"))
        )
        client = make_client(emitter, config, metrics)

        client.get("/healthz")

        assert metrics.registry.get_sample_value("health_check") == 1.0
