"""Test helper functions for relay sidecar tests.

These helpers build configuration and httpx transports that stand in for
the upstream relay channel and the downstream service.

Usage
=====

Import and use helpers directly in tests::

    from tests.helpers import make_config, make_echo_transport

    def test_example(table, interceptor):
        transport, requests = make_echo_transport(interceptor)
        emitter = ProbeEmitter(table, transport=transport)
        status = emitter.run_probe(SMEE_URL, timeout=1.0)
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx

from relay_sidecar.config import Config
from relay_sidecar.interceptor import ProbeInterceptor
from relay_sidecar.metrics import SidecarMetrics

SMEE_URL = "https://smee.example.test/channel"
DOWNSTREAM_URL = "http://downstream.example.test:8080"


def make_config(**overrides: Any) -> Config:
    """Create a Config with test defaults.

    Args:
        **overrides: Config fields to override.

    Returns:
        Config instance.
    """
    defaults: dict[str, Any] = {
        "downstream_service_url": DOWNSTREAM_URL,
        "smee_channel_url": SMEE_URL,
        "health_check_interval": 30.0,
        "health_check_timeout": 1.0,
        "health_check_send_timeout": 1.0,
        "health_file_path": Path("/nonexistent/health-status.txt"),
        "shared_scripts_dir": None,
        "relay_host": "127.0.0.1",
        "relay_port": 0,
        "management_host": "127.0.0.1",
        "management_port": 0,
    }
    defaults.update(overrides)
    return Config(**defaults)


def make_echo_transport(
    interceptor: ProbeInterceptor,
    *,
    echo: bool = True,
    delay: float = 0.0,
    status_code: int = 200,
) -> tuple[httpx.MockTransport, list[httpx.Request]]:
    """Create a transport that behaves like a healthy relay channel.

    Each POSTed probe is handed to ``interceptor`` as if the relay client had
    delivered it back, either inline or after ``delay`` seconds on a timer
    thread.

    Args:
        interceptor: Interceptor that receives the echoed probes.
        echo: Set to False to accept probes without ever delivering them.
        delay: Seconds before the echo is delivered.
        status_code: Status returned to the emitter.

    Returns:
        Tuple of (transport, list of recorded requests).
    """
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if echo:
            headers = httpx.Headers(request.headers)
            body = request.content
            if delay > 0:
                timer = threading.Timer(delay, interceptor.inspect, args=(headers, body))
                timer.daemon = True
                timer.start()
            else:
                interceptor.inspect(headers, body)
        return httpx.Response(status_code, text="ok")

    return httpx.MockTransport(handler), requests


def make_error_transport(error: Exception) -> httpx.MockTransport:
    """Create a transport whose every request raises ``error``."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise error

    return httpx.MockTransport(handler)


def make_downstream_transport(
    status_code: int = 200,
    content: bytes = b"downstream-ok",
    headers: dict[str, str] | None = None,
    on_request: Callable[[httpx.Request], None] | None = None,
) -> tuple[httpx.MockTransport, list[httpx.Request]]:
    """Create a transport standing in for the downstream service.

    Returns:
        Tuple of (transport, list of recorded requests).
    """
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if on_request is not None:
            on_request(request)
        return httpx.Response(status_code, content=content, headers=headers)

    return httpx.MockTransport(handler), requests


def sample_value(
    metrics: SidecarMetrics,
    name: str,
    labels: dict[str, str] | None = None,
) -> float | None:
    """Read one sample from the metrics registry."""
    return metrics.registry.get_sample_value(name, labels or {})
