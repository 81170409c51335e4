"""Shared pytest fixtures for relay sidecar tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest

from relay_sidecar.config import Config
from relay_sidecar.correlation import CorrelationTable
from relay_sidecar.interceptor import ProbeInterceptor
from relay_sidecar.metrics import SidecarMetrics
from tests.helpers import make_config

# Environment variables read by load_config
SIDECAR_ENV_VARS = (
    "DOWNSTREAM_SERVICE_URL",
    "SMEE_CHANNEL_URL",
    "HEALTH_CHECK_INTERVAL_SECONDS",
    "HEALTH_CHECK_TIMEOUT_SECONDS",
    "HEALTH_CHECK_SEND_TIMEOUT_SECONDS",
    "HEALTH_FILE_PATH",
    "SHARED_SCRIPTS_DIR",
    "INSECURE_SKIP_VERIFY",
    "PROBE_DETECTION_MODE",
    "DOWNSTREAM_TIMEOUT_SECONDS",
    "RELAY_HOST",
    "RELAY_PORT",
    "MANAGEMENT_HOST",
    "MANAGEMENT_PORT",
    "SIDECAR_LOG_LEVEL",
    "SIDECAR_LOG_JSON",
    "SIDECAR_DIAGNOSTIC_TAGS",
)


@pytest.fixture(autouse=True)
def preserve_root_logger() -> Generator[None, None, None]:
    """Restore logger handlers and levels changed by setup_logging."""
    root = logging.getLogger()
    package = logging.getLogger("relay_sidecar")
    handlers = root.handlers[:]
    root_level = root.level
    package_level = package.level
    yield
    root.handlers[:] = handlers
    root.setLevel(root_level)
    package.setLevel(package_level)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Remove every sidecar variable from the environment.

    Each variable is set before it is deleted so teardown also removes
    values a test loads from a .env file.
    """
    for name in SIDECAR_ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


@pytest.fixture
def table() -> CorrelationTable:
    return CorrelationTable()


@pytest.fixture
def metrics() -> SidecarMetrics:
    return SidecarMetrics()


@pytest.fixture
def interceptor(table: CorrelationTable) -> ProbeInterceptor:
    return ProbeInterceptor(table)


@pytest.fixture
def status_path(tmp_path: Path) -> Path:
    return tmp_path / "shared" / "health-status.txt"


@pytest.fixture
def config(status_path: Path) -> Config:
    return make_config(health_file_path=status_path)
