"""Relay Sidecar - webhook relay proxy with end-to-end health probing."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("relay-sidecar")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source without pip install)
    __version__ = "0.0.0.dev0"

# Re-export core public API
from relay_sidecar.app import main
from relay_sidecar.correlation import CorrelationTable
from relay_sidecar.interceptor import ProbeInterceptor
from relay_sidecar.probe import HealthStatus, ProbeEmitter

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "__version__",
    "CorrelationTable",
    "HealthStatus",
    "ProbeEmitter",
    "ProbeInterceptor",
    "main",
]
