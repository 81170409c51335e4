"""HTTP surfaces of the relay sidecar.

Two FastAPI applications are served on separate ports:

- the relay app receives every event delivered by the relay client,
  answers echoed probes itself and proxies everything else downstream;
- the management app exposes Prometheus metrics, a liveness endpoint and an
  on-demand end-to-end health probe.
"""

from relay_sidecar.web.management import create_management_app
from relay_sidecar.web.relay import create_relay_app

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "create_management_app",
    "create_relay_app",
]
