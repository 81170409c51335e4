"""Management application: metrics, liveness and on-demand health.

``/healthz`` runs a full probe synchronously. It is declared as a plain
function so FastAPI executes it in its worker threadpool, where blocking on
the probe does not stall the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, Response
from fastapi.responses import PlainTextResponse

from relay_sidecar.config import Config
from relay_sidecar.logging import get_logger
from relay_sidecar.metrics import SidecarMetrics
from relay_sidecar.probe import ProbeEmitter

logger = get_logger(__name__)

NOT_CONFIGURED_MESSAGE = "Sidecar not configured"

LIVEZ_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_management_routes(
    emitter: ProbeEmitter,
    config: Config,
    metrics: SidecarMetrics,
) -> APIRouter:
    """Create the management routes.

    Args:
        emitter: Probe emitter used by ``/healthz``.
        config: Provides the probe target and timeout.
        metrics: Registry rendered by ``/metrics``.

    Returns:
        An APIRouter with ``/metrics``, ``/livez`` and ``/healthz``.
    """
    management_router = APIRouter()

    @management_router.get("/metrics")
    def prometheus_metrics() -> Response:
        return Response(content=metrics.render(), media_type=metrics.content_type)

    @management_router.api_route("/livez", methods=LIVEZ_METHODS)
    def livez() -> PlainTextResponse:
        """Report that the process is serving requests, whatever the relay health."""
        return PlainTextResponse("alive")

    @management_router.get("/healthz")
    def healthz() -> PlainTextResponse:
        """Run one end-to-end probe and report its outcome."""
        if not config.probing_enabled:
            logger.error("Health probe requested but SMEE_CHANNEL_URL is not set")
            return PlainTextResponse(NOT_CONFIGURED_MESSAGE, status_code=500)

        status = emitter.run_probe(config.smee_channel_url, config.health_check_timeout)
        if status.succeeded:
            return PlainTextResponse("OK")
        return PlainTextResponse(status.message, status_code=503)

    return management_router


def create_management_app(
    emitter: ProbeEmitter,
    config: Config,
    metrics: SidecarMetrics,
) -> FastAPI:
    """Create the management application."""
    app = FastAPI(
        title="Relay Sidecar Management",
        description="Metrics and health endpoints for the relay sidecar",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.include_router(create_management_routes(emitter, config, metrics))
    return app


__all__ = [
    "NOT_CONFIGURED_MESSAGE",
    "create_management_app",
    "create_management_routes",
]
