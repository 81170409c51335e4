"""Relay application: the inbound side of the webhook relay.

Every request, whatever its method or path, is first offered to the probe
interceptor. Probes are acknowledged here and never reach the downstream
service; everything else is proxied.
"""

from __future__ import annotations

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import PlainTextResponse

from relay_sidecar.exceptions import DownstreamError, ProxyConfigurationError
from relay_sidecar.forwarder import DownstreamForwarder
from relay_sidecar.interceptor import ProbeInterceptor
from relay_sidecar.logging import get_logger
from relay_sidecar.metrics import SidecarMetrics

logger = get_logger(__name__)

RELAY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_relay_routes(
    interceptor: ProbeInterceptor,
    forwarder: DownstreamForwarder,
    metrics: SidecarMetrics,
) -> APIRouter:
    """Create the catch-all relay route.

    Args:
        interceptor: Classifies inbound messages as probes or ordinary traffic.
        forwarder: Proxies ordinary traffic to the downstream service.
        metrics: Counters for intercepted and relayed messages.

    Returns:
        An APIRouter matching every path.
    """
    relay_router = APIRouter()

    @relay_router.api_route("/{path:path}", methods=RELAY_METHODS)
    async def relay(request: Request) -> Response:
        body = await request.body()

        decision = interceptor.inspect(request.headers, body)
        if decision.is_probe:
            metrics.inc_intercepted(decision.matched)
            # Probe connections are not reused
            return PlainTextResponse("OK", headers={"Connection": "close"})

        metrics.inc_relayed()
        client_host = request.client.host if request.client else None
        try:
            forwarded = await forwarder.forward(
                request.method,
                request.url.path,
                request.url.query,
                request.headers.items(),
                body,
                client_host=client_host,
            )
        except ProxyConfigurationError as e:
            logger.error("Cannot proxy request: %s", e, extra={"path": request.url.path})
            return PlainTextResponse(str(e), status_code=500)
        except DownstreamError:
            return PlainTextResponse("Bad Gateway", status_code=502)

        response = Response(content=forwarded.body, status_code=forwarded.status_code)
        for name, value in forwarded.headers:
            response.headers.append(name, value)
        return response

    return relay_router


def create_relay_app(
    interceptor: ProbeInterceptor,
    forwarder: DownstreamForwarder,
    metrics: SidecarMetrics,
) -> FastAPI:
    """Create the relay application served to the relay client."""
    app = FastAPI(
        title="Relay Sidecar",
        description="Webhook relay endpoint with health probe interception",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.include_router(create_relay_routes(interceptor, forwarder, metrics))
    return app


__all__ = ["RELAY_METHODS", "create_relay_app", "create_relay_routes"]
