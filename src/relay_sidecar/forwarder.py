"""Reverse proxying of ordinary relayed events to the downstream service.

Requests that are not probes are replayed against ``DOWNSTREAM_SERVICE_URL``
with single-host reverse-proxy semantics:

- the target path is the downstream base path joined with the request path
  by exactly one slash, and the query strings are merged;
- hop-by-hop headers, and any header named in ``Connection``, are dropped in
  both directions;
- the client address is appended to ``X-Forwarded-For``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import httpx

from relay_sidecar.exceptions import DownstreamError, ProxyConfigurationError
from relay_sidecar.logging import get_logger

logger = get_logger(__name__)

# RFC 7230 section 6.1, plus the legacy Keep-Alive and Proxy-* headers
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)

# Recomputed by httpx for the outbound request
_REQUEST_EXCLUDED = frozenset({"host", "content-length"})

# The body handed back is already decoded and has a new length
_RESPONSE_EXCLUDED = frozenset({"content-length", "content-encoding"})


@dataclass(frozen=True)
class ForwardedResponse:
    """Downstream answer, ready to be relayed back to the caller."""

    status_code: int
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""


def single_joining_slash(base: str, path: str) -> str:
    """Join two URL paths so exactly one slash separates them."""
    base_slash = base.endswith("/")
    path_slash = path.startswith("/")
    if base_slash and path_slash:
        return base + path[1:]
    if not base_slash and not path_slash:
        return f"{base}/{path}"
    return base + path


def merge_query(base_query: str, query: str) -> str:
    if not base_query or not query:
        return base_query + query
    return f"{base_query}&{query}"


def filter_headers(
    headers: Iterable[tuple[str, str]],
    excluded: frozenset[str] = frozenset(),
) -> list[tuple[str, str]]:
    """Drop hop-by-hop headers and ``excluded`` names, keeping duplicates.

    Header names are compared case-insensitively.
    """
    pairs = list(headers)

    dropped = set(HOP_BY_HOP_HEADERS | excluded)
    for name, value in pairs:
        if name.lower() == "connection":
            dropped.update(token.strip().lower() for token in value.split(",") if token.strip())

    return [(name, value) for name, value in pairs if name.lower() not in dropped]


class DownstreamForwarder:
    """Replays ordinary relayed requests against the downstream service.

    A fresh ``httpx.AsyncClient`` is opened per request, so the forwarder
    holds no connection state between events.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 180.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the forwarder.

        Args:
            base_url: Downstream service URL. It is validated on every
                request so a bad value surfaces as a per-request error.
            timeout: Deadline in seconds for the downstream exchange.
            transport: Optional httpx transport, used to substitute the
                network in tests.
        """
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    def target_url(self, path: str, query: str = "") -> httpx.URL:
        """Build the downstream URL for an inbound path and query string.

        Raises:
            ProxyConfigurationError: If the downstream URL is not an absolute
                http(s) URL.
        """
        try:
            base = httpx.URL(self.base_url)
        except httpx.InvalidURL as e:
            raise ProxyConfigurationError(f"failed to create proxy: {e}") from e

        if base.scheme not in ("http", "https") or not base.host:
            raise ProxyConfigurationError(
                f"failed to create proxy: invalid downstream URL '{self.base_url}'"
            )

        base_query = base.query.decode("ascii")
        merged = merge_query(base_query, query)
        return base.copy_with(
            path=single_joining_slash(base.path, path),
            query=merged.encode("utf-8") if merged else None,
        )

    async def forward(
        self,
        method: str,
        path: str,
        query: str,
        headers: Iterable[tuple[str, str]],
        body: bytes,
        client_host: str | None = None,
    ) -> ForwardedResponse:
        """Send one request downstream and return its response.

        Args:
            method: HTTP method of the inbound request.
            path: Inbound request path.
            query: Inbound raw query string, without the leading ``?``.
            headers: Inbound headers as (name, value) pairs.
            body: Inbound request body.
            client_host: Address of the caller, appended to X-Forwarded-For.

        Returns:
            The downstream response with hop-by-hop headers removed.

        Raises:
            ProxyConfigurationError: If the downstream URL is unusable.
            DownstreamError: If the downstream service cannot be reached.
        """
        url = self.target_url(path, query)
        outbound = filter_headers(headers, _REQUEST_EXCLUDED)

        if client_host:
            prior = [value for name, value in outbound if name.lower() == "x-forwarded-for"]
            outbound = [
                (name, value) for name, value in outbound if name.lower() != "x-forwarded-for"
            ]
            outbound.append(("X-Forwarded-For", ", ".join([*prior, client_host])))

        logger.debug(
            "Forwarding %s %s",
            method,
            url,
            extra={"path": path, "diagnostic_tag": "forward"},
        )

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, headers=outbound, content=body)
        except httpx.HTTPError as e:
            detail = str(e) or type(e).__name__
            logger.warning("Downstream request failed: %s", detail, extra={"path": path})
            raise DownstreamError(f"downstream request failed: {detail}") from e

        return ForwardedResponse(
            status_code=response.status_code,
            headers=filter_headers(response.headers.multi_items(), _RESPONSE_EXCLUDED),
            body=response.content,
        )


__all__ = [
    "HOP_BY_HOP_HEADERS",
    "DownstreamForwarder",
    "ForwardedResponse",
    "filter_headers",
    "merge_query",
    "single_joining_slash",
]
