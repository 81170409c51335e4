"""Background uvicorn servers for the relay sidecar.

The relay and management applications each run in a uvicorn server on a
daemon thread, while the health cycle driver owns the main thread.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import uvicorn
    from starlette.types import ASGIApp

from relay_sidecar.logging import get_logger

logger = get_logger(__name__)


class BackgroundServer:
    """A uvicorn server running in a background thread.

    Example:
        from relay_sidecar.server import BackgroundServer
        from relay_sidecar.web import create_relay_app

        server = BackgroundServer("relay", host="0.0.0.0", port=8080)
        server.start(create_relay_app(interceptor, forwarder, metrics))

        # ... run the health cycle ...

        server.shutdown()
    """

    def __init__(self, name: str, host: str, port: int, startup_timeout: float = 5.0) -> None:
        """Initialize the server.

        Args:
            name: Label used in logs and as the thread name.
            host: The host address to bind to (e.g., "0.0.0.0" or "127.0.0.1").
            port: The port to listen on; 0 picks a free port.
            startup_timeout: Seconds ``start`` waits for the server to accept
                connections.
        """
        self.name = name
        self._host = host
        self._port = port
        self._startup_timeout = startup_timeout
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    @property
    def label(self) -> str:
        """Capitalized name for log messages."""
        return self.name.capitalize()

    @property
    def host(self) -> str:
        """Get the host address."""
        return self._host

    @property
    def port(self) -> int:
        """Get the configured port number."""
        return self._port

    @property
    def bound_port(self) -> int | None:
        """Port actually listened on, which differs from ``port`` when it is 0."""
        if self._server is None or not self._server.started:
            return None
        for server in self._server.servers:
            for sock in server.sockets:
                return int(sock.getsockname()[1])
        return None

    @property
    def is_running(self) -> bool:
        """Check if the server has started and its thread is still alive."""
        return (
            self._server is not None
            and self._server.started
            and self._thread is not None
            and self._thread.is_alive()
        )

    def start(self, app: ASGIApp) -> None:
        """Start serving ``app`` in a background thread.

        Blocks until the server has started or the startup timeout elapses.

        Args:
            app: The ASGI application to serve.
        """
        import uvicorn

        config = uvicorn.Config(
            app=app,
            host=self._host,
            port=self._port,
            log_config=None,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        server = self._server

        self._thread = threading.Thread(
            target=server.run,
            name=f"{self.name}-server",
            daemon=True,
        )
        self._thread.start()

        start_wait = time.monotonic()
        while not server.started:
            if not self._thread.is_alive():
                logger.error("%s server exited during startup", self.label)
                break
            if time.monotonic() - start_wait > self._startup_timeout:
                logger.warning("%s server startup timed out, continuing anyway", self.label)
                break
            time.sleep(0.05)

        if server.started:
            logger.info(
                "%s server listening on http://%s:%s",
                self.label,
                self._host,
                self.bound_port,
            )

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop the server and wait up to ``timeout`` seconds for its thread."""
        if self._server is None:
            return

        logger.info("Shutting down %s server...", self.name)
        self._server.should_exit = True

        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("%s server thread did not terminate gracefully", self.label)

        logger.info("%s server shutdown complete", self.label)


__all__ = ["BackgroundServer"]
