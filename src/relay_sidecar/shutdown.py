"""Graceful shutdown handling for the relay sidecar.

SIGINT and SIGTERM end the sidecar in a fixed order:

1. the ``on_shutdown`` callback stops the health cycle driver, so no status
   is written after the request;
2. the application runner, blocked in ``HealthCycleDriver.run`` or in
   ``ShutdownHandler.wait`` when probing is disabled, returns;
3. the runner shuts down the management server, then the relay server.
"""

from __future__ import annotations

import signal
import threading
from collections.abc import Callable
from types import FrameType

from relay_sidecar.logging import get_logger

logger = get_logger(__name__)


class ShutdownHandler:
    """Turns termination signals into a single shutdown request."""

    def __init__(self, on_shutdown: Callable[[], None] | None = None) -> None:
        """Initialize the shutdown handler.

        Args:
            on_shutdown: Called once, on the first request. The runner passes
                a callback that stops the health cycle driver.
        """
        self._requested = threading.Event()
        self._reason: str | None = None
        self._on_shutdown = on_shutdown

    @property
    def shutdown_requested(self) -> bool:
        return self._requested.is_set()

    @property
    def reason(self) -> str | None:
        """Signal name or caller-supplied reason of the first request."""
        return self._reason

    def request_shutdown(self, reason: str = "requested") -> None:
        """Request graceful shutdown.

        Only the first request stops the driver; later ones, such as a second
        Ctrl+C while the servers drain, are logged and ignored.
        """
        if self._requested.is_set():
            logger.debug("Shutdown already in progress, ignoring %s", reason)
            return

        logger.info("Shutdown requested (%s)", reason)
        self._reason = reason
        self._requested.set()

        if self._on_shutdown is not None:
            self._on_shutdown()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until shutdown is requested or ``timeout`` elapses.

        Returns:
            True if shutdown has been requested.
        """
        return self._requested.wait(timeout)

    def handle_signal(self, signum: int, frame: FrameType | None) -> None:
        """Handle SIGINT and SIGTERM."""
        self.request_shutdown(signal.Signals(signum).name)

    def install_signal_handlers(self) -> None:
        """Install signal handlers for SIGINT and SIGTERM.

        Must be called from the main thread.
        """
        signal.signal(signal.SIGINT, self.handle_signal)
        signal.signal(signal.SIGTERM, self.handle_signal)
        logger.debug("Signal handlers installed for SIGINT and SIGTERM")


def create_shutdown_handler(on_shutdown: Callable[[], None] | None = None) -> ShutdownHandler:
    """Create a ShutdownHandler with its signal handlers installed."""
    handler = ShutdownHandler(on_shutdown)
    handler.install_signal_handlers()
    return handler


__all__ = [
    "ShutdownHandler",
    "create_shutdown_handler",
]
