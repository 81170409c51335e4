"""Application runner for the relay sidecar.

Coordinates the relay and management servers, the health cycle and
shutdown:

- the relay server is required; without it no event, probe or ordinary,
  can be received, so a failed start ends the process;
- the management server is optional; if it fails to start, the sidecar
  keeps relaying and writing the status file, which the liveness probe
  scripts read directly;
- the health cycle runs in the main thread until SIGINT or SIGTERM.
"""

from __future__ import annotations

import argparse

from relay_sidecar.bootstrap import BootstrapContext, bootstrap
from relay_sidecar.cli import parse_args
from relay_sidecar.logging import get_logger
from relay_sidecar.server import BackgroundServer
from relay_sidecar.shutdown import create_shutdown_handler
from relay_sidecar.web import create_management_app, create_relay_app

logger = get_logger(__name__)


def start_relay_server(context: BootstrapContext) -> BackgroundServer | None:
    """Start the relay server.

    Returns:
        The running server, or None if it could not be started.
    """
    config = context.config
    app = create_relay_app(context.interceptor, context.forwarder, context.metrics)
    server = BackgroundServer("relay", host=config.relay_host, port=config.relay_port)
    try:
        server.start(app)
    except OSError as e:
        logger.error(
            "Relay server failed to start: %s",
            e,
            extra={"host": config.relay_host, "port": config.relay_port},
        )
        return None

    if not server.is_running:
        server.shutdown()
        return None
    return server


def start_management_server(context: BootstrapContext) -> BackgroundServer | None:
    """Start the management server.

    Failures are logged as warnings and the sidecar continues without it.

    Returns:
        The running server, or None if it could not be started.
    """
    config = context.config
    app = create_management_app(context.emitter, config, context.metrics)
    server = BackgroundServer(
        "management",
        host=config.management_host,
        port=config.management_port,
    )
    try:
        server.start(app)
    except OSError as e:
        logger.warning(
            "Management server failed to start, continuing without metrics: %s",
            e,
            extra={"host": config.management_host, "port": config.management_port},
        )
        return None

    if not server.is_running:
        logger.warning("Management server is not running, continuing without metrics")
        server.shutdown()
        return None
    return server


def run_once_mode(context: BootstrapContext) -> int:
    """Run a single health cycle.

    Only the relay server is started, since it must receive the echoed
    probe.

    Returns:
        Exit code: 0 if the probe succeeded, 1 otherwise.
    """
    if context.driver is None:
        logger.error("SMEE_CHANNEL_URL is not set, cannot run a health probe")
        return 1

    relay_server = start_relay_server(context)
    if relay_server is None:
        return 1

    try:
        logger.info("Running single health cycle (--once mode)")
        status = context.driver.run_cycle()
    finally:
        relay_server.shutdown()

    logger.info("Health check %s: %s", status.status.value, status.message)
    return 0 if status.succeeded else 1


def run_continuous_mode(context: BootstrapContext) -> int:
    """Serve traffic and run the health cycle until shutdown is requested.

    Returns:
        Exit code: 0 after a graceful shutdown, 1 if the relay failed to start.
    """
    relay_server = start_relay_server(context)
    if relay_server is None:
        return 1
    management_server = start_management_server(context)

    driver = context.driver

    def on_shutdown() -> None:
        if driver is not None:
            driver.stop()

    handler = create_shutdown_handler(on_shutdown)

    try:
        if driver is not None:
            driver.run()
        else:
            logger.warning("Health cycle disabled, relaying only")
            while not handler.wait(1.0):
                pass
    finally:
        if management_server is not None:
            management_server.shutdown()
        relay_server.shutdown()

    return 0


def run_application(parsed: argparse.Namespace, context: BootstrapContext) -> int:
    """Run the application in the mode selected on the command line.

    Args:
        parsed: Parsed command-line arguments.
        context: Bootstrap context with all dependencies.

    Returns:
        Exit code for the application.
    """
    if parsed.once:
        return run_once_mode(context)
    return run_continuous_mode(context)


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Optional list of command-line arguments.

    Returns:
        Exit code for the application.
    """
    parsed = parse_args(args)

    context = bootstrap(parsed)
    if context is None:
        # Bootstrap failed (logged internally)
        return 1

    return run_application(parsed, context)


__all__ = [
    "main",
    "run_application",
    "run_continuous_mode",
    "run_once_mode",
    "start_management_server",
    "start_relay_server",
]
