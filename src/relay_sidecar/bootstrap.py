"""Bootstrap and dependency wiring for the relay sidecar.

This module is the composition root. It loads configuration, applies CLI
overrides, configures logging and builds the shared correlation table
together with every component that uses it:

- the probe emitter and the health cycle driver on the outbound side;
- the probe interceptor and the downstream forwarder on the inbound side;
- the Prometheus metrics shared by both.

The correlation table is created once here and injected into both the
emitter and the interceptor; nothing else holds a reference to it.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from typing import Any

from relay_sidecar.config import Config, load_config
from relay_sidecar.correlation import CorrelationTable
from relay_sidecar.driver import HealthCycleDriver
from relay_sidecar.exceptions import ConfigError
from relay_sidecar.forwarder import DownstreamForwarder
from relay_sidecar.interceptor import ProbeInterceptor
from relay_sidecar.logging import get_logger, setup_logging
from relay_sidecar.metrics import SidecarMetrics
from relay_sidecar.probe import ProbeEmitter
from relay_sidecar.probe_scripts import write_scripts_to_volume

logger = get_logger(__name__)


class BootstrapContext:
    """Container for all bootstrapped dependencies."""

    def __init__(
        self,
        config: Config,
        table: CorrelationTable,
        metrics: SidecarMetrics,
        emitter: ProbeEmitter,
        interceptor: ProbeInterceptor,
        forwarder: DownstreamForwarder,
        driver: HealthCycleDriver | None = None,
    ) -> None:
        """Initialize the bootstrap context.

        Args:
            config: Application configuration.
            table: Correlation table shared by the emitter and interceptor.
            metrics: Prometheus metrics.
            emitter: Sends probes through the relay.
            interceptor: Recognizes echoed probes on the relay path.
            forwarder: Proxies ordinary relayed events downstream.
            driver: Periodic health cycle, or None when probing is disabled.
        """
        self.config = config
        self.table = table
        self.metrics = metrics
        self.emitter = emitter
        self.interceptor = interceptor
        self.forwarder = forwarder
        self.driver = driver


def apply_cli_overrides(config: Config, parsed: argparse.Namespace) -> Config:
    """Apply CLI argument overrides to the configuration.

    Args:
        config: Base configuration loaded from environment.
        parsed: Parsed command-line arguments.

    Returns:
        New Config instance with CLI overrides applied.
    """
    overrides: dict[str, Any] = {}

    if parsed.interval is not None:
        overrides["health_check_interval"] = parsed.interval
    if parsed.timeout is not None:
        overrides["health_check_timeout"] = parsed.timeout
    if parsed.log_level is not None:
        overrides["log_level"] = parsed.log_level

    if overrides:
        return replace(config, **overrides)
    return config


def install_probe_scripts(config: Config) -> None:
    """Copy the liveness probe scripts to the shared volume, if configured.

    A failure is logged and does not stop the sidecar.
    """
    if config.shared_scripts_dir is None:
        logger.info("SHARED_SCRIPTS_DIR is empty, not installing probe scripts")
        return

    try:
        write_scripts_to_volume(config.shared_scripts_dir)
    except OSError as e:
        logger.error(
            "Failed to install probe scripts into %s: %s",
            config.shared_scripts_dir,
            e,
        )


def create_components(config: Config, metrics: SidecarMetrics | None = None) -> BootstrapContext:
    """Build the sidecar components for ``config``.

    Args:
        config: Application configuration.
        metrics: Optional metrics instance; a new one is created by default.

    Returns:
        BootstrapContext holding the wired components.
    """
    table = CorrelationTable()
    metrics = metrics or SidecarMetrics()
    metrics.track_outstanding(table)

    emitter = ProbeEmitter(
        table,
        send_timeout=config.health_check_send_timeout,
        verify_tls=not config.insecure_skip_verify,
    )
    interceptor = ProbeInterceptor(table, detection_mode=config.probe_detection_mode)
    forwarder = DownstreamForwarder(
        config.downstream_service_url,
        timeout=config.downstream_timeout,
    )

    driver: HealthCycleDriver | None = None
    if config.probing_enabled:
        driver = HealthCycleDriver(
            emitter,
            config.smee_channel_url,
            metrics,
            config.health_file_path,
            interval=config.health_check_interval,
            timeout=config.health_check_timeout,
        )

    return BootstrapContext(
        config=config,
        table=table,
        metrics=metrics,
        emitter=emitter,
        interceptor=interceptor,
        forwarder=forwarder,
        driver=driver,
    )


def bootstrap(parsed: argparse.Namespace) -> BootstrapContext | None:
    """Bootstrap the application with all dependencies.

    Args:
        parsed: Parsed command-line arguments.

    Returns:
        BootstrapContext with all initialized dependencies, or None if the
        configuration is invalid.
    """
    try:
        config = load_config(parsed.env_file)
    except ConfigError as e:
        setup_logging(parsed.log_level or "INFO")
        logger.error("Invalid configuration: %s", e)
        return None
    config = apply_cli_overrides(config, parsed)

    setup_logging(
        config.log_level,
        json_format=config.log_json,
        diagnostic_tags=config.diagnostic_tags,
    )

    logger.info(
        "Relaying to %s, probe detection mode '%s'",
        config.downstream_service_url,
        config.probe_detection_mode,
    )
    if config.insecure_skip_verify:
        logger.warning("TLS verification is disabled for health probes")

    install_probe_scripts(config)

    return create_components(config)


# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "BootstrapContext",
    "apply_cli_overrides",
    "bootstrap",
    "create_components",
    "install_probe_scripts",
]
