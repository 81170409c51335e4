"""Command-line interface argument parsing for the relay sidecar."""

from __future__ import annotations

import argparse
import math
from pathlib import Path


def positive_float(value: str) -> float:
    """Parse a strictly positive number of seconds for argparse."""
    try:
        parsed = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not a valid number") from None
    if not math.isfinite(parsed) or parsed <= 0:
        raise argparse.ArgumentTypeError(f"{value!r} must be a finite number greater than 0")
    return parsed


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Optional list of arguments to parse. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace with the following attributes:
        - once: Whether to run a single probe and exit
        - interval: Health check interval in seconds
        - timeout: Probe round-trip timeout in seconds
        - log_level: Logging level
        - env_file: Path to .env file
    """
    parser = argparse.ArgumentParser(
        prog="relay-sidecar",
        description="Relay sidecar - webhook relay proxy with end-to-end health probing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single health probe and exit with its outcome (0 healthy, 1 unhealthy)",
    )

    parser.add_argument(
        "--interval",
        type=positive_float,
        default=None,
        help="Health check interval in seconds (overrides HEALTH_CHECK_INTERVAL_SECONDS)",
    )

    parser.add_argument(
        "--timeout",
        type=positive_float,
        default=None,
        help="Probe round-trip timeout in seconds (overrides HEALTH_CHECK_TIMEOUT_SECONDS)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (overrides SIDECAR_LOG_LEVEL)",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: ./.env)",
    )

    return parser.parse_args(args)


__all__ = ["parse_args", "positive_float"]
