"""Configuration loading from environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from relay_sidecar.exceptions import ConfigError

# Valid log levels
VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

# Probe detection modes understood by the interceptor
DETECTION_MODE_HEADER = "header"
DETECTION_MODE_HEADER_OR_PAYLOAD = "header_or_payload"
VALID_DETECTION_MODES = frozenset({DETECTION_MODE_HEADER, DETECTION_MODE_HEADER_OR_PAYLOAD})

# Port validation bounds
MIN_PORT = 1
MAX_PORT = 65535


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment.

    Frozen: configuration is fixed for the lifetime of the process.
    """

    # Relay targets
    downstream_service_url: str = ""  # Where ordinary relayed events are forwarded
    smee_channel_url: str = ""  # Upstream relay channel that probes are posted to

    # Health cycle
    health_check_interval: float = 30.0  # seconds between cycles
    health_check_timeout: float = 20.0  # seconds to wait for the round-trip
    health_check_send_timeout: float = 10.0  # seconds allowed for the outbound POST
    insecure_skip_verify: bool = False  # Disable TLS verification for the probe POST
    probe_detection_mode: str = DETECTION_MODE_HEADER

    # Shared volume consumed by the liveness probe scripts
    health_file_path: Path = Path("/shared/health-status.txt")
    shared_scripts_dir: Path | None = Path("/shared")

    # Downstream proxying
    downstream_timeout: float = 180.0

    # Servers
    relay_host: str = "0.0.0.0"
    relay_port: int = 8080
    management_host: str = "0.0.0.0"
    management_port: int = 9100

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    diagnostic_tags: str = ""

    @property
    def probing_enabled(self) -> bool:
        """Check if a probe target is configured."""
        return bool(self.smee_channel_url)


def _parse_positive_float(value: str, name: str, default: float) -> float:
    """Parse a string as a positive float with validation.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed positive float, or the default if invalid.

    Logs a warning if the value is invalid.
    """
    try:
        parsed = float(value)
        if parsed <= 0:
            logging.warning(
                "Invalid %s: %s is not positive, using default %s",
                name,
                value,
                default,
            )
            return default
        return parsed
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid number, using default %s",
            name,
            value,
            default,
        )
        return default


def _parse_port(value: str, name: str, default: int) -> int:
    """Parse a string as a valid TCP port number with range validation.

    Args:
        value: The string value to parse.
        name: The name of the setting (for error messages).
        default: The default value to use if parsing fails.

    Returns:
        The parsed port number (MIN_PORT-MAX_PORT), or the default if invalid.
    """
    try:
        parsed = int(value)
        if parsed < MIN_PORT or parsed > MAX_PORT:
            logging.warning(
                "Invalid %s: %d is not a valid port (must be %d-%d), using default %d",
                name,
                parsed,
                MIN_PORT,
                MAX_PORT,
                default,
            )
            return default
        return parsed
    except ValueError:
        logging.warning(
            "Invalid %s: '%s' is not a valid integer, using default %d",
            name,
            value,
            default,
        )
        return default


def _parse_bool(value: str) -> bool:
    """Parse a string as a boolean.

    Returns:
        True if value is "true", "1", or "yes" (case-insensitive), False otherwise.
    """
    return value.strip().lower() in ("true", "1", "yes")


def _validate_log_level(value: str, default: str = "INFO") -> str:
    """Validate and normalize a log level string.

    Args:
        value: The log level string to validate.
        default: The default value to use if invalid.

    Returns:
        The validated log level (uppercase), or the default if invalid.
    """
    normalized = value.upper()
    if normalized not in VALID_LOG_LEVELS:
        logging.warning(
            "Invalid SIDECAR_LOG_LEVEL: '%s' is not valid, using default '%s'. Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_LOG_LEVELS)),
        )
        return default
    return normalized


def _validate_detection_mode(value: str, default: str = DETECTION_MODE_HEADER) -> str:
    """Validate and normalize a probe detection mode string.

    Args:
        value: The detection mode string to validate.
        default: The default value to use if invalid.

    Returns:
        The validated detection mode (lowercase), or the default if invalid.
    """
    normalized = value.strip().lower()
    if normalized not in VALID_DETECTION_MODES:
        logging.warning(
            "Invalid PROBE_DETECTION_MODE: '%s' is not valid, using default '%s'. Valid values: %s",
            value,
            default,
            ", ".join(sorted(VALID_DETECTION_MODES)),
        )
        return default
    return normalized


def load_config(env_file: Path | None = None) -> Config:
    """Load configuration from environment variables.

    Args:
        env_file: Optional path to .env file. If not provided,
                  looks for .env in current directory.

    Returns:
        Config object with loaded values.

    Raises:
        ConfigError: If DOWNSTREAM_SERVICE_URL is not set.

    Numeric values are validated and defaults are used for invalid inputs.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    downstream_service_url = os.getenv("DOWNSTREAM_SERVICE_URL", "").strip()
    if not downstream_service_url:
        raise ConfigError("DOWNSTREAM_SERVICE_URL environment variable must be set")

    smee_channel_url = os.getenv("SMEE_CHANNEL_URL", "").strip()
    if not smee_channel_url:
        logging.warning("SMEE_CHANNEL_URL is not set, round-trip health checks are disabled")

    health_check_interval = _parse_positive_float(
        os.getenv("HEALTH_CHECK_INTERVAL_SECONDS", "30"),
        "HEALTH_CHECK_INTERVAL_SECONDS",
        30.0,
    )
    health_check_timeout = _parse_positive_float(
        os.getenv("HEALTH_CHECK_TIMEOUT_SECONDS", "20"),
        "HEALTH_CHECK_TIMEOUT_SECONDS",
        20.0,
    )
    health_check_send_timeout = _parse_positive_float(
        os.getenv("HEALTH_CHECK_SEND_TIMEOUT_SECONDS", "10"),
        "HEALTH_CHECK_SEND_TIMEOUT_SECONDS",
        10.0,
    )
    downstream_timeout = _parse_positive_float(
        os.getenv("DOWNSTREAM_TIMEOUT_SECONDS", "180"),
        "DOWNSTREAM_TIMEOUT_SECONDS",
        180.0,
    )

    relay_port = _parse_port(os.getenv("RELAY_PORT", "8080"), "RELAY_PORT", 8080)
    management_port = _parse_port(
        os.getenv("MANAGEMENT_PORT", "9100"),
        "MANAGEMENT_PORT",
        9100,
    )

    # An empty SHARED_SCRIPTS_DIR turns off script installation
    scripts_dir_str = os.getenv("SHARED_SCRIPTS_DIR", "/shared").strip()
    shared_scripts_dir = Path(scripts_dir_str) if scripts_dir_str else None

    return Config(
        downstream_service_url=downstream_service_url,
        smee_channel_url=smee_channel_url,
        health_check_interval=health_check_interval,
        health_check_timeout=health_check_timeout,
        health_check_send_timeout=health_check_send_timeout,
        insecure_skip_verify=_parse_bool(os.getenv("INSECURE_SKIP_VERIFY", "")),
        probe_detection_mode=_validate_detection_mode(
            os.getenv("PROBE_DETECTION_MODE", DETECTION_MODE_HEADER),
        ),
        health_file_path=Path(os.getenv("HEALTH_FILE_PATH", "/shared/health-status.txt")),
        shared_scripts_dir=shared_scripts_dir,
        downstream_timeout=downstream_timeout,
        relay_host=os.getenv("RELAY_HOST", "0.0.0.0"),
        relay_port=relay_port,
        management_host=os.getenv("MANAGEMENT_HOST", "0.0.0.0"),
        management_port=management_port,
        log_level=_validate_log_level(os.getenv("SIDECAR_LOG_LEVEL", "INFO")),
        log_json=_parse_bool(os.getenv("SIDECAR_LOG_JSON", "")),
        diagnostic_tags=os.getenv("SIDECAR_DIAGNOSTIC_TAGS", ""),
    )


__all__ = [
    "DETECTION_MODE_HEADER",
    "DETECTION_MODE_HEADER_OR_PAYLOAD",
    "Config",
    "load_config",
]
