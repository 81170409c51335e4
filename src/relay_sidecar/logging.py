"""Structured logging configuration for the relay sidecar."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any

# Record attributes rendered as context by both formatters
CONTEXT_FIELDS = ("probe_id", "outcome", "path")


class DiagnosticFilter(logging.Filter):
    """Filter that gates debug log messages based on diagnostic tags.

    DEBUG records carrying a ``diagnostic_tag`` attribute (set via ``extra``)
    are only emitted when their tag is enabled. Records above DEBUG, or
    without a tag, always pass through.

    The relay path tags its per-request debug lines so they stay silent on a
    busy relay unless explicitly enabled via ``SIDECAR_DIAGNOSTIC_TAGS``
    (e.g. ``intercept,forward``). ``"*"`` enables every tag.

    Usage in application code::

        logger.debug(
            "Forwarding %s %s", method, path,
            extra={"diagnostic_tag": "forward"},
        )

    Attributes:
        enabled_tags: Frozenset of tag strings that are allowed through.
        allow_all: If ``True``, all tagged diagnostics are emitted.
    """

    def __init__(self, enabled_tags: frozenset[str] | None = None) -> None:
        super().__init__()
        self.enabled_tags: frozenset[str] = enabled_tags or frozenset()
        self.allow_all: bool = "*" in self.enabled_tags

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno != logging.DEBUG:
            return True

        tag: str | None = getattr(record, "diagnostic_tag", None)
        if tag is None:
            return True

        if self.allow_all:
            return True

        return tag in self.enabled_tags

    @classmethod
    def from_config_string(cls, tags_csv: str) -> DiagnosticFilter:
        """Create a filter from a comma-separated configuration string.

        Args:
            tags_csv: Comma-separated list of tags (e.g. ``"intercept,forward"``).
                An empty string means no tagged diagnostics are emitted.

        Returns:
            A configured ``DiagnosticFilter`` instance.
        """
        if not tags_csv.strip():
            return cls(frozenset())
        tags = frozenset(t.strip() for t in tags_csv.split(",") if t.strip())
        return cls(tags)


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs structured log messages.

    Includes timestamp, level, component, message, and any probe context.
    """

    def format(self, record: logging.LogRecord) -> str:
        # "relay_sidecar.driver" -> "driver"
        component = record.name.split(".")[-1] if "." in record.name else record.name

        timestamp = datetime.fromtimestamp(record.created, tz=UTC).strftime("%Y-%m-%d %H:%M:%S.%f")[
            :-3
        ]

        parts = [
            f"{timestamp}",
            f"[{record.levelname:8}]",
            f"[{component:12}]",
        ]

        context_parts = []
        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                context_parts.append(f"{key}={getattr(record, key)}")

        if context_parts:
            parts.append(f"[{' '.join(context_parts)}]")

        parts.append(record.getMessage())

        if record.exc_info:
            parts.append(self.formatException(record.exc_info))

        return " ".join(parts)


class JSONFormatter(logging.Formatter):
    """Formatter that outputs JSON log messages for machine parsing."""

    def format(self, record: logging.LogRecord) -> str:
        component = record.name.split(".")[-1] if "." in record.name else record.name

        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "component": component,
            "message": record.getMessage(),
        }

        for key in (*CONTEXT_FIELDS, "latency_ms"):
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class ContextAdapter(logging.LoggerAdapter[logging.Logger]):
    """Logger adapter that adds context to all log messages.

    Usage:
        logger = get_logger(__name__)
        probe_logger = logger.with_context(probe_id="6f1c...")
        probe_logger.info("Probe sent")
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = kwargs.get("extra", {})
        if self.extra is not None:
            extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


class SidecarLogger(logging.Logger):
    """Custom logger with context support."""

    def with_context(self, **context: Any) -> ContextAdapter:
        """Create a logger adapter with additional context.

        Args:
            **context: Context fields to add to all log messages.

        Returns:
            ContextAdapter with the specified context.
        """
        return ContextAdapter(self, context)


logging.setLoggerClass(SidecarLogger)


def get_logger(name: str) -> SidecarLogger:
    """Get a logger with the custom SidecarLogger class.

    Args:
        name: Logger name (typically __name__).

    Returns:
        SidecarLogger instance.
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    replace_handlers: bool = True,
    diagnostic_tags: str = "",
) -> None:
    """Configure logging for the application.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR).
        json_format: If True, output JSON-formatted logs.
        replace_handlers: If True, remove existing handlers before adding new ones.
        diagnostic_tags: Comma-separated list of diagnostic tags to enable.
            ``"*"`` enables all tagged diagnostics.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    if replace_handlers:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)

    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(StructuredFormatter())

    handler.addFilter(DiagnosticFilter.from_config_string(diagnostic_tags))

    root_logger.addHandler(handler)

    logging.getLogger("relay_sidecar").setLevel(numeric_level)
    # uvicorn's access log duplicates the relay's own request logging
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


__all__ = [
    "ContextAdapter",
    "DiagnosticFilter",
    "JSONFormatter",
    "SidecarLogger",
    "StructuredFormatter",
    "get_logger",
    "setup_logging",
]
