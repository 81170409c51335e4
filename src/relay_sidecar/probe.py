"""Synthetic round-trip probes through the webhook relay.

The emitter posts a uniquely identified probe to the upstream relay channel.
If the relay is healthy, the relay client delivers the probe back into this
process's relay server, where the interceptor resolves the slot the emitter
is waiting on.

Usage:
    from relay_sidecar.correlation import CorrelationTable
    from relay_sidecar.probe import ProbeEmitter

    table = CorrelationTable()
    emitter = ProbeEmitter(table, send_timeout=10.0)
    status = emitter.run_probe("https://smee.example.com/channel", timeout=20.0)
    if status.succeeded:
        ...
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from relay_sidecar.correlation import CorrelationTable
from relay_sidecar.exceptions import DuplicateProbeError
from relay_sidecar.logging import get_logger

logger = get_logger(__name__)

# Header carrying the probe identifier; the interceptor's fast detection path
PROBE_HEADER = "X-Health-Check-ID"

# Value of the "type" field in the probe body
PROBE_TYPE = "health-check"


class ProbeOutcome(Enum):
    """Outcome of a single health cycle."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True)
class HealthStatus:
    """Result of one probe, as written to the status file and gauge.

    Attributes:
        status: Probe outcome.
        message: Human-readable detail.
        probe_id: Identifier of the probe that produced this status, if any.
        latency_ms: Time from send to outcome in milliseconds.
    """

    status: ProbeOutcome
    message: str
    probe_id: str | None = None
    latency_ms: float = 0.0

    @property
    def succeeded(self) -> bool:
        """Whether the probe completed its round-trip."""
        return self.status is ProbeOutcome.SUCCESS

    @classmethod
    def success(cls, message: str, **kwargs: Any) -> HealthStatus:
        return cls(status=ProbeOutcome.SUCCESS, message=message, **kwargs)

    @classmethod
    def failure(cls, message: str, **kwargs: Any) -> HealthStatus:
        return cls(status=ProbeOutcome.FAILURE, message=message, **kwargs)


@dataclass(frozen=True)
class ProbePayload:
    """Body of a synthetic probe."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    type: str = PROBE_TYPE

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type, "id": self.id}


class ProbeEmitter:
    """Sends probes through the relay and waits for their round-trip.

    Attributes:
        send_timeout: Deadline in seconds for the outbound POST.
        verify_tls: Whether the outbound POST verifies TLS certificates.
    """

    SUCCESS_MESSAGE = "Health check completed successfully"
    TIMEOUT_MESSAGE = "Health check timed out waiting for event round-trip"
    SEND_FAILURE_PREFIX = "Failed to POST to smee server"

    def __init__(
        self,
        table: CorrelationTable,
        send_timeout: float = 10.0,
        verify_tls: bool = True,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the emitter.

        Args:
            table: Correlation table shared with the interceptor.
            send_timeout: Deadline in seconds for the outbound POST.
            verify_tls: Set to False to skip certificate validation.
            transport: Optional httpx transport, used to substitute the
                network in tests.
        """
        self._table = table
        self.send_timeout = send_timeout
        self.verify_tls = verify_tls
        self._transport = transport

    def run_probe(self, endpoint: str, timeout: float) -> HealthStatus:
        """Run one probe against ``endpoint`` and wait up to ``timeout`` seconds.

        Never raises: every failure is reported as a failure status. The
        probe's table entry is always removed before returning.

        Args:
            endpoint: Upstream relay channel URL.
            timeout: Seconds to wait for the round-trip after a successful send.

        Returns:
            HealthStatus describing the outcome.
        """
        probe = ProbePayload()
        probe_logger = logger.with_context(probe_id=probe.id)

        try:
            slot = self._table.register(probe.id)
        except DuplicateProbeError as e:
            # The colliding entry belongs to another probe, so it is left alone
            probe_logger.error("Could not register probe: %s", e)
            return HealthStatus.failure(f"Could not register probe: {e}", probe_id=probe.id)

        start_time = time.perf_counter()
        try:
            send_error = self._send(endpoint, probe)
            if send_error is not None:
                latency_ms = (time.perf_counter() - start_time) * 1000
                probe_logger.warning(
                    "Health check failed: could not post probe: %s",
                    send_error,
                    extra={"outcome": "failure", "latency_ms": round(latency_ms, 2)},
                )
                return HealthStatus.failure(
                    f"{self.SEND_FAILURE_PREFIX}: {send_error}",
                    probe_id=probe.id,
                    latency_ms=latency_ms,
                )

            probe_logger.debug("Probe sent, waiting up to %.1fs for round-trip", timeout)
            signalled = slot.wait(timeout)
            latency_ms = (time.perf_counter() - start_time) * 1000

            if signalled:
                probe_logger.info(
                    "Health check passed in %.2fms",
                    latency_ms,
                    extra={"outcome": "success", "latency_ms": round(latency_ms, 2)},
                )
                return HealthStatus.success(
                    self.SUCCESS_MESSAGE, probe_id=probe.id, latency_ms=latency_ms
                )

            probe_logger.warning(
                "Health check failed: timed out after %.2fms waiting for round-trip",
                latency_ms,
                extra={"outcome": "failure", "latency_ms": round(latency_ms, 2)},
            )
            return HealthStatus.failure(
                self.TIMEOUT_MESSAGE, probe_id=probe.id, latency_ms=latency_ms
            )
        except Exception as e:
            # Every failure is reported as a status
            latency_ms = (time.perf_counter() - start_time) * 1000
            probe_logger.exception(
                "Health check failed with unexpected error: %s",
                e,
                extra={"outcome": "failure", "latency_ms": round(latency_ms, 2)},
            )
            return HealthStatus.failure(
                f"Unexpected error: {e}", probe_id=probe.id, latency_ms=latency_ms
            )
        finally:
            self._table.remove(probe.id)

    def _send(self, endpoint: str, probe: ProbePayload) -> str | None:
        """POST the probe upstream.

        The identifier travels both as a header and in the JSON body so either
        detection mode on the receiving side recognizes it.

        Returns:
            None on success, otherwise a description of the send failure.
        """
        try:
            with httpx.Client(
                timeout=httpx.Timeout(self.send_timeout),
                verify=self.verify_tls,
                transport=self._transport,
            ) as client:
                response = client.post(
                    endpoint,
                    json=probe.to_dict(),
                    headers={PROBE_HEADER: probe.id},
                )
                response.raise_for_status()
        except httpx.TimeoutException:
            return f"request timed out after {self.send_timeout}s"
        except httpx.HTTPStatusError as e:
            return f"HTTP {e.response.status_code}"
        except httpx.HTTPError as e:
            return str(e) or type(e).__name__
        except httpx.InvalidURL as e:
            return f"invalid URL: {e}"
        except OSError as e:
            return f"OS error: {e}"
        return None


__all__ = [
    "PROBE_HEADER",
    "PROBE_TYPE",
    "HealthStatus",
    "ProbeEmitter",
    "ProbeOutcome",
    "ProbePayload",
]
