"""Recognition of echoed probes on the inbound relay path.

Every relayed request passes through ``ProbeInterceptor.inspect`` before any
forwarding decision. Probes resolve their waiting slot and stop here;
everything else, including bodies that merely look like probes, continues
to the downstream service.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass

from relay_sidecar.config import DETECTION_MODE_HEADER, DETECTION_MODE_HEADER_OR_PAYLOAD
from relay_sidecar.correlation import CorrelationTable
from relay_sidecar.logging import get_logger
from relay_sidecar.probe import PROBE_HEADER, PROBE_TYPE

logger = get_logger(__name__)


@dataclass(frozen=True)
class InterceptDecision:
    """What the relay should do with an inbound message.

    Attributes:
        is_probe: True if the message is a probe and must not be forwarded.
        probe_id: Identifier carried by the probe, if any.
        matched: True if an outstanding probe was waiting for this identifier.
    """

    is_probe: bool
    probe_id: str | None = None
    matched: bool = False


PASS_THROUGH = InterceptDecision(is_probe=False)


class ProbeInterceptor:
    """Splits inbound relayed traffic into probes and ordinary messages."""

    def __init__(
        self,
        table: CorrelationTable,
        detection_mode: str = DETECTION_MODE_HEADER,
    ) -> None:
        """Initialize the interceptor.

        Args:
            table: Correlation table shared with the emitter.
            detection_mode: ``"header"`` to recognize probes only by the
                ``X-Health-Check-ID`` header, or ``"header_or_payload"`` to
                also accept a ``{"type": "health-check", "id": ...}`` JSON
                body from senders that cannot set headers.
        """
        self._table = table
        self.detection_mode = detection_mode

    def inspect(self, headers: Mapping[str, str], body: bytes) -> InterceptDecision:
        """Classify an inbound message and resolve its slot if it is a probe.

        Args:
            headers: Request headers. Lookup must be case-insensitive, as with
                Starlette's ``Headers`` or ``httpx.Headers``.
            body: Raw request body.

        Returns:
            InterceptDecision for the relay handler.
        """
        probe_id = self._probe_id_from_header(headers)
        if probe_id is None and self.detection_mode == DETECTION_MODE_HEADER_OR_PAYLOAD:
            probe_id = self._probe_id_from_payload(headers, body)

        if probe_id is None:
            return PASS_THROUGH

        matched = self._table.resolve(probe_id)
        if matched:
            logger.info("Intercepted health check event", extra={"probe_id": probe_id})
        else:
            # Late echo of a probe that already timed out, or a duplicate
            logger.debug(
                "Health check event has no waiting probe, dropping",
                extra={"probe_id": probe_id, "diagnostic_tag": "intercept"},
            )
        return InterceptDecision(is_probe=True, probe_id=probe_id, matched=matched)

    @staticmethod
    def _probe_id_from_header(headers: Mapping[str, str]) -> str | None:
        value = headers.get(PROBE_HEADER)
        if value is None:
            return None
        value = value.strip()
        return value or None

    @staticmethod
    def _probe_id_from_payload(headers: Mapping[str, str], body: bytes) -> str | None:
        content_type = headers.get("content-type", "")
        if content_type.split(";", 1)[0].strip().lower() != "application/json":
            return None
        try:
            payload = json.loads(body)
        except (ValueError, RecursionError):
            return None
        if not isinstance(payload, dict) or payload.get("type") != PROBE_TYPE:
            return None
        probe_id = payload.get("id")
        if not isinstance(probe_id, str) or not probe_id.strip():
            return None
        return probe_id.strip()


__all__ = ["InterceptDecision", "PASS_THROUGH", "ProbeInterceptor"]
