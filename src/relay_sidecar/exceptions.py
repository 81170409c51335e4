"""Exception hierarchy for the relay sidecar."""

from __future__ import annotations


class SidecarError(Exception):
    """Base class for all relay sidecar errors."""

    pass


class ConfigError(SidecarError):
    """Raised when required configuration is missing or unusable."""

    pass


class DuplicateProbeError(SidecarError):
    """Raised when a probe identifier is registered while already outstanding.

    Attributes:
        probe_id: The identifier that collided.
    """

    def __init__(self, probe_id: str) -> None:
        super().__init__(f"Probe {probe_id} is already outstanding")
        self.probe_id = probe_id


class ProxyConfigurationError(SidecarError):
    """Raised when the downstream proxy target cannot be built."""

    pass


class DownstreamError(SidecarError):
    """Raised when a relayed message cannot be delivered downstream."""

    pass


__all__ = [
    "ConfigError",
    "DownstreamError",
    "DuplicateProbeError",
    "ProxyConfigurationError",
    "SidecarError",
]
