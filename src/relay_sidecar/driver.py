"""Periodic health cycle.

Each cycle runs one probe through the relay and records the outcome in the
status file and the ``health_check`` gauge. The first cycle runs as soon as
the loop starts, so a fresh status is available without waiting a full
interval.

Usage:
    driver = HealthCycleDriver(emitter, endpoint, metrics, status_path)
    driver.start()
    ...
    driver.stop()
"""

from __future__ import annotations

import threading
from enum import Enum
from pathlib import Path

from relay_sidecar.logging import get_logger
from relay_sidecar.metrics import SidecarMetrics
from relay_sidecar.probe import HealthStatus, ProbeEmitter
from relay_sidecar.status_file import write_health_status

logger = get_logger(__name__)

# Seconds added to the longest possible cycle when waiting for the loop to exit
STOP_MARGIN = 1.0


class DriverState(Enum):
    """Phase of the health cycle."""

    IDLE = "idle"
    RUNNING_PROBE = "running_probe"
    RECORDING = "recording"


class HealthCycleDriver:
    """Runs the probe on a fixed period and records each outcome."""

    def __init__(
        self,
        emitter: ProbeEmitter,
        endpoint: str,
        metrics: SidecarMetrics,
        status_path: Path,
        interval: float = 30.0,
        timeout: float = 20.0,
    ) -> None:
        """Initialize the driver.

        Args:
            emitter: Emitter that runs each probe.
            endpoint: Upstream relay channel URL the probes are posted to.
            metrics: Holds the ``health_check`` gauge.
            status_path: Status file read by the liveness probe scripts.
            interval: Seconds to wait after a cycle before starting the next.
            timeout: Seconds each probe waits for its round-trip.
        """
        self._emitter = emitter
        self.endpoint = endpoint
        self._metrics = metrics
        self.status_path = status_path
        self.interval = interval
        self.timeout = timeout

        self._state = DriverState.IDLE
        self._state_lock = threading.Lock()
        self._last_status: HealthStatus | None = None
        self._cycles = 0

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> DriverState:
        with self._state_lock:
            return self._state

    @property
    def last_status(self) -> HealthStatus | None:
        """Outcome of the most recent completed cycle."""
        with self._state_lock:
            return self._last_status

    @property
    def cycles(self) -> int:
        """Number of completed cycles."""
        with self._state_lock:
            return self._cycles

    def _set_state(self, state: DriverState) -> None:
        with self._state_lock:
            self._state = state

    def _record(self, status: HealthStatus) -> None:
        """Write ``status`` to the status file and the gauge.

        A status file that cannot be written is logged; the gauge is still
        updated.
        """
        self._set_state(DriverState.RECORDING)
        try:
            write_health_status(status, self.status_path)
        except OSError as e:
            logger.error(
                "Failed to write health status file %s: %s",
                self.status_path,
                e,
                extra={"probe_id": status.probe_id},
            )
        self._metrics.set_health(status.succeeded)

        with self._state_lock:
            self._last_status = status
            self._cycles += 1

    def run_cycle(self) -> HealthStatus:
        """Run one probe and record its outcome.

        Returns:
            The probe outcome.
        """
        self._set_state(DriverState.RUNNING_PROBE)
        try:
            status = self._emitter.run_probe(self.endpoint, self.timeout)
            self._record(status)
        finally:
            self._set_state(DriverState.IDLE)

        logger.debug(
            "Health cycle recorded: %s",
            status.message,
            extra={"probe_id": status.probe_id, "outcome": status.status.value},
        )
        return status

    def run(self, stop_event: threading.Event | None = None) -> None:
        """Run cycles until ``stop_event`` is set.

        The first cycle starts immediately. Between cycles the loop waits on
        the event, so a stop request takes effect without waiting out the
        interval. A probe already in flight finishes within ``stop_budget``.

        Args:
            stop_event: Event that ends the loop. Defaults to the driver's own
                event, which ``stop`` sets.
        """
        if stop_event is None:
            stop_event = self._stop_event
        logger.info(
            "Starting health cycle against %s every %.1fs (timeout %.1fs)",
            self.endpoint,
            self.interval,
            self.timeout,
        )

        while not stop_event.is_set():
            try:
                self.run_cycle()
            except Exception as e:
                # A failed cycle is recorded and the loop continues
                logger.exception("Health cycle failed unexpectedly: %s", e)
                try:
                    self._record(HealthStatus.failure(f"Unexpected error: {e}"))
                finally:
                    self._set_state(DriverState.IDLE)

            if stop_event.wait(self.interval):
                break

        logger.info("Health cycle stopped")

    @property
    def is_running(self) -> bool:
        """Whether a loop started by ``start`` is still alive."""
        return self._thread is not None and self._thread.is_alive()

    @property
    def stop_budget(self) -> float:
        """Default seconds ``stop`` waits: the send deadline plus the round-trip wait."""
        return self._emitter.send_timeout + self.timeout + STOP_MARGIN

    def start(self) -> None:
        """Run the loop in a daemon thread.

        Does nothing while a previous loop is still alive, including one that
        outlived ``stop``.
        """
        if self.is_running:
            logger.warning("Health cycle already running")
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run,
            args=(self._stop_event,),
            name="health-cycle",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the loop and wait for the thread to finish.

        The thread is kept while it is still alive, so ``start`` cannot launch
        a second loop next to it.

        Args:
            timeout: Seconds to wait for the thread. Defaults to
                ``stop_budget``.
        """
        self._stop_event.set()
        if self._thread is None:
            return

        join_timeout = timeout if timeout is not None else self.stop_budget
        self._thread.join(timeout=join_timeout)
        if self._thread.is_alive():
            logger.warning("Health cycle thread did not stop within %.1fs", join_timeout)
            return
        self._thread = None


__all__ = ["STOP_MARGIN", "DriverState", "HealthCycleDriver"]
