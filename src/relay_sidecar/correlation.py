"""Correlation of outstanding probes with their round-trip signals.

A probe leaves the sidecar on the outbound POST and comes back, if the relay
is healthy, as an inbound request on a different connection. The
``CorrelationTable`` is the meeting point between the two paths: the emitter
registers a ``SignalSlot`` under the probe identifier and waits on it, and
the interceptor resolves the slot when the echoed probe arrives.

Concurrency contract:
- One ``threading.Lock`` guards the map. It is held only for the dictionary
  mutation, never across a slot wait, so lock hold time does not depend on
  the probe timeout.
- A slot is a capacity-one queue written with ``put_nowait``. Resolving a
  slot whose waiter already gave up never blocks and never raises.
- ``resolve`` pops the entry it signals, so a duplicated echo finds nothing
  and each slot receives at most one signal.
"""

from __future__ import annotations

import queue
import threading

from relay_sidecar.exceptions import DuplicateProbeError


class SignalSlot:
    """One-shot, non-blocking-write signal for a single probe.

    Attributes:
        probe_id: Identifier of the probe this slot belongs to.
    """

    def __init__(self, probe_id: str) -> None:
        self.probe_id = probe_id
        self._queue: queue.Queue[bool] = queue.Queue(maxsize=1)

    def deliver(self) -> bool:
        """Deliver the success signal without blocking.

        Returns:
            True if the signal was stored, False if the slot already held one.
        """
        try:
            self._queue.put_nowait(True)
        except queue.Full:
            return False
        return True

    def wait(self, timeout: float) -> bool:
        """Block until the signal arrives or ``timeout`` seconds elapse.

        Args:
            timeout: Maximum time to wait in seconds.

        Returns:
            True if signalled, False on timeout.
        """
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return False

    @property
    def signalled(self) -> bool:
        """Whether a signal is waiting to be consumed."""
        return not self._queue.empty()


class CorrelationTable:
    """Lock-guarded registry of outstanding probe identifiers.

    Constructed once at bootstrap and shared by the ``ProbeEmitter`` and the
    ``ProbeInterceptor``.

    Example:
        table = CorrelationTable()
        slot = table.register(probe_id)
        ...
        table.resolve(probe_id)  # from the inbound request path
        ...
        slot.wait(timeout=20.0)
        table.remove(probe_id)
    """

    def __init__(self) -> None:
        self._slots: dict[str, SignalSlot] = {}
        self._lock = threading.Lock()

    def register(self, probe_id: str) -> SignalSlot:
        """Create and store a fresh slot for ``probe_id``.

        Args:
            probe_id: Identifier of the probe about to be sent.

        Returns:
            The newly registered slot.

        Raises:
            DuplicateProbeError: If ``probe_id`` is already outstanding.
        """
        slot = SignalSlot(probe_id)
        with self._lock:
            if probe_id in self._slots:
                raise DuplicateProbeError(probe_id)
            self._slots[probe_id] = slot
        return slot

    def resolve(self, probe_id: str) -> bool:
        """Signal the slot waiting for ``probe_id``, if any.

        Args:
            probe_id: Identifier carried by the inbound probe.

        Returns:
            True if a waiter was found and signalled, False otherwise.
        """
        with self._lock:
            slot = self._slots.pop(probe_id, None)
        if slot is None:
            return False
        return slot.deliver()

    def remove(self, probe_id: str) -> None:
        """Delete the entry for ``probe_id``; a missing entry is a no-op."""
        with self._lock:
            self._slots.pop(probe_id, None)

    def __contains__(self, probe_id: object) -> bool:
        with self._lock:
            return probe_id in self._slots

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)


__all__ = ["CorrelationTable", "SignalSlot"]
