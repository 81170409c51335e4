"""Health status file shared with the liveness probe scripts.

The file holds exactly two ``key=value`` lines::

    status=success
    message=Health check completed successfully

It is replaced atomically on every cycle: the new content is written to a
temporary file in the same directory, flushed to disk, then renamed over the
old file. A reader therefore sees either the previous record or the new one,
never a partial write. The scripts also use the file's modification time to
detect a stalled health checker.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from relay_sidecar.probe import HealthStatus, ProbeOutcome


def format_health_status(status: HealthStatus) -> str:
    """Render a status in the two-line file format.

    Line breaks in the message are flattened so the record stays two lines.
    """
    message = " ".join(status.message.splitlines())
    return f"status={status.status.value}\nmessage={message}\n"


def write_health_status(status: HealthStatus, path: Path) -> None:
    """Atomically replace the status file at ``path``.

    Args:
        status: Status to persist.
        path: Destination file. Its parent directory is created if needed.

    Raises:
        OSError: If the file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(format_health_status(status))
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600; the probe scripts may run as another user
        os.chmod(tmp, 0o644)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


def read_health_status(path: Path) -> HealthStatus | None:
    """Read the status file back.

    Returns:
        The stored status, or None if the file is missing or unreadable.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        return None

    fields: dict[str, str] = {}
    for line in content.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            fields[key] = value

    try:
        outcome = ProbeOutcome(fields.get("status", ""))
    except ValueError:
        return None
    return HealthStatus(status=outcome, message=fields.get("message", ""))


__all__ = ["format_health_status", "read_health_status", "write_health_status"]
