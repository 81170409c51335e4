"""Installation of the liveness probe scripts onto the shared volume.

The scripts ship inside the package (``relay_sidecar/scripts/``) and
are copied at startup into a directory shared with the other containers of
the pod, so their liveness probes can read the status file without bundling
their own tooling.
"""

from __future__ import annotations

import os
from importlib.resources import files
from pathlib import Path

from relay_sidecar.logging import get_logger

logger = get_logger(__name__)

PROBE_SCRIPTS = (
    "check-smee-health.sh",
    "check-sidecar-health.sh",
    "check-file-age.sh",
)

# Read and execute only; the scripts are not meant to be edited in place
SCRIPT_MODE = 0o555


def write_scripts_to_volume(directory: Path) -> list[Path]:
    """Install the probe scripts into ``directory``.

    Existing copies are replaced even though they are read-only, which is
    the normal situation after a container restart.

    Args:
        directory: Target directory; created if it does not exist.

    Returns:
        Paths of the installed scripts.

    Raises:
        OSError: If a script cannot be written.
    """
    directory.mkdir(parents=True, exist_ok=True)
    source_dir = files("relay_sidecar").joinpath("scripts")

    installed: list[Path] = []
    for name in PROBE_SCRIPTS:
        content = source_dir.joinpath(name).read_bytes()
        target = directory / name

        # Removing the entry only needs write permission on the directory
        target.unlink(missing_ok=True)
        target.write_bytes(content)
        os.chmod(target, SCRIPT_MODE)

        installed.append(target)

    logger.info("Installed %s probe scripts into %s", len(installed), directory)
    return installed


__all__ = ["PROBE_SCRIPTS", "SCRIPT_MODE", "write_scripts_to_volume"]
