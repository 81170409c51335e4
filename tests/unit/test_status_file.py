"""Tests for the shared health status file."""

from __future__ import annotations

import os
import stat
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from relay_sidecar.probe import HealthStatus
from relay_sidecar.status_file import (
    format_health_status,
    read_health_status,
    write_health_status,
)

OK = HealthStatus.success("Health check completed successfully")
FAILED = HealthStatus.failure("Health check timed out waiting for event round-trip")


class TestFormatHealthStatus:
    """Tests for format_health_status."""

    def test_two_line_format(self) -> None:
        assert format_health_status(OK) == (
            "status=success\nmessage=Health check completed successfully\n"
        )

    def test_newlines_in_message_are_flattened(self) -> None:
        status = HealthStatus.failure("Failed to POST to smee server:\nconnection\r\nrefused")

        content = format_health_status(status)

        assert content.count("\n") == 2
        assert content.endswith("message=Failed to POST to smee server: connection refused\n")


class TestWriteHealthStatus:
    """Tests for write_health_status."""

    def test_writes_file_and_creates_parent(self, tmp_path: Path) -> None:
        path = tmp_path / "shared" / "health-status.txt"

        write_health_status(OK, path)

        assert path.read_text() == format_health_status(OK)

    def test_file_is_world_readable(self, tmp_path: Path) -> None:
        path = tmp_path / "health-status.txt"

        write_health_status(OK, path)

        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_replaces_previous_content(self, tmp_path: Path) -> None:
        path = tmp_path / "health-status.txt"
        write_health_status(OK, path)

        write_health_status(FAILED, path)

        assert read_health_status(path) == FAILED

    def test_leaves_no_temporary_files(self, tmp_path: Path) -> None:
        path = tmp_path / "health-status.txt"

        for _ in range(5):
            write_health_status(OK, path)

        assert os.listdir(tmp_path) == ["health-status.txt"]

    def test_failed_rename_keeps_old_file_and_cleans_up(self, tmp_path: Path) -> None:
        path = tmp_path / "health-status.txt"
        write_health_status(OK, path)

        with patch("relay_sidecar.status_file.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError, match="disk full"):
                write_health_status(FAILED, path)

        assert read_health_status(path) == OK
        assert os.listdir(tmp_path) == ["health-status.txt"]

    def test_readers_never_see_partial_content(self, tmp_path: Path) -> None:
        path = tmp_path / "health-status.txt"
        write_health_status(OK, path)
        valid = {format_health_status(OK), format_health_status(FAILED)}
        seen: list[str] = []
        done = threading.Event()

        def writer() -> None:
            for i in range(200):
                write_health_status(OK if i % 2 else FAILED, path)
            done.set()

        thread = threading.Thread(target=writer)
        thread.start()
        while not done.is_set():
            seen.append(path.read_text())
        thread.join()

        assert seen
        assert set(seen) <= valid


class TestReadHealthStatus:
    """Tests for read_health_status."""

    def test_missing_file(self, tmp_path: Path) -> None:
        assert read_health_status(tmp_path / "missing.txt") is None

    def test_unknown_status(self, tmp_path: Path) -> None:
        path = tmp_path / "health-status.txt"
        path.write_text("status=maybe\nmessage=?\n")

        assert read_health_status(path) is None

    def test_reads_message_with_equals_sign(self, tmp_path: Path) -> None:
        path = tmp_path / "health-status.txt"
        path.write_text("status=failure\nmessage=Failed to POST to smee server: HTTP 500 a=b\n")

        status = read_health_status(path)

        assert status is not None
        assert status.message == "Failed to POST to smee server: HTTP 500 a=b"
