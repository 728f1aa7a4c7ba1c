"""Unit tests for host attribute detection."""

from collections import namedtuple
from pathlib import Path
from unittest.mock import patch

import pytest

from pgtune.core.exceptions import DetectionError
from pgtune.services.host import HostDetector


DiskUsage = namedtuple("DiskUsage", ["total", "used", "free"])

MEMINFO = """MemTotal:       16384000 kB
MemFree:         8192000 kB
MemAvailable:   12288000 kB
"""


@pytest.fixture
def meminfo(tmp_path) -> Path:
    path = tmp_path / "meminfo"
    path.write_text(MEMINFO)
    return path


class TestMemory:
    """Tests for memory detection."""

    def test_reads_mem_total(self, meminfo):
        assert HostDetector(meminfo_path=meminfo).memory_kb() == 16384000

    def test_missing_file(self, tmp_path):
        detector = HostDetector(meminfo_path=tmp_path / "missing")
        with pytest.raises(DetectionError) as exc_info:
            detector.memory_kb()
        assert "--memory-kb" in exc_info.value.hint
        assert exc_info.value.exit_code == 6

    def test_no_mem_total(self, tmp_path):
        path = tmp_path / "meminfo"
        path.write_text("MemFree:  1024 kB\n")
        with pytest.raises(DetectionError):
            HostDetector(meminfo_path=path).memory_kb()

    def test_garbled_mem_total(self, tmp_path):
        path = tmp_path / "meminfo"
        path.write_text("MemTotal: lots kB\n")
        with pytest.raises(DetectionError):
            HostDetector(meminfo_path=path).memory_kb()


class TestArchitecture:
    """Tests for architecture detection."""

    def test_machine_name(self):
        with patch("pgtune.services.host.platform.machine", return_value="x86_64"):
            assert HostDetector().architecture() == "x86_64"

    def test_unknown_machine(self):
        with patch("pgtune.services.host.platform.machine", return_value=""):
            with pytest.raises(DetectionError):
                HostDetector().architecture()


class TestFreeSpace:
    """Tests for free space detection."""

    def test_free_space_in_kb(self):
        usage = DiskUsage(total=100 * 1024 ** 3, used=90 * 1024 ** 3, free=10 * 1024 ** 3)
        with patch("pgtune.services.host.shutil.disk_usage", return_value=usage) as mock_usage:
            assert HostDetector().free_space_kb(Path("/var/lib/postgresql")) == 10485760
        mock_usage.assert_called_once_with(Path("/var/lib/postgresql"))

    def test_missing_volume(self, tmp_path):
        with pytest.raises(DetectionError) as exc_info:
            HostDetector().free_space_kb(tmp_path / "missing")
        assert "--free-log-kb" in exc_info.value.hint

