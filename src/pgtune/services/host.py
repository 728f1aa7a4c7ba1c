"""Host attribute detection.

Reads the facts a SystemProfile needs from the local machine:
- Total memory from /proc/meminfo
- CPU architecture from the kernel machine name
- Free space on the volume holding the write-ahead log

The tuning calculator never calls this; it only consumes the values.
"""

import platform
import shutil
from pathlib import Path

from pgtune.core.exceptions import DetectionError


MEMINFO_PATH = Path("/proc/meminfo")


class HostDetector:
    """Detects host attributes for building a SystemProfile."""

    def __init__(self, meminfo_path: Path = MEMINFO_PATH) -> None:
        self.meminfo_path = meminfo_path

    def memory_kb(self) -> int:
        """Total memory in kB from MemTotal."""
        try:
            with open(self.meminfo_path) as f:
                for line in f:
                    if line.startswith("MemTotal:"):
                        # Format: "MemTotal:     16384000 kB"
                        return int(line.split()[1])
        except (OSError, ValueError, IndexError) as e:
            raise DetectionError(
                f"Cannot read total memory from {self.meminfo_path}",
                hint="Pass --memory-kb explicitly",
                details=[str(e)],
            ) from e

        raise DetectionError(
            f"No MemTotal entry in {self.meminfo_path}",
            hint="Pass --memory-kb explicitly",
        )

    def architecture(self) -> str:
        """Kernel machine name, e.g. x86_64 or i686."""
        machine = platform.machine()
        if not machine:
            raise DetectionError(
                "Cannot determine CPU architecture",
                hint="Pass --architecture explicitly (32-bit or 64-bit)",
            )
        return machine

    def free_space_kb(self, path: Path) -> int:
        """Free space in kB on the volume containing path."""
        try:
            usage = shutil.disk_usage(path)
        except OSError as e:
            raise DetectionError(
                f"Cannot read free space for {path}",
                hint="Pass --free-log-kb explicitly or set postgres.log_volume",
                details=[str(e)],
            ) from e
        return usage.free // 1024
