"""Tuning calculation, host detection and configuration rendering."""

from pgtune.services.tuning import (
    SystemProfile,
    TuningCalculator,
    TuningResult,
    Workload,
    compute,
)
from pgtune.services.host import HostDetector
from pgtune.services.render import ConfigRenderer

__all__ = [
    "SystemProfile",
    "TuningCalculator",
    "TuningResult",
    "Workload",
    "compute",
    "HostDetector",
    "ConfigRenderer",
]
