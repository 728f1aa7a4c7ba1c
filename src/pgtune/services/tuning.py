"""PostgreSQL tuning calculator.

Provides:
- Workload profiles and their per-parameter policy
- The immutable system profile handed in by the caller
- Derivation of every tuning value from that profile

Based on the guidelines from
https://wiki.postgresql.org/wiki/Tuning_Your_PostgreSQL_Server

The calculator is pure: it never inspects the host, the running server or
any shared state. Host facts come from pgtune.services.host and the result
is written out by pgtune.services.render.
"""

import math
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any, Optional, Union

from pgtune.core.exceptions import (
    InvalidProfile,
    UnsupportedArchitecture,
    UnsupportedWorkload,
)
from pgtune.core.output import console
from pgtune.core.validation import (
    validate_engine_version,
    validate_kilobytes,
    validate_random_page_cost,
    validate_synchronous_commit,
    version_label,
)
from pgtune.services.rounding import binary_round, round_half_up


DEFAULT_RANDOM_PAGE_COST = 3.0
DEFAULT_SYNCHRONOUS_COMMIT = "on"

# WAL segments are fixed 16MB files
WAL_SEGMENT_MB = 16

# Hosts above this size reserve a fixed amount for the OS and other processes
LARGE_HOST_MB = 16384
LARGE_HOST_RESERVED_MB = 4096

# "1GB" hosts commonly report slightly under 1024MB
SMALL_HOST_MB = 950
SMALL_HOST_SHARED_BUFFERS_PCT = 0.15

MAINTENANCE_WORK_MEM_CEILING_MB = 4096

# max_wal_size replaced checkpoint_segments in 9.5
MAX_WAL_SIZE_VERSION = 9.5

# Checkpoint cycles worth of segments kept under max_wal_size
MAX_WAL_SIZE_CYCLES = 3

CONNECTION_ROUNDING = 10


class Workload(str, Enum):
    """Declared traffic pattern used to select tuning policy."""

    WEB = "web"
    OLTP = "oltp"
    DW = "dw"
    MIXED = "mixed"
    DESKTOP = "desktop"

    @property
    def description(self) -> str:
        """Human-readable description of the workload."""
        descriptions = {
            "web": "Web application backend, many short queries",
            "oltp": "Online transaction processing, high write concurrency",
            "dw": "Data warehouse, few large analytical queries",
            "mixed": "Mixed transactional and reporting workload",
            "desktop": "Developer desktop sharing memory with other apps",
        }
        return descriptions[self.value]

    @property
    def policy(self) -> "WorkloadPolicy":
        return WORKLOAD_POLICIES[self]

    @classmethod
    def parse(cls, value: Union["Workload", str]) -> "Workload":
        """Coerce a workload name into a Workload.

        Raises:
            UnsupportedWorkload: If value is not one of the five variants
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise UnsupportedWorkload(value)


@dataclass(frozen=True)
class WorkloadPolicy:
    """Every workload-dependent input of the calculation, for one workload.

    Attributes:
        dedicated: Host is dedicated to the database; effective cache takes
            most of memory instead of a quarter
        connection_cap: Hard ceiling on max_connections
        connection_work_mem_mb: Desired memory per connection used to size
            max_connections
        shared_buffers_divisor: Fraction (1/n) of memory for shared_buffers
        work_mem_ceiling_mb: Hard ceiling on work_mem
        work_mem_share: Share of the per-connection budget given to work_mem
        maintenance_divisor: Fraction (1/n) of effective cache for
            maintenance_work_mem
        checkpoint_segments: WAL segments between checkpoints
        checkpoint_completion_target: Fraction of the checkpoint interval
            spent flushing
        default_statistics_target: Planner statistics sample size
        wal_keep_share: Share of free log volume space kept as WAL segments
    """

    dedicated: bool
    connection_cap: int
    connection_work_mem_mb: int
    shared_buffers_divisor: int
    work_mem_ceiling_mb: int
    work_mem_share: float
    maintenance_divisor: int
    checkpoint_segments: int
    checkpoint_completion_target: str
    default_statistics_target: int
    wal_keep_share: float


WORKLOAD_POLICIES: dict[Workload, WorkloadPolicy] = {
    Workload.WEB: WorkloadPolicy(
        dedicated=True,
        connection_cap=500,
        connection_work_mem_mb=10,
        shared_buffers_divisor=4,
        work_mem_ceiling_mb=20,
        work_mem_share=1.0,
        maintenance_divisor=12,
        checkpoint_segments=8,
        checkpoint_completion_target="0.7",
        default_statistics_target=100,
        wal_keep_share=0.50,
    ),
    Workload.OLTP: WorkloadPolicy(
        dedicated=True,
        connection_cap=500,
        connection_work_mem_mb=10,
        shared_buffers_divisor=4,
        work_mem_ceiling_mb=20,
        work_mem_share=1.0,
        maintenance_divisor=12,
        checkpoint_segments=16,
        checkpoint_completion_target="0.9",
        default_statistics_target=100,
        wal_keep_share=0.50,
    ),
    Workload.DW: WorkloadPolicy(
        dedicated=True,
        connection_cap=100,
        connection_work_mem_mb=30,
        shared_buffers_divisor=4,
        work_mem_ceiling_mb=60,
        work_mem_share=0.85,
        maintenance_divisor=6,
        checkpoint_segments=64,
        checkpoint_completion_target="0.9",
        default_statistics_target=500,
        wal_keep_share=0.50,
    ),
    Workload.MIXED: WorkloadPolicy(
        dedicated=True,
        connection_cap=200,
        connection_work_mem_mb=15,
        shared_buffers_divisor=4,
        work_mem_ceiling_mb=30,
        work_mem_share=0.85,
        maintenance_divisor=12,
        checkpoint_segments=16,
        checkpoint_completion_target="0.9",
        default_statistics_target=100,
        wal_keep_share=0.50,
    ),
    Workload.DESKTOP: WorkloadPolicy(
        dedicated=False,
        connection_cap=50,
        connection_work_mem_mb=20,
        shared_buffers_divisor=16,
        work_mem_ceiling_mb=20,
        work_mem_share=0.15,
        maintenance_divisor=24,
        checkpoint_segments=3,
        checkpoint_completion_target="0.5",
        default_statistics_target=100,
        wal_keep_share=0.25,
    ),
}

_missing_policies = set(Workload) - set(WORKLOAD_POLICIES)
if _missing_policies:
    raise RuntimeError(f"No tuning policy for: {sorted(w.value for w in _missing_policies)}")


# Kernel machine names (uname -m) are accepted alongside the word-width labels
ARCH_32BIT_NAMES = frozenset({"32-bit", "i386", "i486", "i586", "i686"})
ARCH_64BIT_NAMES = frozenset({"64-bit", "x86_64", "amd64"})


class ArchitectureClass(Enum):
    """CPU word width, which caps shared_buffers."""

    BIT32 = "32-bit"
    BIT64 = "64-bit"
    OTHER = "other"

    @property
    def shared_buffers_cap_mb(self) -> Optional[int]:
        return {"32-bit": 2048, "64-bit": 8192, "other": None}[self.value]

    @classmethod
    def classify(cls, architecture: str, strict: bool = False) -> "ArchitectureClass":
        """Classify an architecture label or kernel machine name.

        Raises:
            UnsupportedArchitecture: If unknown and strict is set
        """
        label = architecture.strip().lower()
        if label in ARCH_32BIT_NAMES:
            return cls.BIT32
        if label in ARCH_64BIT_NAMES:
            return cls.BIT64
        if strict:
            raise UnsupportedArchitecture(architecture)
        return cls.OTHER


def default_data_directory(engine_version: float) -> str:
    """Debian cluster data directory for an engine version."""
    return f"/var/lib/postgresql/{version_label(engine_version)}/main"


@dataclass(frozen=True)
class SystemProfile:
    """Immutable description of the target host.

    Attributes:
        memory_kb: Total physical memory in kB
        architecture: "32-bit", "64-bit" or any other label (uncapped)
        free_log_volume_kb: Free space on the WAL volume in kB
        engine_version: Target PostgreSQL major(.minor) version
        workload: Workload (names are coerced)
        random_page_cost: Passed through to the result
        synchronous_commit: Passed through to the result
        data_directory: Passed through; defaults to the Debian cluster path
    """

    memory_kb: int
    architecture: str
    free_log_volume_kb: int
    engine_version: float
    workload: Workload
    random_page_cost: float = DEFAULT_RANDOM_PAGE_COST
    synchronous_commit: str = DEFAULT_SYNCHRONOUS_COMMIT
    data_directory: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate inputs so that no derivation ever sees a bad profile."""
        # Frozen dataclass: normalized values go through object.__setattr__
        set_ = object.__setattr__
        set_(self, "memory_kb", validate_kilobytes(self.memory_kb, "memory_kb"))
        set_(self, "free_log_volume_kb",
             validate_kilobytes(self.free_log_volume_kb, "free_log_volume_kb"))
        set_(self, "engine_version", validate_engine_version(self.engine_version))
        set_(self, "workload", Workload.parse(self.workload))
        set_(self, "random_page_cost", validate_random_page_cost(self.random_page_cost))
        set_(self, "synchronous_commit", validate_synchronous_commit(self.synchronous_commit))

        if not isinstance(self.architecture, str) or not self.architecture.strip():
            raise InvalidProfile(
                "Missing required value: architecture",
                field="architecture",
                hint="Use 32-bit, 64-bit or the kernel machine name (uname -m)",
            )

        if not self.data_directory:
            set_(self, "data_directory", default_data_directory(self.engine_version))


@dataclass(frozen=True)
class LegacySegments:
    """checkpoint_segments, for engines before 9.5."""

    segments: int

    @property
    def key(self) -> str:
        return "checkpoint_segments"

    @property
    def value(self) -> int:
        return self.segments

    def render(self) -> str:
        return f"{self.key} = {self.segments}"


@dataclass(frozen=True)
class MaxWalSize:
    """max_wal_size in MB, for 9.5 and later."""

    megabytes: int

    @property
    def key(self) -> str:
        return "max_wal_size"

    @property
    def value(self) -> str:
        return f"{self.megabytes}MB"

    def render(self) -> str:
        return f"{self.key} = {self.megabytes}MB"


CheckpointPolicy = Union[LegacySegments, MaxWalSize]


@dataclass(frozen=True)
class TuningResult:
    """Complete set of derived configuration values.

    Memory values are in MB.
    """

    memory: int
    max_connections: int
    shared_buffers: int
    effective_cache_size: int
    work_memory: int
    maintenance_work_memory: int
    checkpoint: CheckpointPolicy
    checkpoint_completion_target: str
    default_statistics_target: int
    random_page_cost: float
    synchronous_commit: str
    data_directory: str
    wal_keep_segments: int

    @property
    def checkpoint_segments_or_max_wal_size(self) -> str:
        return self.checkpoint.render()

    def as_dict(self) -> dict[str, Any]:
        """Output mapping consumed by renderers, in configuration order."""
        return {
            "memory": self.memory,
            "max_connections": self.max_connections,
            "shared_buffers": self.shared_buffers,
            "effective_cache_size": self.effective_cache_size,
            "work_memory": self.work_memory,
            "maintenance_work_memory": self.maintenance_work_memory,
            "checkpoint_segments_or_max_wal_size": self.checkpoint_segments_or_max_wal_size,
            "checkpoint_completion_target": self.checkpoint_completion_target,
            "default_statistics_target": self.default_statistics_target,
            "random_page_cost": self.random_page_cost,
            "synchronous_commit": self.synchronous_commit,
            "data_directory": self.data_directory,
            "wal_keep_segments": self.wal_keep_segments,
        }


class TuningCalculator:
    """Derives every tuning value from a SystemProfile.

    Several values depend on others (work_mem on max_connections and the
    effective cache), so intermediate values are computed once per instance.
    An instance is bound to a single profile and is discarded after use.
    """

    def __init__(self, profile: SystemProfile, *, strict_architecture: bool = False) -> None:
        """Initialize calculator.

        Args:
            profile: Validated system profile
            strict_architecture: Reject unknown architectures instead of
                leaving shared_buffers uncapped
        """
        self.profile = profile
        self.policy = profile.workload.policy
        self.architecture = ArchitectureClass.classify(
            profile.architecture, strict=strict_architecture
        )

    def calculate(self) -> TuningResult:
        """Compute the full result."""
        result = TuningResult(
            memory=self.memory,
            max_connections=self.max_connections,
            shared_buffers=self.shared_buffers(),
            effective_cache_size=self.effective_cache_size(),
            work_memory=self.work_memory(),
            maintenance_work_memory=self.maintenance_work_memory(),
            checkpoint=self.checkpoint_policy(),
            checkpoint_completion_target=self.policy.checkpoint_completion_target,
            default_statistics_target=self.policy.default_statistics_target,
            random_page_cost=self.profile.random_page_cost,
            synchronous_commit=self.profile.synchronous_commit,
            data_directory=self.profile.data_directory,
            wal_keep_segments=self.wal_keep_segments(),
        )
        for key, value in result.as_dict().items():
            console.debug(f"{key} = {value}")
        return result

    @cached_property
    def memory(self) -> int:
        """Total memory in MB."""
        return self.profile.memory_kb // 1024

    @cached_property
    def effective_cache(self) -> int:
        """Memory available for OS and database disk caching, in MB.

        Dedicated hosts above 16GB leave a fixed 4GB to the OS and other
        processes; smaller dedicated hosts keep three quarters.
        """
        if not self.policy.dedicated:
            return self.memory // 4
        if self.memory > LARGE_HOST_MB:
            return self.memory - LARGE_HOST_RESERVED_MB
        return self.memory * 3 // 4

    def effective_cache_size(self) -> int:
        return binary_round(self.effective_cache)

    def _connection_math(self, desired_work_mem: int) -> int:
        # e.g. 990MB of cache at ~10MB per connection gives 100 connections
        connections = round_half_up(self.effective_cache // desired_work_mem, CONNECTION_ROUNDING)
        return max(CONNECTION_ROUNDING, connections)

    @cached_property
    def max_connections(self) -> int:
        return min(
            self.policy.connection_cap,
            self._connection_math(self.policy.connection_work_mem_mb),
        )

    def _raw_shared_buffers(self) -> float:
        if self.memory <= SMALL_HOST_MB:
            buffers: float = self.memory * SMALL_HOST_SHARED_BUFFERS_PCT
        else:
            buffers = self.memory // self.policy.shared_buffers_divisor

        cap = self.architecture.shared_buffers_cap_mb
        if cap is not None:
            buffers = min(buffers, cap)
        return buffers

    def shared_buffers(self) -> int:
        """Memory dedicated to PostgreSQL's own data cache, in MB."""
        return binary_round(self._raw_shared_buffers())

    def _raw_work_memory(self) -> float:
        memory_per_connection = math.ceil(self.effective_cache / self.max_connections)
        return min(
            self.policy.work_mem_ceiling_mb,
            memory_per_connection * self.policy.work_mem_share,
        )

    def work_memory(self) -> int:
        """Memory per sort or hash operation, in MB.

        Applied to each operation of each connection, so it is sized from
        the cache available per connection.
        """
        return binary_round(self._raw_work_memory())

    def _raw_maintenance_work_memory(self) -> int:
        return min(
            self.effective_cache // self.policy.maintenance_divisor,
            MAINTENANCE_WORK_MEM_CEILING_MB,
        )

    def maintenance_work_memory(self) -> int:
        """Memory for VACUUM, CREATE INDEX and similar, in MB."""
        return binary_round(self._raw_maintenance_work_memory())

    def checkpoint_policy(self) -> CheckpointPolicy:
        segments = self.policy.checkpoint_segments
        if self.profile.engine_version >= MAX_WAL_SIZE_VERSION:
            return MaxWalSize(MAX_WAL_SIZE_CYCLES * segments * WAL_SEGMENT_MB)
        return LegacySegments(segments)

    def wal_keep_segments(self) -> int:
        """Share of free log volume space, as a count of 16MB segments."""
        free_mb = self.profile.free_log_volume_kb / 1024
        return round_half_up(free_mb * self.policy.wal_keep_share / WAL_SEGMENT_MB)


def compute(profile: SystemProfile, *, strict_architecture: bool = False) -> TuningResult:
    """Compute recommended settings for a system profile.

    Args:
        profile: Validated system profile
        strict_architecture: Raise on unknown architectures

    Returns:
        TuningResult with all thirteen values

    Raises:
        UnsupportedArchitecture: Unknown architecture in strict mode
    """
    return TuningCalculator(profile, strict_architecture=strict_architecture).calculate()
