"""Unit tests for the PostgreSQL tuning calculator."""

import pytest

from pgtune.core.exceptions import UnsupportedArchitecture
from pgtune.services.tuning import (
    WORKLOAD_POLICIES,
    ArchitectureClass,
    LegacySegments,
    MaxWalSize,
    SystemProfile,
    TuningCalculator,
    Workload,
    compute,
)


GIB_KB = 1024 * 1024
FREE_10GIB_KB = 10 * GIB_KB


def make_profile(
    memory_kb=GIB_KB,
    workload="oltp",
    architecture="64-bit",
    free_log_volume_kb=FREE_10GIB_KB,
    engine_version=10,
    **kwargs,
):
    return SystemProfile(
        memory_kb=memory_kb,
        architecture=architecture,
        free_log_volume_kb=free_log_volume_kb,
        engine_version=engine_version,
        workload=workload,
        **kwargs,
    )


class TestWorkload:
    """Tests for Workload enum."""

    def test_workload_values(self):
        """Workloads should have the expected names."""
        assert [w.value for w in Workload] == ["web", "oltp", "dw", "mixed", "desktop"]

    def test_every_workload_has_policy(self):
        """No workload may be missing a policy."""
        assert set(WORKLOAD_POLICIES) == set(Workload)
        for workload in Workload:
            assert workload.policy is WORKLOAD_POLICIES[workload]

    def test_descriptions(self):
        assert "warehouse" in Workload.DW.description.lower()
        assert "desktop" in Workload.DESKTOP.description.lower()

    def test_parse_is_case_insensitive(self):
        assert Workload.parse("OLTP") is Workload.OLTP
        assert Workload.parse(" dw ") is Workload.DW
        assert Workload.parse(Workload.WEB) is Workload.WEB

    def test_only_desktop_is_shared_host(self):
        dedicated = {w for w, policy in WORKLOAD_POLICIES.items() if policy.dedicated}
        assert dedicated == {Workload.WEB, Workload.OLTP, Workload.DW, Workload.MIXED}


class TestArchitectureClass:
    """Tests for architecture classification."""

    @pytest.mark.parametrize("name", ["32-bit", "i386", "i686", "I686"])
    def test_32bit_names(self, name):
        assert ArchitectureClass.classify(name) is ArchitectureClass.BIT32

    @pytest.mark.parametrize("name", ["64-bit", "x86_64", "amd64"])
    def test_64bit_names(self, name):
        assert ArchitectureClass.classify(name) is ArchitectureClass.BIT64

    def test_unknown_is_uncapped(self):
        arch = ArchitectureClass.classify("aarch64")
        assert arch is ArchitectureClass.OTHER
        assert arch.shared_buffers_cap_mb is None

    def test_unknown_rejected_when_strict(self):
        with pytest.raises(UnsupportedArchitecture) as exc_info:
            ArchitectureClass.classify("sparc64", strict=True)
        assert "sparc64" in exc_info.value.message
        assert exc_info.value.exit_code == 21

    def test_caps(self):
        assert ArchitectureClass.BIT32.shared_buffers_cap_mb == 2048
        assert ArchitectureClass.BIT64.shared_buffers_cap_mb == 8192


class TestReferenceScenarios:
    """Complete results for hosts worked through by hand."""

    def test_1gb_oltp_64bit_v10(self):
        """1GB OLTP host on 64-bit, PostgreSQL 10, 10GB free log volume."""
        result = compute(make_profile())

        assert result.as_dict() == {
            "memory": 1024,
            "max_connections": 80,
            "shared_buffers": 256,
            "effective_cache_size": 768,
            "work_memory": 10,
            "maintenance_work_memory": 64,
            "checkpoint_segments_or_max_wal_size": "max_wal_size = 768MB",
            "checkpoint_completion_target": "0.9",
            "default_statistics_target": 100,
            "random_page_cost": 3.0,
            "synchronous_commit": "on",
            "data_directory": "/var/lib/postgresql/10/main",
            "wal_keep_segments": 320,
        }

    def test_1gb_dw(self):
        result = compute(make_profile(workload="dw"))

        assert result.max_connections == 30
        assert result.work_memory == 22
        assert result.maintenance_work_memory == 128
        assert result.checkpoint == MaxWalSize(3072)
        assert result.default_statistics_target == 500

    def test_32gb_web(self):
        """Large dedicated hosts reserve 4GB for the OS."""
        result = compute(make_profile(memory_kb=32 * GIB_KB, workload="web"))

        assert result.effective_cache_size == 28672
        assert result.max_connections == 500
        assert result.shared_buffers == 8192
        assert result.work_memory == 20
        assert result.maintenance_work_memory == 2304
        assert result.checkpoint_completion_target == "0.7"

    def test_32gb_dw(self):
        result = compute(make_profile(memory_kb=32 * GIB_KB, workload="dw"))

        assert result.max_connections == 100
        assert result.work_memory == 60
        assert result.maintenance_work_memory == 4096

    def test_8gb_desktop(self):
        """Desktops get a quarter of memory for cache and small buffers."""
        result = compute(make_profile(memory_kb=8 * GIB_KB, workload="desktop"))

        assert result.effective_cache_size == 2048
        assert result.max_connections == 50
        assert result.shared_buffers == 512
        assert result.work_memory == 6
        assert result.maintenance_work_memory == 88
        assert result.checkpoint == MaxWalSize(144)
        assert result.checkpoint_completion_target == "0.5"
        assert result.wal_keep_segments == 160


class TestEffectiveCache:
    """Tests for effective cache derivation."""

    def test_boundary_at_16gb(self):
        """Exactly 16GB still uses three quarters."""
        at_boundary = TuningCalculator(make_profile(memory_kb=16384 * 1024))
        above = TuningCalculator(make_profile(memory_kb=16385 * 1024))

        assert at_boundary.effective_cache == 12288
        assert above.effective_cache == 12289

    def test_desktop_uses_quarter(self):
        calc = TuningCalculator(make_profile(memory_kb=32 * GIB_KB, workload="desktop"))
        assert calc.effective_cache == 8192


class TestSharedBuffers:
    """Tests for shared_buffers."""

    @pytest.mark.parametrize("workload", list(Workload))
    def test_small_host_uses_percentage(self, workload):
        """Hosts at or below 950MB get 15% of memory."""
        calc = TuningCalculator(make_profile(memory_kb=900 * 1024, workload=workload))

        assert calc._raw_shared_buffers() == pytest.approx(135)
        assert calc.shared_buffers() == 128

    @pytest.mark.parametrize("workload", list(Workload))
    def test_950mb_still_uses_percentage(self, workload):
        """The 15% rule includes 950MB itself."""
        calc = TuningCalculator(make_profile(memory_kb=950 * 1024, workload=workload))

        assert calc._raw_shared_buffers() == pytest.approx(142.5)
        assert calc.shared_buffers() == 144

    @pytest.mark.parametrize("workload", list(Workload))
    def test_951mb_uses_divisor(self, workload):
        calc = TuningCalculator(make_profile(memory_kb=951 * 1024, workload=workload))
        divisor = WORKLOAD_POLICIES[workload].shared_buffers_divisor

        assert calc._raw_shared_buffers() == 951 // divisor

    def test_desktop_drops_above_950mb(self):
        """Desktop buffers shrink when the divisor rule takes over."""
        at_boundary = compute(make_profile(memory_kb=950 * 1024, workload="desktop"))
        above = compute(make_profile(memory_kb=951 * 1024, workload="desktop"))

        assert at_boundary.shared_buffers == 144
        assert above.shared_buffers == 60

    def test_dedicated_grows_above_950mb(self):
        at_boundary = compute(make_profile(memory_kb=950 * 1024, workload="web"))
        above = compute(make_profile(memory_kb=951 * 1024, workload="web"))

        assert at_boundary.shared_buffers == 144
        assert above.shared_buffers == 240

    def test_32bit_cap(self):
        result = compute(make_profile(memory_kb=32 * GIB_KB, workload="web", architecture="32-bit"))
        assert result.shared_buffers == 2048

    def test_64bit_cap(self):
        result = compute(make_profile(memory_kb=256 * GIB_KB, workload="web", architecture="x86_64"))
        assert result.shared_buffers == 8192

    def test_other_architecture_uncapped(self):
        result = compute(make_profile(memory_kb=64 * GIB_KB, workload="web", architecture="aarch64"))
        assert result.shared_buffers == 16384

    def test_strict_rejects_other_architecture(self):
        profile = make_profile(architecture="aarch64")
        with pytest.raises(UnsupportedArchitecture):
            compute(profile, strict_architecture=True)


class TestCheckpoint:
    """Tests for the checkpoint setting."""

    def test_legacy_segments_before_95(self):
        result = compute(make_profile(engine_version="9.4"))

        assert result.checkpoint == LegacySegments(16)
        assert result.checkpoint_segments_or_max_wal_size == "checkpoint_segments = 16"

    def test_max_wal_size_from_95(self):
        result = compute(make_profile(engine_version="9.5"))

        assert isinstance(result.checkpoint, MaxWalSize)
        assert result.checkpoint_segments_or_max_wal_size == "max_wal_size = 768MB"

    @pytest.mark.parametrize("version", ["8.4", "9.4", "9.5", "9.6", "10", "16"])
    @pytest.mark.parametrize("workload", list(Workload))
    def test_exactly_one_key(self, version, workload):
        """Each result carries either checkpoint_segments or max_wal_size."""
        result = compute(make_profile(engine_version=version, workload=workload))
        rendered = result.checkpoint_segments_or_max_wal_size

        if float(version) >= 9.5:
            assert rendered.startswith("max_wal_size = ")
            assert "checkpoint_segments" not in rendered
        else:
            assert rendered.startswith("checkpoint_segments = ")
            assert "max_wal_size" not in rendered


class TestWalKeepSegments:
    """Tests for wal_keep_segments."""

    def test_dedicated_keeps_half(self):
        assert compute(make_profile()).wal_keep_segments == 320

    def test_desktop_keeps_quarter(self):
        result = compute(make_profile(workload="desktop"))
        assert result.wal_keep_segments == 160

    def test_no_free_space(self):
        assert compute(make_profile(free_log_volume_kb=0)).wal_keep_segments == 0


class TestBounds:
    """Caps that must hold for every host and workload."""

    MEMORY_SIZES_KB = [0, 512 * 1024, 900 * 1024] + [GIB_KB * 2 ** n for n in range(0, 11)]

    @pytest.mark.parametrize("workload", list(Workload))
    @pytest.mark.parametrize("architecture", ["32-bit", "64-bit"])
    def test_caps_hold(self, workload, architecture):
        policy = WORKLOAD_POLICIES[workload]
        cap = ArchitectureClass.classify(architecture).shared_buffers_cap_mb

        for memory_kb in self.MEMORY_SIZES_KB:
            result = compute(make_profile(
                memory_kb=memory_kb, workload=workload, architecture=architecture,
            ))
            assert 10 <= result.max_connections <= policy.connection_cap
            assert result.shared_buffers <= cap
            assert result.work_memory <= policy.work_mem_ceiling_mb
            assert result.maintenance_work_memory <= 4096

    def test_zero_memory(self):
        """A host reporting no memory still yields a complete result."""
        result = compute(make_profile(memory_kb=0, free_log_volume_kb=0))

        assert result.memory == 0
        assert result.max_connections == 10
        assert result.shared_buffers == 0
        assert result.work_memory == 0
        assert result.maintenance_work_memory == 0


class TestMonotonicity:
    """More memory never yields smaller values."""

    SIZES_KB = [GIB_KB * 2 ** n for n in range(0, 9)]

    def _results(self, workload, sizes):
        return [compute(make_profile(memory_kb=kb, workload=workload)) for kb in sizes]

    @pytest.mark.parametrize("workload", list(Workload))
    def test_effective_cache_size(self, workload):
        values = [r.effective_cache_size for r in self._results(workload, self.SIZES_KB)]
        assert values == sorted(values)

    @pytest.mark.parametrize("workload", list(Workload))
    def test_shared_buffers(self, workload):
        values = [r.shared_buffers for r in self._results(workload, self.SIZES_KB)]
        assert values == sorted(values)

    @pytest.mark.parametrize("workload", list(Workload))
    def test_maintenance_work_memory(self, workload):
        values = [r.maintenance_work_memory for r in self._results(workload, self.SIZES_KB)]
        assert values == sorted(values)

    @pytest.mark.parametrize("workload", list(Workload))
    def test_work_memory_once_connections_capped(self, workload):
        """work_mem only grows once max_connections stops growing."""
        sizes = [GIB_KB * 2 ** n for n in range(4, 9)]
        values = [r.work_memory for r in self._results(workload, sizes)]
        assert values == sorted(values)


class TestDeterminism:
    """Identical profiles give identical results."""

    def test_repeatable(self):
        profile = make_profile(memory_kb=12345678, workload="mixed")
        assert compute(profile) == compute(profile)
        assert compute(profile).as_dict() == compute(make_profile(
            memory_kb=12345678, workload="mixed",
        )).as_dict()

    def test_passthrough_values(self):
        result = compute(make_profile(
            random_page_cost=1.1,
            synchronous_commit="OFF",
            data_directory="/srv/pg",
        ))

        assert result.random_page_cost == 1.1
        assert result.synchronous_commit == "off"
        assert result.data_directory == "/srv/pg"
