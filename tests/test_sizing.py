"""
Tests for workload sizing against device memory.
"""

import pytest

from gpubench.core.config import RunMode
from gpubench.core.errors import CapacityError
from gpubench.core.sizing import (
    MEMORY_SAFETY_FRACTION,
    MIN_ELEMENTS,
    fit_workload,
    fits,
    memory_budget,
    select_count,
    sizes_for,
)

MiB = 1024 * 1024


class TestSizesFor:
    def test_sweeps_per_mode(self):
        assert sizes_for(RunMode.QUICK) == [512, 1024, 2048]
        assert sizes_for(RunMode.STANDARD) == [1024, 2048, 4096]
        assert sizes_for(RunMode.FULL) == [1024, 2048, 4096, 8192]

    def test_sweeps_grow_with_mode(self):
        assert max(sizes_for(RunMode.QUICK)) < max(sizes_for(RunMode.STANDARD))
        assert max(sizes_for(RunMode.STANDARD)) < max(sizes_for(RunMode.FULL))

    @pytest.mark.parametrize("mode", list(RunMode))
    def test_explicit_size_overrides(self, mode):
        assert sizes_for(mode, explicit_size=300) == [300]

    def test_returns_a_copy(self):
        sizes = sizes_for(RunMode.QUICK)
        sizes.append(1)
        assert sizes_for(RunMode.QUICK) == [512, 1024, 2048]


class TestFitWorkload:
    def test_budget_is_fraction_of_memory(self, gpu_profile):
        assert memory_budget(gpu_profile) == int(gpu_profile.memory_size * MEMORY_SAFETY_FRACTION)

    def test_cpu_is_exempt(self, cpu_profile):
        assert memory_budget(cpu_profile) is None
        assert fit_workload(10**12, 3, cpu_profile) == 10**12

    def test_fitting_request_unchanged(self, gpu_profile):
        assert fit_workload(16_000_000, 3, gpu_profile) == 16_000_000

    def test_halves_until_fit(self, new_profile):
        profile = new_profile(memory_size=64 * MiB)
        size = fit_workload(64_000_000, 3, profile)
        assert size == 4_000_000
        assert size * 4 * 3 <= 0.8 * profile.memory_size

    def test_result_never_below_floor(self, new_profile):
        profile = new_profile(memory_size=64 * MiB)
        for requested in (2_000_000, 16_000_000, 64_000_000):
            size = fit_workload(requested, 3, profile, floor=1_000_000)
            assert size >= 1_000_000
            assert fits(size, 3, profile)

    def test_raises_when_floor_does_not_fit(self, new_profile):
        profile = new_profile(memory_size=8 * MiB)
        with pytest.raises(CapacityError, match="requires"):
            fit_workload(64_000_000, 3, profile, floor=1_000_000)

    def test_no_reduction_when_floor_equals_request(self, new_profile):
        profile = new_profile(memory_size=512 * MiB)
        n = 8192
        with pytest.raises(CapacityError):
            fit_workload(n * n, 3, profile, floor=n * n)
        assert fit_workload(1024 * 1024, 3, profile, floor=1024 * 1024) == 1024 * 1024

    @pytest.mark.parametrize("memory_size", [8 * MiB, 64 * MiB, 512 * MiB, 8 * 1024 * MiB])
    def test_more_buffers_never_grow_the_workload(self, new_profile, memory_size):
        profile = new_profile(memory_size=memory_size)
        sizes = {}
        for buffer_count in range(1, 7):
            try:
                size = fit_workload(64_000_000, buffer_count, profile)
            except CapacityError:
                continue
            assert size * 4 * buffer_count <= MEMORY_SAFETY_FRACTION * memory_size
            assert size >= MIN_ELEMENTS
            sizes[buffer_count] = size

        for buffer_count in range(1, 6):
            if buffer_count in sizes and buffer_count + 1 in sizes:
                assert sizes[buffer_count + 1] <= sizes[buffer_count]


class TestSelectCount:
    def test_largest_that_fits(self, new_profile):
        profile = new_profile(memory_size=32 * MiB)
        assert select_count([1_000_000, 4_000_000, 16_000_000], 1, profile) == 4_000_000

    def test_falls_back_to_smallest(self, new_profile):
        profile = new_profile(memory_size=1 * MiB)
        assert select_count([1_000_000, 4_000_000], 1, profile) == 1_000_000
