"""
Matrix multiplication benchmarks comparing the naive and tiled kernels.
"""

from typing import List

import numpy as np

from ..core.benchmark_runner import BenchmarkSuite, Device, Outcome, SuiteContext
from ..core.errors import CapacityError, UnsupportedDeviceError
from ..core.metrics import BenchmarkResult
from ..core.sizing import fit_workload, sizes_for
from ..backends.base import LaunchDomain
from ..kernels.matmul import (
    NAIVE_MATMUL,
    TILE_SIZE,
    TILED_MATMUL,
    matmul_flops,
    tiled_launch_domain,
)

UNIT = "GFLOPS"
CPU_SIZE_LIMIT = 2048


def size_label(n: int) -> str:
    return f"{n}x{n}"


def random_matrix(rng: np.random.Generator, n: int) -> np.ndarray:
    """Flat n x n float32 matrix, uniform in [-1, 1)."""
    return rng.uniform(-1.0, 1.0, n * n).astype(np.float32)


class MatmulSuite(BenchmarkSuite):
    name = "matmul"
    description = "Matrix multiplication (naive + tiled)"
    size_major = True

    def sizes(self, config) -> List[int]:
        return sizes_for(config.mode, config.size)

    def run_pair(self, ctx: SuiteContext, device: Device, n: int) -> None:
        profile = device.profile
        label = size_label(n)
        names = (f"Naive {label}", f"Tiled {label}")

        try:
            # the size is the workload; never shrink it
            fit_workload(n * n, 3, profile, floor=n * n)
        except CapacityError as e:
            for benchmark in names:
                ctx.skip(device, benchmark, label, UNIT, str(e))
            return

        if profile.is_cpu and n > CPU_SIZE_LIMIT and not ctx.config.full:
            for benchmark in names:
                ctx.skip(
                    device,
                    benchmark,
                    label,
                    UNIT,
                    f"CPU limited to sizes <= {CPU_SIZE_LIMIT} (use --full to include)",
                )
            return

        rng = np.random.default_rng(ctx.config.seed)
        host_a = random_matrix(rng, n)
        host_b = random_matrix(rng, n)

        ctx.attempt(device, names[0], label, UNIT, lambda: self.run_naive(ctx, device, host_a, host_b, n))
        ctx.attempt(
            device,
            names[1],
            label,
            UNIT,
            lambda: self.run_tiled(ctx, device, host_a, host_b, n),
            verify_key=("matmul", n),
        )

    def run_naive(self, ctx: SuiteContext, device: Device, host_a, host_b, n: int) -> Outcome:
        accelerator = device.accelerator
        kernel = accelerator.compile(NAIVE_MATMUL)
        domain = LaunchDomain.square(n)

        with accelerator.upload(host_a) as a, accelerator.upload(host_b) as b, accelerator.allocate(
            np.float32, n * n
        ) as c:
            measurement = ctx.protocol().time(
                lambda: kernel.launch(domain, a, b, c, n), accelerator.synchronize
            )

        return Outcome(measurement.rates(matmul_flops(n)))

    def run_tiled(self, ctx: SuiteContext, device: Device, host_a, host_b, n: int) -> Outcome:
        required = TILE_SIZE * TILE_SIZE
        if device.profile.max_threads_per_group < required:
            raise UnsupportedDeviceError(
                f"device max threads/group ({device.profile.max_threads_per_group}) < required ({required})"
            )

        accelerator = device.accelerator
        kernel = accelerator.compile(TILED_MATMUL)
        domain = tiled_launch_domain(n)

        with accelerator.upload(host_a) as a, accelerator.upload(host_b) as b, accelerator.allocate(
            np.float32, n * n
        ) as c:
            measurement = ctx.protocol().time(
                lambda: kernel.launch(domain, a, b, c, n), accelerator.synchronize
            )
            output = c.to_host_array()

        return Outcome(measurement.rates(matmul_flops(n)), output=output)

    def derive(self, results: List[BenchmarkResult], ctx: SuiteContext) -> List[BenchmarkResult]:
        """Tiled/naive speedup per (size, device) where both succeeded."""
        rows = []
        for tiled in results:
            if not tiled.benchmark.startswith("Tiled ") or tiled.is_error:
                continue

            label = tiled.metric
            naive = next(
                (
                    r
                    for r in results
                    if r.benchmark == f"Naive {label}"
                    and r.device_index == tiled.device_index
                    and not r.is_error
                ),
                None,
            )
            if naive is None or naive.best <= 0:
                continue

            speedup = tiled.best / naive.best
            rows.append(
                BenchmarkResult(
                    suite=self.name,
                    benchmark=f"Speedup {label}",
                    device=tiled.device,
                    device_index=tiled.device_index,
                    metric=label,
                    unit="x",
                    best=speedup,
                    average=speedup,
                    worst=speedup,
                )
            )
        return rows


def register_matmul_suite(runner):
    """Register the matmul suite with the runner."""
    runner.register_suite(MatmulSuite())
