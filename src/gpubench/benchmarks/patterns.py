"""
Memory access pattern benchmarks: sequential vs random reads and strided reads.
"""

from typing import List

import numpy as np

from ..backends.base import LaunchDomain
from ..core.benchmark_runner import BenchmarkSuite, Device, Outcome, SuiteContext
from ..core.config import RunConfiguration
from ..core.errors import CapacityError
from ..core.metrics import BenchmarkResult
from ..core.sizing import FLOAT_BYTES, fit_workload
from ..kernels.memory import RANDOM_READ, SEQUENTIAL_READ, STRIDED_READ

UNIT = "GB/s"
STRIDES = [1, 2, 4, 8, 16, 32]


def buffer_size(config: RunConfiguration) -> int:
    return 16_000_000 if config.quick else 64_000_000


def floats_label(count: int) -> str:
    return f"{count // 1_000_000}M floats"


def read_write_bytes(count: int) -> float:
    return float(count) * FLOAT_BYTES * 2


class PatternsSuite(BenchmarkSuite):
    name = "patterns"
    description = "Memory access patterns"

    def run_pair(self, ctx: SuiteContext, device: Device, size) -> None:
        rng = np.random.default_rng(ctx.config.seed)
        requested = buffer_size(ctx.config)

        # input + indices + output
        try:
            count = fit_workload(requested, 3, device.profile)
        except CapacityError as e:
            for benchmark in ("Sequential Read", "Random Read"):
                ctx.skip(device, benchmark, floats_label(requested), UNIT, str(e))
        else:
            host_input = rng.uniform(-1.0, 1.0, count).astype(np.float32)
            indices = rng.permutation(count).astype(np.int32)
            label = floats_label(count)

            ctx.attempt(
                device, "Sequential Read", label, UNIT, lambda: self.sequential(ctx, device, host_input)
            )
            ctx.attempt(
                device, "Random Read", label, UNIT, lambda: self.random(ctx, device, host_input, indices)
            )

        # input + output
        try:
            count = fit_workload(requested, 2, device.profile)
        except CapacityError as e:
            for stride in STRIDES:
                ctx.skip(device, f"Stride {stride}", floats_label(requested), UNIT, str(e))
            return

        host_input = rng.uniform(-1.0, 1.0, count).astype(np.float32)
        for stride in STRIDES:
            ctx.attempt(
                device,
                f"Stride {stride}",
                floats_label(count),
                UNIT,
                lambda stride=stride: self.strided(ctx, device, host_input, stride),
            )

    def sequential(self, ctx: SuiteContext, device: Device, host_input: np.ndarray) -> Outcome:
        accelerator = device.accelerator
        invocable = accelerator.compile(SEQUENTIAL_READ)
        domain = LaunchDomain.linear(host_input.size)

        with accelerator.upload(host_input) as src, accelerator.allocate(np.float32, host_input.size) as dst:
            accelerator.synchronize()
            measurement = ctx.protocol().time(
                lambda: invocable.launch(domain, src, dst), accelerator.synchronize
            )
        return Outcome(measurement.rates(read_write_bytes(host_input.size)))

    def random(
        self, ctx: SuiteContext, device: Device, host_input: np.ndarray, indices: np.ndarray
    ) -> Outcome:
        accelerator = device.accelerator
        invocable = accelerator.compile(RANDOM_READ)
        domain = LaunchDomain.linear(host_input.size)

        with accelerator.upload(host_input) as src, accelerator.upload(indices) as idx, accelerator.allocate(
            np.float32, host_input.size
        ) as dst:
            accelerator.synchronize()
            measurement = ctx.protocol().time(
                lambda: invocable.launch(domain, src, idx, dst), accelerator.synchronize
            )
        return Outcome(measurement.rates(read_write_bytes(host_input.size)))

    def strided(self, ctx: SuiteContext, device: Device, host_input: np.ndarray, stride: int) -> Outcome:
        accelerator = device.accelerator
        invocable = accelerator.compile(STRIDED_READ)
        count = host_input.size
        domain = LaunchDomain.linear(count)

        with accelerator.upload(host_input) as src, accelerator.allocate(np.float32, count) as dst:
            accelerator.synchronize()
            measurement = ctx.protocol().time(
                lambda: invocable.launch(domain, src, dst, stride, count), accelerator.synchronize
            )
        return Outcome(measurement.rates(read_write_bytes(count)))

    def derive(self, results: List[BenchmarkResult], ctx: SuiteContext) -> List[BenchmarkResult]:
        """Sequential/random bandwidth ratio per device."""
        rows = []
        for seq in results:
            if seq.benchmark != "Sequential Read" or seq.is_error:
                continue

            rnd = next(
                (
                    r
                    for r in results
                    if r.benchmark == "Random Read"
                    and r.device_index == seq.device_index
                    and not r.is_error
                ),
                None,
            )
            if rnd is None or rnd.best <= 0:
                continue

            ratio = seq.best / rnd.best
            rows.append(
                BenchmarkResult(
                    suite=self.name,
                    benchmark="Seq/Rnd Ratio",
                    device=seq.device,
                    device_index=seq.device_index,
                    metric=seq.metric,
                    unit="x",
                    best=ratio,
                    average=ratio,
                    worst=ratio,
                )
            )
        return rows


def register_patterns_suite(runner):
    """Register the patterns suite with the runner."""
    runner.register_suite(PatternsSuite())
