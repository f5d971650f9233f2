"""
Kernel launch, allocation and synchronization latency benchmarks.
"""

import math
from typing import Sequence

import numpy as np

from ..backends.base import LaunchDomain
from ..core.benchmark_runner import BenchmarkSuite, Device, Outcome, SuiteContext
from ..core.metrics import Polarity
from ..kernels.memory import EMPTY

UNIT = "µs"

ALLOC_SIZES = [
    (1024, "Alloc 1K"),
    (65536, "Alloc 64K"),
    (1_000_000, "Alloc 1M"),
    (16_000_000, "Alloc 16M"),
]


def percentile(samples: Sequence[float], fraction: float) -> float:
    """Nearest-rank percentile."""
    ordered = sorted(samples)
    index = math.ceil(len(ordered) * fraction) - 1
    return ordered[min(max(index, 0), len(ordered) - 1)]


class LatencySuite(BenchmarkSuite):
    name = "latency"
    description = "Kernel launch, allocation, and sync overhead"

    def run_pair(self, ctx: SuiteContext, device: Device, size) -> None:
        self._attempt(ctx, device, "Kernel Launch", "p99", lambda: self.kernel_launch(ctx, device))

        for count, benchmark in ALLOC_SIZES:
            self._attempt(
                ctx,
                device,
                benchmark,
                f"{count:,} floats",
                lambda count=count: self.allocation(ctx, device, count),
            )

        self._attempt(ctx, device, "Idle Sync", "no pending work", lambda: self.idle_sync(ctx, device))
        self._attempt(
            ctx, device, "Post-Kernel Sync", "after empty kernel", lambda: self.post_kernel_sync(ctx, device)
        )

    def _attempt(self, ctx, device, benchmark, metric, test):
        ctx.attempt(device, benchmark, metric, UNIT, test, polarity=Polarity.MINIMIZE)

    def _latency_protocol(self, ctx: SuiteContext):
        return ctx.protocol(ctx.config.latency_warmup_iterations, ctx.config.latency_iterations)

    def kernel_launch(self, ctx: SuiteContext, device: Device) -> Outcome:
        accelerator = device.accelerator
        invocable = accelerator.compile(EMPTY)
        domain = LaunchDomain.linear(1)

        with accelerator.allocate(np.int32, 1) as dummy:
            measurement = self._latency_protocol(ctx).time(
                lambda: invocable.launch(domain, dummy), accelerator.synchronize
            )

        samples = measurement.microseconds()
        return Outcome(samples, metric=f"p99={percentile(samples, 0.99):.1f}")

    def allocation(self, ctx: SuiteContext, device: Device, count: int) -> Outcome:
        accelerator = device.accelerator
        measurement = ctx.protocol(1, ctx.config.alloc_iterations).time(
            lambda: accelerator.allocate(np.float32, count),
            teardown=lambda buffer: buffer.dispose(),
        )
        return Outcome(measurement.microseconds())

    def idle_sync(self, ctx: SuiteContext, device: Device) -> Outcome:
        accelerator = device.accelerator
        accelerator.synchronize()
        measurement = self._latency_protocol(ctx).time(accelerator.synchronize)
        return Outcome(measurement.microseconds())

    def post_kernel_sync(self, ctx: SuiteContext, device: Device) -> Outcome:
        accelerator = device.accelerator
        invocable = accelerator.compile(EMPTY)
        domain = LaunchDomain.linear(1)

        with accelerator.allocate(np.int32, 1) as dummy:
            # the launch is untimed; only the barrier behind it is measured
            measurement = self._latency_protocol(ctx).time(
                accelerator.synchronize,
                setup=lambda: invocable.launch(domain, dummy),
            )
        return Outcome(measurement.microseconds())


def register_latency_suite(runner):
    """Register the latency suite with the runner."""
    runner.register_suite(LatencySuite())
