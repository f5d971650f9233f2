"""
Arithmetic throughput and vector operation benchmarks.
"""

from typing import Callable, List

import numpy as np

from ..backends.base import Kernel, LaunchDomain
from ..core.benchmark_runner import BenchmarkSuite, Device, Outcome, SuiteContext
from ..core.config import RunConfiguration
from ..core.errors import CapacityError
from ..core.sizing import FLOAT_BYTES, fit_workload, select_count
from ..kernels.compute import (
    FP32_FMA,
    FP64_FMA,
    INT32_FMA,
    VECTOR_ADD,
    VECTOR_FMA,
    fma_chain_ops,
)


def thread_counts(config: RunConfiguration) -> List[int]:
    if config.quick:
        return [1_000_000, 4_000_000]
    return [1_000_000, 4_000_000, 16_000_000]


def vector_size(config: RunConfiguration) -> int:
    return 16_000_000 if config.quick else 64_000_000


def millions(count: int, what: str) -> str:
    return f"{count // 1_000_000}M {what}"


class ComputeSuite(BenchmarkSuite):
    name = "compute"
    description = "FP32/FP64/Int32 throughput and vector operations"

    def run_pair(self, ctx: SuiteContext, device: Device, size) -> None:
        for benchmark, kernel, dtype, unit in (
            ("FP32 Throughput", FP32_FMA, np.float32, "GFLOPS"),
            ("FP64 Throughput", FP64_FMA, np.float64, "GFLOPS"),
            ("Int32 Throughput", INT32_FMA, np.int32, "GOPS"),
        ):
            count = self.select_thread_count(ctx.config, device, dtype)
            ctx.attempt(
                device,
                benchmark,
                millions(count, "threads"),
                unit,
                self.fma_chain_test(ctx, device, kernel, dtype, count),
            )

        try:
            n = fit_workload(vector_size(ctx.config), 3, device.profile)
        except CapacityError as e:
            label = millions(vector_size(ctx.config), "elements")
            ctx.skip(device, "Vector Add", label, "GB/s", str(e))
            ctx.skip(device, "Vector FMA", label, "GFLOPS", str(e))
            return

        label = millions(n, "elements")
        ctx.attempt(
            device,
            "Vector Add",
            label,
            "GB/s",
            lambda: self.run_vector_add(ctx, device, n),
            verify_key=("vector-add", n),
        )
        ctx.attempt(
            device,
            "Vector FMA",
            label,
            "GFLOPS",
            lambda: self.run_vector_fma(ctx, device, n),
            verify_key=("vector-fma", n),
        )

    def select_thread_count(self, config: RunConfiguration, device: Device, dtype) -> int:
        """Largest thread count whose output fits; the host always takes the smallest."""
        counts = thread_counts(config)
        if device.profile.is_cpu:
            return counts[0]
        return select_count(counts, 1, device.profile, np.dtype(dtype).itemsize)

    def fma_chain_test(
        self, ctx: SuiteContext, device: Device, kernel: Kernel, dtype, count: int
    ) -> Callable[[], Outcome]:
        accelerator = device.accelerator

        def test() -> Outcome:
            invocable = accelerator.compile(kernel)
            domain = LaunchDomain.linear(count)
            with accelerator.allocate(dtype, count) as output:
                measurement = ctx.protocol().time(
                    lambda: invocable.launch(domain, output), accelerator.synchronize
                )
            return Outcome(measurement.rates(fma_chain_ops(count)))

        return test

    def run_vector_add(self, ctx: SuiteContext, device: Device, n: int) -> Outcome:
        accelerator = device.accelerator

        rng = np.random.default_rng(ctx.config.seed)
        host_a = rng.uniform(-1.0, 1.0, n).astype(np.float32)
        host_b = rng.uniform(-1.0, 1.0, n).astype(np.float32)

        invocable = accelerator.compile(VECTOR_ADD)
        domain = LaunchDomain.linear(n)
        with accelerator.upload(host_a) as a, accelerator.upload(host_b) as b, accelerator.allocate(
            np.float32, n
        ) as c:
            measurement = ctx.protocol().time(
                lambda: invocable.launch(domain, a, b, c), accelerator.synchronize
            )
            output = c.to_host_array()

        # read A, read B, write C
        bytes_moved = n * FLOAT_BYTES * 3
        return Outcome(measurement.rates(bytes_moved), output=output)

    def run_vector_fma(self, ctx: SuiteContext, device: Device, n: int) -> Outcome:
        accelerator = device.accelerator

        rng = np.random.default_rng(ctx.config.seed)
        host_a = rng.uniform(-1.0, 1.0, n).astype(np.float32)
        host_b = rng.uniform(-1.0, 1.0, n).astype(np.float32)
        host_c = rng.uniform(-1.0, 1.0, n).astype(np.float32)

        invocable = accelerator.compile(VECTOR_FMA)
        domain = LaunchDomain.linear(n)
        with accelerator.upload(host_a) as a, accelerator.upload(host_b) as b, accelerator.upload(
            host_c
        ) as c:

            def reset_accumulator():
                # the kernel updates C in place
                c.copy_from(host_c)
                accelerator.synchronize()

            measurement = ctx.protocol().time(
                lambda: invocable.launch(domain, a, b, c),
                accelerator.synchronize,
                setup=reset_accumulator,
            )

            # one clean pass for the verification output
            reset_accumulator()
            invocable.launch(domain, a, b, c)
            accelerator.synchronize()
            output = c.to_host_array()

        # 1 mul + 1 add per element
        return Outcome(measurement.rates(2.0 * n), output=output)


def register_compute_suite(runner):
    """Register the compute suite with the runner."""
    runner.register_suite(ComputeSuite())
