"""
Host/device transfer bandwidth benchmarks.
"""

from typing import List, Tuple

import numpy as np

from ..core.benchmark_runner import BenchmarkSuite, Device, Outcome, SuiteContext
from ..core.config import RunConfiguration
from ..core.device_info import DeviceProfile
from ..core.sizing import FLOAT_BYTES, fits

MB = 1024 * 1024
UNIT = "GB/s"

HOST_TO_DEVICE = "H→D Transfer"
DEVICE_TO_HOST = "D→H Transfer"
DEVICE_TO_DEVICE = "D→D Copy"

QUICK_SIZES: List[Tuple[int, str]] = [
    (1 * MB, "1 MB"),
    (4 * MB, "4 MB"),
    (16 * MB, "16 MB"),
    (64 * MB, "64 MB"),
]

ALL_SIZES: List[Tuple[int, str]] = QUICK_SIZES + [
    (256 * MB, "256 MB"),
    (1024 * MB, "1 GB"),
]


def transfer_pattern(count: int) -> np.ndarray:
    return np.arange(count, dtype=np.float32) * np.float32(0.001)


class MemorySuite(BenchmarkSuite):
    name = "memory"
    description = "Host↔Device memory bandwidth"

    def supports_device(self, profile: DeviceProfile) -> bool:
        # a host "transfer" is a memcpy
        return not profile.is_cpu

    def sizes(self, config: RunConfiguration) -> List[Tuple[int, str]]:
        return list(QUICK_SIZES if config.quick else ALL_SIZES)

    def run_pair(self, ctx: SuiteContext, device: Device, size: Tuple[int, str]) -> None:
        size_bytes, label = size
        count = size_bytes // FLOAT_BYTES

        # device-to-device holds two buffers at once
        if not fits(count, 2, device.profile):
            reason = (
                f"requires {2 * size_bytes // MB} MB, "
                f"device has {device.profile.memory_size // MB} MB"
            )
            for benchmark in (HOST_TO_DEVICE, DEVICE_TO_HOST, DEVICE_TO_DEVICE):
                ctx.skip(device, benchmark, label, UNIT, reason)
            return

        host = transfer_pattern(count)
        ctx.attempt(device, HOST_TO_DEVICE, label, UNIT, lambda: self.host_to_device(ctx, device, host))
        ctx.attempt(device, DEVICE_TO_HOST, label, UNIT, lambda: self.device_to_host(ctx, device, host))
        ctx.attempt(device, DEVICE_TO_DEVICE, label, UNIT, lambda: self.device_to_device(ctx, device, host))

    def host_to_device(self, ctx: SuiteContext, device: Device, host: np.ndarray) -> Outcome:
        accelerator = device.accelerator
        with accelerator.allocate(np.float32, host.size) as buffer:
            measurement = ctx.protocol().time(lambda: buffer.copy_from(host), accelerator.synchronize)
        return Outcome(measurement.rates(host.nbytes))

    def device_to_host(self, ctx: SuiteContext, device: Device, host: np.ndarray) -> Outcome:
        accelerator = device.accelerator
        with accelerator.upload(host) as buffer:
            accelerator.synchronize()
            measurement = ctx.protocol().time(buffer.to_host_array, accelerator.synchronize)
        return Outcome(measurement.rates(host.nbytes))

    def device_to_device(self, ctx: SuiteContext, device: Device, host: np.ndarray) -> Outcome:
        accelerator = device.accelerator
        with accelerator.upload(host) as src, accelerator.allocate(np.float32, host.size) as dst:
            accelerator.synchronize()
            measurement = ctx.protocol().time(lambda: src.copy_to(dst), accelerator.synchronize)
        return Outcome(measurement.rates(host.nbytes))


def register_memory_suite(runner):
    """Register the memory suite with the runner."""
    runner.register_suite(MemorySuite())
