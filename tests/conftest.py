"""
Shared fixtures: a deterministic in-process backend driven by a fake clock.
"""

import logging
from typing import List

import numpy as np
import pytest

from gpubench.backends.base import (
    Accelerator,
    Backend,
    Buffer,
    DeviceClass,
    DeviceHandle,
    Invocable,
    Kernel,
    LaunchDomain,
)
from gpubench.core.benchmark_runner import BenchmarkRunner
from gpubench.core.config import RunConfiguration
from gpubench.core.device_info import DeviceProfile
from gpubench.core.errors import BackendError

MiB = 1024 * 1024


class FakeClock:
    """Monotonic clock that only moves when a device synchronizes."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MockBuffer(Buffer):
    def __init__(self, accelerator: "MockAccelerator", array: np.ndarray):
        self.accelerator = accelerator
        self.array = array
        self.disposed = False

    @property
    def dtype(self) -> np.dtype:
        return self.array.dtype

    def __len__(self) -> int:
        return self.array.size

    def copy_from(self, host_array: np.ndarray) -> None:
        host_array = np.asarray(host_array).ravel()
        self.array[: host_array.size] = host_array

    def to_host_array(self) -> np.ndarray:
        return self.array.copy() + self.array.dtype.type(self.accelerator.download_offset)

    def copy_to(self, other: Buffer) -> None:
        other.array[:] = self.array

    def dispose(self) -> None:
        if not self.disposed:
            self.disposed = True
            self.accelerator.live_buffers -= 1


class MockInvocable(Invocable):
    def __init__(self, accelerator: "MockAccelerator", kernel: Kernel):
        self.accelerator = accelerator
        self.kernel = kernel

    def launch(self, domain: LaunchDomain, *args) -> None:
        self.accelerator.launches.append(self.kernel.name)
        if self.kernel.name in self.accelerator.failing_kernels:
            raise BackendError(f"launch failed: {self.kernel.name}")
        if self.kernel.requires_groups and not domain.is_grouped:
            raise BackendError(f"{self.kernel.name} requires grid/group dimensions")
        converted = [a.array if isinstance(a, MockBuffer) else a for a in args]
        self.kernel.host(domain, *converted)


class MockAccelerator(Accelerator):
    """Runs host kernels; each synchronize costs ``sync_seconds`` on the clock."""

    def __init__(
        self,
        name: str,
        device_class: DeviceClass,
        clock: FakeClock,
        memory_size: int = 64 * MiB,
        max_threads_per_group: int = 1024,
        sync_seconds: float = 1e-3,
        failing_kernels=(),
        download_offset: float = 0.0,
    ):
        self.name = name
        self.device_class = device_class
        self.clock = clock
        self.compute_units = 8
        self.max_threads_per_group = max_threads_per_group
        self.max_shared_memory_per_group = 48 * 1024
        self.memory_size = memory_size
        self.warp_size = 1 if device_class is DeviceClass.CPU else 32
        self.clock_rate = 1500
        self.driver_version = None if device_class is DeviceClass.CPU else "555.42"

        self.sync_seconds = sync_seconds
        self.failing_kernels = set(failing_kernels)
        self.download_offset = download_offset
        self.launches: List[str] = []
        self.syncs = 0
        self.live_buffers = 0
        self.disposed = False

    def compile(self, kernel: Kernel) -> Invocable:
        if kernel.host is None:
            raise BackendError(f"Kernel {kernel.name} has no host implementation")
        return MockInvocable(self, kernel)

    def allocate(self, dtype, count: int) -> MockBuffer:
        nbytes = count * np.dtype(dtype).itemsize
        if self.device_class is not DeviceClass.CPU and nbytes > self.memory_size:
            raise BackendError(f"Out of device memory allocating {count} elements")
        self.live_buffers += 1
        return MockBuffer(self, np.zeros(count, dtype=dtype))

    def synchronize(self) -> None:
        self.syncs += 1
        self.clock.advance(self.sync_seconds)

    def dispose(self) -> None:
        self.disposed = True


class MockBackend(Backend):
    name = "mock"

    def __init__(self, accelerators: List[MockAccelerator]):
        self.accelerators = accelerators
        self.created: List[MockAccelerator] = []

    def enumerate_devices(self) -> List[DeviceHandle]:
        return [
            DeviceHandle(i, acc.name, acc.device_class) for i, acc in enumerate(self.accelerators)
        ]

    def create_accelerator(self, handle: DeviceHandle) -> MockAccelerator:
        accelerator = self.accelerators[handle.ordinal]
        self.created.append(accelerator)
        return accelerator


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_device(clock):
    """Factory for mock accelerators sharing the test clock."""

    def make(name: str = "Mock GPU", device_class: DeviceClass = DeviceClass.CUDA, **kwargs):
        return MockAccelerator(name, device_class, clock, **kwargs)

    return make


@pytest.fixture
def make_runner(clock):
    """Factory building a runner over mock accelerators."""

    def make(accelerators, **config) -> BenchmarkRunner:
        config.setdefault("quick", True)
        return BenchmarkRunner(MockBackend(accelerators), RunConfiguration(**config), clock=clock)

    return make


@pytest.fixture
def fast_fma(monkeypatch):
    """Shorten the FMA chains so host emulation stays quick."""
    monkeypatch.setattr("gpubench.kernels.compute.FMA_OPS_PER_THREAD", 4)


def _make_profile(
    name: str = "Mock GPU",
    device_class: DeviceClass = DeviceClass.CUDA,
    memory_size: int = 8 * 1024 * MiB,
    max_threads_per_group: int = 1024,
    device_index: int = 0,
) -> DeviceProfile:
    return DeviceProfile(
        name=name,
        device_class=device_class,
        device_index=device_index,
        compute_units=8,
        max_threads_per_group=max_threads_per_group,
        max_shared_memory_per_group=48 * 1024,
        memory_size=memory_size,
        warp_size=32,
        clock_rate=1500,
        driver_version=None,
    )


@pytest.fixture
def new_profile():
    """Factory for device profiles."""
    return _make_profile


@pytest.fixture
def gpu_profile() -> DeviceProfile:
    return _make_profile()


@pytest.fixture
def cpu_profile() -> DeviceProfile:
    return _make_profile("Host CPU", DeviceClass.CPU, memory_size=16 * 1024 * MiB)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo setup_logging so caplog sees gpubench records."""
    yield
    logger = logging.getLogger("gpubench")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def make_backend():
    """Factory for mock backends over the given accelerators."""
    return MockBackend
