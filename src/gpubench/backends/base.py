"""
Backend interface between the benchmark engine and a compute runtime.

The engine never talks to a driver directly. It sees an accelerator as an
object that reports capacity metadata, compiles kernels into invocables,
allocates and copies buffers, and blocks on ``synchronize``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

import numpy as np


class DeviceClass(str, Enum):
    """Closed set of accelerator kinds."""

    CPU = "CPU"
    CUDA = "CUDA"  # GPU class A
    ROCM = "ROCm"  # GPU class B


@dataclass(frozen=True)
class DeviceHandle:
    """Opaque reference to an enumerated device."""

    ordinal: int
    name: str
    device_class: DeviceClass


@dataclass(frozen=True)
class LaunchDomain:
    """Index space for a kernel launch.

    Either a plain ``extent`` (one logical thread per index, grouping left to
    the backend) or an explicit ``grid`` of ``group`` dimensions.
    """

    extent: Optional[Tuple[int, ...]] = None
    grid: Optional[Tuple[int, ...]] = None
    group: Optional[Tuple[int, ...]] = None

    @classmethod
    def linear(cls, size: int) -> "LaunchDomain":
        return cls(extent=(size,))

    @classmethod
    def square(cls, n: int) -> "LaunchDomain":
        return cls(extent=(n, n))

    @classmethod
    def grouped(cls, grid: Tuple[int, ...], group: Tuple[int, ...]) -> "LaunchDomain":
        return cls(grid=tuple(grid), group=tuple(group))

    @property
    def is_grouped(self) -> bool:
        return self.grid is not None

    @property
    def thread_count(self) -> int:
        if self.is_grouped:
            return int(np.prod(self.grid)) * int(np.prod(self.group))
        return int(np.prod(self.extent))


@dataclass(frozen=True)
class Kernel:
    """A function executed once per logical thread over a launch domain.

    Args:
        name: Kernel name used in error messages
        host: NumPy implementation ``host(domain, *arrays_and_scalars)``
        device: Triton launcher ``device(domain, *tensors_and_scalars)``
        requires_groups: Kernel must be launched with explicit grid/group dims
    """

    name: str
    host: Optional[Callable] = None
    device: Optional[Callable] = None
    requires_groups: bool = False


class Buffer(ABC):
    """Device-resident array owned by one test."""

    @property
    @abstractmethod
    def dtype(self) -> np.dtype:
        """Element type."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of elements."""

    @abstractmethod
    def copy_from(self, host_array: np.ndarray) -> None:
        """Upload a host array into this buffer."""

    @abstractmethod
    def to_host_array(self) -> np.ndarray:
        """Download the buffer into a new host array."""

    @abstractmethod
    def copy_to(self, other: "Buffer") -> None:
        """Device-to-device copy into ``other``."""

    @abstractmethod
    def dispose(self) -> None:
        """Release the device memory."""

    def __enter__(self) -> "Buffer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()


class Invocable(ABC):
    """A kernel compiled for one accelerator."""

    @abstractmethod
    def launch(self, domain: LaunchDomain, *args) -> None:
        """Submit the kernel. May return before the work completes."""


class Accelerator(ABC):
    """Handle to one compute device."""

    name: str
    device_class: DeviceClass
    compute_units: int = 0
    max_threads_per_group: int = 0
    max_shared_memory_per_group: int = 0
    memory_size: int = 0
    warp_size: int = 0
    clock_rate: int = 0  # MHz
    driver_version: Optional[str] = None

    @abstractmethod
    def compile(self, kernel: Kernel) -> Invocable:
        """Lower a kernel for this accelerator."""

    @abstractmethod
    def allocate(self, dtype, count: int) -> Buffer:
        """Allocate ``count`` elements of ``dtype``."""

    def upload(self, host_array: np.ndarray) -> Buffer:
        """Allocate a buffer shaped like ``host_array`` and copy it in."""
        host_array = np.ascontiguousarray(host_array).ravel()
        buffer = self.allocate(host_array.dtype, host_array.size)
        try:
            buffer.copy_from(host_array)
        except Exception:
            buffer.dispose()
            raise
        return buffer

    @abstractmethod
    def synchronize(self) -> None:
        """Block until all submitted work on this accelerator completes."""

    @abstractmethod
    def dispose(self) -> None:
        """Release the accelerator."""

    def __enter__(self) -> "Accelerator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()


class Backend(ABC):
    """Device enumeration and accelerator construction."""

    name: str

    @abstractmethod
    def enumerate_devices(self) -> List[DeviceHandle]:
        """List available devices in a stable order."""

    @abstractmethod
    def create_accelerator(self, handle: DeviceHandle) -> Accelerator:
        """Open an accelerator for a device handle."""
