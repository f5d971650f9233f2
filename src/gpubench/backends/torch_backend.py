"""
PyTorch backend: CUDA/ROCm GPUs run Triton kernels, the host CPU runs the
NumPy implementations on CPU tensors.
"""

import logging
import os
import platform
from typing import List, Optional

import numpy as np
import psutil
import pynvml
import torch

from ..core.errors import BackendError
from .base import (
    Accelerator,
    Backend,
    Buffer,
    DeviceClass,
    DeviceHandle,
    Invocable,
    Kernel,
    LaunchDomain,
)

logger = logging.getLogger(__name__)

# host CPU threads have no hardware group limit; the emulation accepts any group
HOST_MAX_THREADS_PER_GROUP = 1024
HOST_SHARED_MEMORY_PER_GROUP = 64 * 1024


class TorchBuffer(Buffer):
    """Buffer backed by a 1D torch tensor."""

    def __init__(self, tensor: torch.Tensor):
        self._tensor: Optional[torch.Tensor] = tensor

    @property
    def tensor(self) -> torch.Tensor:
        if self._tensor is None:
            raise BackendError("Buffer used after dispose")
        return self._tensor

    @property
    def dtype(self) -> np.dtype:
        return torch.empty((), dtype=self.tensor.dtype).numpy().dtype

    def __len__(self) -> int:
        return self.tensor.numel()

    def host_view(self) -> np.ndarray:
        """Zero-copy NumPy view; valid only for CPU tensors."""
        return self.tensor.numpy()

    def copy_from(self, host_array: np.ndarray) -> None:
        source = torch.from_numpy(np.ascontiguousarray(host_array).ravel())
        self.tensor[: source.numel()].copy_(source)

    def to_host_array(self) -> np.ndarray:
        tensor = self.tensor
        if tensor.device.type == "cpu":
            return tensor.numpy().copy()
        return tensor.cpu().numpy()

    def copy_to(self, other: Buffer) -> None:
        if not isinstance(other, TorchBuffer):
            raise BackendError("Device-to-device copy requires two torch buffers")
        other.tensor.copy_(self.tensor)

    def dispose(self) -> None:
        self._tensor = None


class HostInvocable(Invocable):
    """Runs a kernel's NumPy implementation inline."""

    def __init__(self, kernel: Kernel):
        self.kernel = kernel

    def launch(self, domain: LaunchDomain, *args) -> None:
        _check_domain(self.kernel, domain)
        converted = [a.host_view() if isinstance(a, TorchBuffer) else a for a in args]
        self.kernel.host(domain, *converted)


class TritonInvocable(Invocable):
    """Submits a kernel's Triton implementation to one GPU."""

    def __init__(self, kernel: Kernel, device: torch.device):
        self.kernel = kernel
        self.device = device

    def launch(self, domain: LaunchDomain, *args) -> None:
        _check_domain(self.kernel, domain)
        converted = [a.tensor if isinstance(a, TorchBuffer) else a for a in args]
        with torch.cuda.device(self.device):
            self.kernel.device(domain, *converted)


def _check_domain(kernel: Kernel, domain: LaunchDomain) -> None:
    if kernel.requires_groups and not domain.is_grouped:
        raise BackendError(f"Kernel {kernel.name} requires explicit grid/group dimensions")


class TorchAccelerator(Accelerator):
    """Accelerator wrapping one torch device."""

    def __init__(self, handle: DeviceHandle):
        self.handle = handle
        self.name = handle.name
        self.device_class = handle.device_class

        if handle.device_class is DeviceClass.CPU:
            self.device = torch.device("cpu")
            self._init_host()
        else:
            self.device = torch.device("cuda", handle.ordinal)
            self._init_gpu(handle.ordinal)

    def _init_host(self) -> None:
        self.compute_units = os.cpu_count() or 1
        self.max_threads_per_group = HOST_MAX_THREADS_PER_GROUP
        self.max_shared_memory_per_group = HOST_SHARED_MEMORY_PER_GROUP
        self.memory_size = psutil.virtual_memory().total
        self.warp_size = 1
        frequency = psutil.cpu_freq()
        self.clock_rate = int(frequency.max) if frequency else 0
        self.driver_version = None

    def _init_gpu(self, ordinal: int) -> None:
        props = torch.cuda.get_device_properties(ordinal)
        self.compute_units = props.multi_processor_count
        # attribute names vary across torch releases
        self.max_threads_per_group = getattr(props, "max_threads_per_block", 1024)
        self.max_shared_memory_per_group = getattr(props, "shared_memory_per_block", 48 * 1024)
        self.memory_size = props.total_memory
        self.warp_size = getattr(props, "warp_size", 32)
        self.clock_rate = 0
        self.driver_version = None

        if self.device_class is DeviceClass.CUDA:
            self._read_nvml(ordinal)

    def _read_nvml(self, ordinal: int) -> None:
        try:
            pynvml.nvmlInit()
            handle = pynvml.nvmlDeviceGetHandleByIndex(ordinal)
            self.clock_rate = pynvml.nvmlDeviceGetMaxClockInfo(handle, pynvml.NVML_CLOCK_SM)
            driver = pynvml.nvmlSystemGetDriverVersion()
            self.driver_version = driver.decode() if isinstance(driver, bytes) else driver
        except pynvml.NVMLError as e:
            logger.debug("NVML query failed for device %d: %s", ordinal, e)

    @property
    def is_host(self) -> bool:
        return self.device.type == "cpu"

    def compile(self, kernel: Kernel) -> Invocable:
        if self.is_host:
            if kernel.host is None:
                raise BackendError(f"Kernel {kernel.name} has no host implementation")
            return HostInvocable(kernel)

        if kernel.device is None:
            raise BackendError(f"Kernel {kernel.name} has no device implementation")
        return TritonInvocable(kernel, self.device)

    def allocate(self, dtype, count: int) -> TorchBuffer:
        torch_dtype = torch.from_numpy(np.empty(0, dtype=dtype)).dtype
        try:
            tensor = torch.empty(count, dtype=torch_dtype, device=self.device)
        except torch.cuda.OutOfMemoryError as e:
            raise BackendError(f"Out of device memory allocating {count} elements") from e
        return TorchBuffer(tensor)

    def synchronize(self) -> None:
        if not self.is_host:
            torch.cuda.synchronize(self.device)

    def dispose(self) -> None:
        if not self.is_host:
            torch.cuda.synchronize(self.device)
            torch.cuda.empty_cache()


class TorchBackend(Backend):
    """Enumerates torch GPUs followed by the host CPU."""

    name = "torch"

    def __init__(self, include_cpu: bool = True):
        self.include_cpu = include_cpu

    def enumerate_devices(self) -> List[DeviceHandle]:
        handles = []

        if torch.cuda.is_available():
            gpu_class = DeviceClass.ROCM if torch.version.hip else DeviceClass.CUDA
            for ordinal in range(torch.cuda.device_count()):
                handles.append(
                    DeviceHandle(ordinal, torch.cuda.get_device_name(ordinal), gpu_class)
                )

        if self.include_cpu:
            cpu_name = platform.processor() or platform.machine() or "Host CPU"
            handles.append(DeviceHandle(0, cpu_name, DeviceClass.CPU))

        return handles

    def create_accelerator(self, handle: DeviceHandle) -> TorchAccelerator:
        return TorchAccelerator(handle)
