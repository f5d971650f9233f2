"""
Device capability profiles and device selection.
"""

import platform
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import torch

from ..backends.base import Accelerator, DeviceClass, DeviceHandle

DEVICE_COLORS = {
    DeviceClass.CUDA: "green",
    DeviceClass.ROCM: "cyan",
    DeviceClass.CPU: "yellow",
}


@dataclass(frozen=True)
class DeviceProfile:
    """Static capability descriptor of one accelerator."""

    name: str
    device_class: DeviceClass
    device_index: int
    compute_units: int
    max_threads_per_group: int
    max_shared_memory_per_group: int
    memory_size: int  # bytes
    warp_size: int
    clock_rate: int  # MHz
    driver_version: Optional[str] = None

    @property
    def is_cpu(self) -> bool:
        return self.device_class is DeviceClass.CPU

    @property
    def color(self) -> str:
        return DEVICE_COLORS.get(self.device_class, "white")

    @classmethod
    def from_accelerator(cls, accelerator: Accelerator, index: int) -> "DeviceProfile":
        """Read the backend-reported metadata of an accelerator.

        Args:
            accelerator: Opened accelerator
            index: Position in device enumeration order

        Returns:
            Immutable profile for the accelerator
        """
        return cls(
            name=accelerator.name,
            device_class=accelerator.device_class,
            device_index=index,
            compute_units=accelerator.compute_units,
            max_threads_per_group=accelerator.max_threads_per_group,
            max_shared_memory_per_group=accelerator.max_shared_memory_per_group,
            memory_size=accelerator.memory_size,
            warp_size=accelerator.warp_size,
            clock_rate=accelerator.clock_rate,
            driver_version=accelerator.driver_version,
        )


def select_devices(
    handles: Sequence[DeviceHandle], device_filter: Optional[str] = None
) -> List[DeviceHandle]:
    """Apply a device filter to enumerated handles.

    Args:
        handles: Devices in enumeration order
        device_filter: Enumeration index, device class (cuda, rocm, gpu, cpu),
            or a case-insensitive name substring. None keeps every device.

    Returns:
        Matching handles, enumeration order preserved

    Raises:
        ValueError: If nothing matches the filter
    """
    if not device_filter:
        return list(handles)

    key = device_filter.strip().lower()

    if key.isdigit():
        selected = [h for i, h in enumerate(handles) if i == int(key)]
    elif key == "gpu":
        selected = [h for h in handles if h.device_class is not DeviceClass.CPU]
    elif key in {c.value.lower() for c in DeviceClass}:
        selected = [h for h in handles if h.device_class.value.lower() == key]
    else:
        selected = [h for h in handles if key in h.name.lower()]

    if not selected:
        raise ValueError(f"No device matches filter '{device_filter}'")
    return selected


def get_system_info() -> Dict[str, str]:
    """Get host and runtime information for reports."""
    info = {
        "platform": platform.platform(),
        "machine": platform.node(),
        "python_version": platform.python_version(),
        "pytorch_version": torch.__version__,
    }

    if torch.cuda.is_available():
        info["cuda_version"] = torch.version.cuda or ""
        if torch.version.hip:
            info["hip_version"] = torch.version.hip

    return info
