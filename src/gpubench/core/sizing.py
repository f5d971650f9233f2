"""
Workload sizing against device memory.
"""

from typing import Dict, List, Optional, Sequence

from .config import RunMode
from .device_info import DeviceProfile
from .errors import CapacityError

MEMORY_SAFETY_FRACTION = 0.8
FLOAT_BYTES = 4
MIN_ELEMENTS = 1_000_000

MATMUL_SIZES: Dict[RunMode, List[int]] = {
    RunMode.QUICK: [512, 1024, 2048],
    RunMode.STANDARD: [1024, 2048, 4096],
    RunMode.FULL: [1024, 2048, 4096, 8192],
}


def sizes_for(
    mode: RunMode,
    explicit_size: Optional[int] = None,
    sweeps: Dict[RunMode, List[int]] = MATMUL_SIZES,
) -> List[int]:
    """Ordered size sweep for a run mode; an explicit size overrides it."""
    if explicit_size is not None:
        return [explicit_size]
    return list(sweeps[mode])


def memory_budget(profile: DeviceProfile) -> Optional[int]:
    """Usable bytes on a device, or None when the host is unbounded."""
    if profile.is_cpu:
        return None
    return int(profile.memory_size * MEMORY_SAFETY_FRACTION)


def fits(
    elements: int,
    buffer_count: int,
    profile: DeviceProfile,
    element_bytes: int = FLOAT_BYTES,
) -> bool:
    """Whether ``buffer_count`` buffers of ``elements`` fit the budget."""
    budget = memory_budget(profile)
    if budget is None:
        return True
    return elements * element_bytes * buffer_count <= budget


def fit_workload(
    requested: int,
    buffer_count: int,
    profile: DeviceProfile,
    element_bytes: int = FLOAT_BYTES,
    floor: int = MIN_ELEMENTS,
) -> int:
    """Largest workload, halving from ``requested``, that fits the device.

    Args:
        requested: Desired element count per buffer
        buffer_count: Buffers of that size allocated together
        profile: Target device
        element_bytes: Bytes per element
        floor: Smallest acceptable element count; pass ``requested`` to
            forbid any reduction

    Returns:
        Element count per buffer

    Raises:
        CapacityError: If no size at or above ``floor`` fits
    """
    if profile.is_cpu:
        return requested

    size = requested
    while not fits(size, buffer_count, profile, element_bytes) and size // 2 >= floor:
        size //= 2

    if not fits(size, buffer_count, profile, element_bytes):
        required_mb = requested * element_bytes * buffer_count // (1024 * 1024)
        device_mb = profile.memory_size // (1024 * 1024)
        raise CapacityError(
            f"requires {required_mb} MB, device has {device_mb} MB"
        )
    return size


def select_count(
    candidates: Sequence[int],
    buffer_count: int,
    profile: DeviceProfile,
    element_bytes: int = FLOAT_BYTES,
) -> int:
    """Largest candidate that fits, else the smallest candidate."""
    selected = candidates[0]
    for count in candidates:
        if fits(count, buffer_count, profile, element_bytes):
            selected = count
    return selected
