"""
Compute backends: device enumeration, kernel dispatch and buffers.
"""

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

__all__ = [
    "Accelerator",
    "Backend",
    "Buffer",
    "DeviceClass",
    "DeviceHandle",
    "Invocable",
    "Kernel",
    "LaunchDomain",
]
