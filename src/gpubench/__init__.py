"""
gpubench

Compute throughput, memory bandwidth and latency benchmarks across GPU and
CPU accelerators, with cross-device verification of kernel outputs.
"""

__version__ = "0.1.0"

from .core.benchmark_runner import BenchmarkRunner
from .core.config import RunConfiguration
from .core.device_info import DeviceProfile
from .core.metrics import BenchmarkResult

__all__ = [
    "BenchmarkRunner",
    "RunConfiguration",
    "DeviceProfile",
    "BenchmarkResult",
]
