"""
Core benchmark infrastructure.
"""

from .benchmark_runner import BenchmarkRunner, BenchmarkSuite, RunReport
from .config import RunConfiguration, RunMode
from .device_info import DeviceProfile
from .metrics import BenchmarkResult, Polarity, VerificationStatus

__all__ = [
    "BenchmarkRunner",
    "BenchmarkSuite",
    "RunReport",
    "RunConfiguration",
    "RunMode",
    "DeviceProfile",
    "BenchmarkResult",
    "Polarity",
    "VerificationStatus",
]
