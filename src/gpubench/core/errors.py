"""
Exception hierarchy for benchmark execution.
"""


class BenchmarkError(Exception):
    """Base class for errors raised by the benchmark engine."""


class CapacityError(BenchmarkError):
    """No feasible workload size fits the device memory budget."""


class UnsupportedDeviceError(BenchmarkError):
    """The device cannot run a given kernel configuration."""


class BackendError(BenchmarkError):
    """Kernel compilation, launch or transfer failed inside the backend."""


class SuiteNotFoundError(BenchmarkError, KeyError):
    """An unknown suite name was requested."""

    def __str__(self) -> str:
        return Exception.__str__(self)
