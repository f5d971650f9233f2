"""
Benchmark results, sample statistics and the per-run result store.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence

import numpy as np

SKIPPED_PREFIX = "Skipped"


class Polarity(str, Enum):
    """Whether higher or lower values are better for a metric."""

    MAXIMIZE = "maximize"  # throughput, bandwidth
    MINIMIZE = "minimize"  # latency


class VerificationStatus(str, Enum):
    NOT_APPLICABLE = "notApplicable"
    REFERENCE = "reference"
    PASSED = "passed"
    FAILED = "failed"


@dataclass(frozen=True)
class SampleStats:
    best: float
    average: float
    worst: float
    stddev: float


def reduce_samples(
    samples: Sequence[float], polarity: Polarity = Polarity.MAXIMIZE
) -> SampleStats:
    """Reduce raw samples to best/average/worst/stddev.

    Args:
        samples: Measured values in metric units
        polarity: MAXIMIZE takes best=max, MINIMIZE takes best=min

    Returns:
        SampleStats; all zero for an empty sequence
    """
    if len(samples) == 0:
        return SampleStats(0.0, 0.0, 0.0, 0.0)

    values = np.asarray(samples, dtype=np.float64)
    high = float(np.max(values))
    low = float(np.min(values))
    # clamp keeps mean within [min, max] under rounding of equal samples
    average = min(max(float(np.mean(values)), low), high)
    stddev = float(np.std(values, ddof=1)) if values.size > 1 else 0.0

    if polarity is Polarity.MINIMIZE:
        return SampleStats(best=low, average=average, worst=high, stddev=stddev)
    return SampleStats(best=high, average=average, worst=low, stddev=stddev)


@dataclass
class BenchmarkResult:
    """Outcome of one (suite, benchmark, device, size) attempt.

    A result is either a completed measurement or an error placeholder;
    numeric fields are zero and meaningless when ``error`` is set.
    """

    suite: str
    benchmark: str
    device: str
    metric: str
    unit: str
    best: float = 0.0
    average: float = 0.0
    worst: float = 0.0
    stddev: float = 0.0
    polarity: Polarity = Polarity.MAXIMIZE
    verification: VerificationStatus = VerificationStatus.NOT_APPLICABLE
    error: Optional[str] = None
    device_index: int = 0  # enumeration position; names repeat across identical GPUs

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def is_skipped(self) -> bool:
        return self.error is not None and self.error.startswith(SKIPPED_PREFIX)

    @classmethod
    def from_samples(
        cls,
        suite: str,
        benchmark: str,
        device: str,
        metric: str,
        unit: str,
        samples: Sequence[float],
        polarity: Polarity = Polarity.MAXIMIZE,
        device_index: int = 0,
    ) -> "BenchmarkResult":
        stats = reduce_samples(samples, polarity)
        return cls(
            suite=suite,
            benchmark=benchmark,
            device=device,
            metric=metric,
            unit=unit,
            best=stats.best,
            average=stats.average,
            worst=stats.worst,
            stddev=stats.stddev,
            polarity=polarity,
            device_index=device_index,
        )

    @classmethod
    def failed(
        cls,
        suite: str,
        benchmark: str,
        device: str,
        metric: str,
        unit: str,
        message: str,
        polarity: Polarity = Polarity.MAXIMIZE,
        device_index: int = 0,
    ) -> "BenchmarkResult":
        return cls(
            suite=suite,
            benchmark=benchmark,
            device=device,
            metric=metric,
            unit=unit,
            polarity=polarity,
            error=message or "Unknown error",
            device_index=device_index,
        )

    @classmethod
    def skipped(
        cls,
        suite: str,
        benchmark: str,
        device: str,
        metric: str,
        unit: str,
        reason: str,
        polarity: Polarity = Polarity.MAXIMIZE,
        device_index: int = 0,
    ) -> "BenchmarkResult":
        return cls.failed(
            suite, benchmark, device, metric, unit, f"{SKIPPED_PREFIX}: {reason}", polarity, device_index
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suite": self.suite,
            "benchmark": self.benchmark,
            "device": self.device,
            "deviceIndex": self.device_index,
            "metric": self.metric,
            "unit": self.unit,
            "best": self.best,
            "average": self.average,
            "worst": self.worst,
            "stdDev": self.stddev,
            "polarity": self.polarity.value,
            "verification": self.verification.value,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenchmarkResult":
        return cls(
            suite=data["suite"],
            benchmark=data["benchmark"],
            device=data["device"],
            device_index=int(data.get("deviceIndex", 0)),
            metric=data["metric"],
            unit=data["unit"],
            best=float(data["best"]),
            average=float(data["average"]),
            worst=float(data["worst"]),
            stddev=float(data["stdDev"]),
            polarity=Polarity(data.get("polarity", Polarity.MAXIMIZE.value)),
            verification=VerificationStatus(data["verification"]),
            error=data.get("error"),
        )


class ResultStore:
    """Append-only result list for one run."""

    def __init__(self):
        self._results: List[BenchmarkResult] = []

    def append(self, result: BenchmarkResult) -> None:
        self._results.append(result)

    def extend(self, results: Sequence[BenchmarkResult]) -> None:
        self._results.extend(results)

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[BenchmarkResult]:
        return iter(list(self._results))

    def get_results(self) -> List[BenchmarkResult]:
        """Get a copy of all collected results in emission order."""
        return self._results.copy()

    def find(
        self,
        suite: Optional[str] = None,
        benchmark: Optional[str] = None,
        device: Optional[str] = None,
        metric: Optional[str] = None,
        include_errors: bool = True,
    ) -> List[BenchmarkResult]:
        """Filter results by any combination of fields."""
        return [
            r
            for r in self._results
            if (suite is None or r.suite == suite)
            and (benchmark is None or r.benchmark == benchmark)
            and (device is None or r.device == device)
            and (metric is None or r.metric == metric)
            and (include_errors or not r.is_error)
        ]

    def first(self, **filters) -> Optional[BenchmarkResult]:
        matches = self.find(**filters)
        return matches[0] if matches else None
