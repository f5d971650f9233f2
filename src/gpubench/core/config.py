"""
Run configuration shared by all benchmark suites.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


class RunMode(str, Enum):
    """Size sweep selection."""

    QUICK = "quick"
    STANDARD = "standard"
    FULL = "full"


@dataclass(frozen=True)
class RunConfiguration:
    """Immutable options for one benchmark run.

    Args:
        suites: Suite names to run; empty means every registered suite
        device_filter: Index, name substring, or device class (cuda, rocm, gpu, cpu)
        quick: Smaller sizes and fewer iterations
        full: Include the largest sizes and CPU for every size
        size: Explicit matrix size for the matmul suite
        export_path: Destination for exported results (.json or .md)
        seed: Seed for host input data
    """

    suites: Tuple[str, ...] = ()
    device_filter: Optional[str] = None
    quick: bool = False
    full: bool = False
    size: Optional[int] = None
    export_path: Optional[Path] = None
    seed: int = 42

    def __post_init__(self):
        if self.size is not None and self.size <= 0:
            raise ValueError(f"Matrix size must be positive, got {self.size}")
        if self.export_path is not None:
            suffix = Path(self.export_path).suffix.lower()
            if suffix not in (".json", ".md"):
                raise ValueError(
                    f"Unsupported export format '{suffix}' (use .json or .md)"
                )

    @property
    def mode(self) -> RunMode:
        if self.quick:
            return RunMode.QUICK
        if self.full:
            return RunMode.FULL
        return RunMode.STANDARD

    @property
    def iterations(self) -> int:
        return 3 if self.quick else 5

    @property
    def warmup_iterations(self) -> int:
        return 1 if self.quick else 2

    @property
    def latency_iterations(self) -> int:
        return 50 if self.quick else 100

    @property
    def alloc_iterations(self) -> int:
        return 25 if self.quick else 50

    @property
    def latency_warmup_iterations(self) -> int:
        return 5
