"""
Warmup-then-measure timing discipline.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

# floor for a sample from a clock too coarse to see the operation
MIN_SAMPLE_SECONDS = 1e-9


@dataclass
class Measurement:
    """Raw wall-clock samples (seconds) for one timed workload."""

    samples: List[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.samples)

    def rates(self, work: float, scale: float = 1e9) -> List[float]:
        """Convert durations into ``work / seconds / scale``.

        ``work`` is FLOPs for GFLOPS, bytes for GB/s. Zero-length samples
        are clamped to ``MIN_SAMPLE_SECONDS``.
        """
        return [work / max(seconds, MIN_SAMPLE_SECONDS) / scale for seconds in self.samples]

    def microseconds(self) -> List[float]:
        return [seconds * 1e6 for seconds in self.samples]


class MeasurementProtocol:
    """Time an operation with untimed warmups and synchronized iterations.

    Launch submission may be asynchronous, so every timed iteration is
    bracketed by the clock around both the launch and the barrier. Failures
    from the operation or the barrier propagate to the caller.
    """

    def __init__(
        self,
        warmup_iterations: int,
        iterations: int,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """Initialize the protocol.

        Args:
            warmup_iterations: Untimed runs to absorb compilation/caching cost
            iterations: Timed runs
            clock: Monotonic clock in seconds
        """
        if iterations < 1:
            raise ValueError("At least one timed iteration is required")
        self.warmup_iterations = max(0, warmup_iterations)
        self.iterations = iterations
        self.clock = clock

    def time(
        self,
        operation: Callable[[], Any],
        synchronize: Optional[Callable[[], None]] = None,
        setup: Optional[Callable[[], None]] = None,
        teardown: Optional[Callable[[Any], None]] = None,
    ) -> Measurement:
        """Measure ``operation``.

        Args:
            operation: The launch (or host-side call) being timed
            synchronize: Barrier run after each operation, inside the timed
                window; None for operations that complete on return
            setup: Untimed work before every run (warmup and timed)
            teardown: Untimed cleanup receiving the operation's return value

        Returns:
            Measurement with one sample per timed iteration
        """
        for _ in range(self.warmup_iterations):
            if setup is not None:
                setup()
            value = operation()
            if synchronize is not None:
                synchronize()
            if teardown is not None:
                teardown(value)

        measurement = Measurement()
        for _ in range(self.iterations):
            if setup is not None:
                setup()

            start = self.clock()
            value = operation()
            if synchronize is not None:
                synchronize()
            measurement.samples.append(self.clock() - start)

            if teardown is not None:
                teardown(value)

        return measurement
