"""
Main benchmark runner orchestrating suites across devices.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, List, NamedTuple, Optional, Sequence

import numpy as np

from ..backends.base import Accelerator, Backend
from .config import RunConfiguration
from .device_info import DeviceProfile, select_devices
from .errors import CapacityError, SuiteNotFoundError, UnsupportedDeviceError
from .measurement import MeasurementProtocol
from .metrics import BenchmarkResult, Polarity, ResultStore
from .verification import CrossDeviceVerifier

logger = logging.getLogger(__name__)


@dataclass
class Device:
    """An opened accelerator paired with its profile."""

    accelerator: Accelerator
    profile: DeviceProfile

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def index(self) -> int:
        return self.profile.device_index


class Outcome(NamedTuple):
    """What a test body returns on success.

    Args:
        samples: Values in metric units, one per timed iteration
        output: Raw device output for cross-device verification
        metric: Overrides the metric label chosen by the caller
    """

    samples: Sequence[float]
    output: Optional[np.ndarray] = None
    metric: Optional[str] = None


class SuiteContext:
    """Everything a suite needs for one run: devices, timing, verification
    and the result store it appends to."""

    def __init__(
        self,
        suite: "BenchmarkSuite",
        config: RunConfiguration,
        devices: Sequence[Device],
        store: ResultStore,
        verifier: CrossDeviceVerifier,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.suite = suite
        self.config = config
        self.devices = list(devices)
        self.store = store
        self.verifier = verifier
        self._clock = clock

    def protocol(
        self, warmup_iterations: Optional[int] = None, iterations: Optional[int] = None
    ) -> MeasurementProtocol:
        """Measurement protocol with run-configured counts unless overridden."""
        kwargs = {} if self._clock is None else {"clock": self._clock}
        return MeasurementProtocol(
            self.config.warmup_iterations if warmup_iterations is None else warmup_iterations,
            self.config.iterations if iterations is None else iterations,
            **kwargs,
        )

    def attempt(
        self,
        device: Device,
        benchmark: str,
        metric: str,
        unit: str,
        test: Callable[[], Outcome],
        verify_key: Optional[Hashable] = None,
        polarity: Polarity = Polarity.MAXIMIZE,
    ) -> BenchmarkResult:
        """Run one test and record exactly one result for it.

        Capacity and support problems become skipped results, any other
        exception becomes an error result; neither stops the suite.
        """
        suite = self.suite.name
        try:
            outcome = test()
        except (CapacityError, UnsupportedDeviceError) as e:
            result = BenchmarkResult.skipped(
                suite, benchmark, device.name, metric, unit, str(e), polarity, device.index
            )
            logger.info("%s %s: %s", device.name, benchmark, result.error)
        except Exception as e:
            result = BenchmarkResult.failed(
                suite, benchmark, device.name, metric, unit, str(e), polarity, device.index
            )
            logger.error("%s %s: FAILED - %s", device.name, benchmark, result.error)
        else:
            result = BenchmarkResult.from_samples(
                suite,
                benchmark,
                device.name,
                outcome.metric or metric,
                unit,
                outcome.samples,
                polarity,
                device.index,
            )
            if verify_key is not None and outcome.output is not None:
                result.verification = self.verifier.verify(verify_key, outcome.output, device.name)
            logger.info(
                "%s %s: %.2f %s (avg %.2f, stddev %.2f)%s",
                device.name,
                benchmark,
                result.best,
                unit,
                result.average,
                result.stddev,
                f" [{result.verification.value}]" if verify_key is not None else "",
            )

        self.store.append(result)
        return result

    def skip(
        self,
        device: Device,
        benchmark: str,
        metric: str,
        unit: str,
        reason: str,
        polarity: Polarity = Polarity.MAXIMIZE,
    ) -> BenchmarkResult:
        """Record a skipped result without running anything."""
        result = BenchmarkResult.skipped(
            self.suite.name, benchmark, device.name, metric, unit, reason, polarity, device.index
        )
        logger.info("%s %s: %s", device.name, benchmark, result.error)
        self.store.append(result)
        return result


class BenchmarkSuite:
    """Base class for a group of related benchmarks.

    Subclasses declare the sizes they sweep and run one (device, size)
    pair at a time. ``size_major`` sweeps every device for a size before
    the next size; otherwise each device runs all of its sizes in turn.
    """

    name: str = ""
    description: str = ""
    size_major: bool = False

    def supports_device(self, profile: DeviceProfile) -> bool:
        return True

    def sizes(self, config: RunConfiguration) -> List:
        """Workload sizes for this run; a single ``None`` for size-less suites."""
        return [None]

    def run_pair(self, ctx: SuiteContext, device: Device, size) -> None:
        raise NotImplementedError

    def derive(self, results: List[BenchmarkResult], ctx: SuiteContext) -> List[BenchmarkResult]:
        """Summary rows computed from this suite's collected results."""
        return []

    def run(self, ctx: SuiteContext) -> None:
        devices = [d for d in ctx.devices if self.supports_device(d.profile)]
        if not devices:
            logger.warning("No supported devices for suite %s", self.name)
            return

        sizes = self.sizes(ctx.config)
        if self.size_major:
            pairs = [(device, size) for size in sizes for device in devices]
        else:
            pairs = [(device, size) for device in devices for size in sizes]

        start = len(ctx.store)
        for device, size in pairs:
            self.run_pair(ctx, device, size)

        # rows from this run only
        appended = [r for r in ctx.store.get_results()[start:] if r.suite == self.name]
        ctx.store.extend(self.derive(appended, ctx))


class RunReport(NamedTuple):
    """Output handed to rendering and export."""

    results: List[BenchmarkResult]
    profiles: List[DeviceProfile]


class BenchmarkRunner:
    """Main benchmark runner class."""

    def __init__(
        self,
        backend: Backend,
        config: Optional[RunConfiguration] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize benchmark runner.

        Args:
            backend: Compute backend providing devices
            config: Run options; defaults to a standard run of every suite
            clock: Override for the measurement clock
        """
        self.backend = backend
        self.config = config or RunConfiguration()
        self.clock = clock
        self.store = ResultStore()
        self.verifier = CrossDeviceVerifier()
        self.devices: List[Device] = []
        self._suites: Dict[str, BenchmarkSuite] = {}

        # load available suites
        self._load_suites()

    def _load_suites(self) -> None:
        """Load and register the built-in suites."""
        from ..benchmarks.compute import register_compute_suite
        from ..benchmarks.latency import register_latency_suite
        from ..benchmarks.matmul import register_matmul_suite
        from ..benchmarks.memory import register_memory_suite
        from ..benchmarks.patterns import register_patterns_suite

        register_memory_suite(self)
        register_compute_suite(self)
        register_latency_suite(self)
        register_matmul_suite(self)
        register_patterns_suite(self)

    def register_suite(self, suite: BenchmarkSuite) -> None:
        """Register a suite under its name, replacing any previous one."""
        self._suites[suite.name] = suite

    def list_suites(self) -> Dict[str, str]:
        """Map suite names to descriptions, in run order."""
        return {name: suite.description for name, suite in self._suites.items()}

    def get_suite(self, name: str) -> BenchmarkSuite:
        try:
            return self._suites[name.lower()]
        except KeyError:
            raise SuiteNotFoundError(
                f"Unknown suite '{name}' (available: {', '.join(self._suites)})"
            ) from None

    def open_devices(self) -> List[DeviceProfile]:
        """Enumerate, filter and open devices; idempotent."""
        if self.devices:
            return self.profiles

        handles = select_devices(self.backend.enumerate_devices(), self.config.device_filter)
        for index, handle in enumerate(handles):
            accelerator = self.backend.create_accelerator(handle)
            self.devices.append(Device(accelerator, DeviceProfile.from_accelerator(accelerator, index)))

        return self.profiles

    @property
    def profiles(self) -> List[DeviceProfile]:
        return [d.profile for d in self.devices]

    def close(self) -> None:
        """Dispose every opened accelerator."""
        for device in self.devices:
            try:
                device.accelerator.dispose()
            except Exception as e:
                logger.warning("Failed to dispose %s: %s", device.name, e)
        self.devices = []

    def __enter__(self) -> "BenchmarkRunner":
        self.open_devices()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def run_suite(self, name: str) -> List[BenchmarkResult]:
        """Run one suite across all devices.

        A failure escaping the suite's per-test guards aborts the suite only;
        results it already recorded are kept.

        Returns:
            Results appended by this suite
        """
        suite = self.get_suite(name)
        self.open_devices()

        start = len(self.store)
        ctx = SuiteContext(suite, self.config, self.devices, self.store, self.verifier, self.clock)

        logger.info("Running suite %s: %s", suite.name, suite.description)
        try:
            suite.run(ctx)
        except Exception:
            logger.exception("Suite %s aborted", suite.name)

        return self.store.get_results()[start:]

    def run(self, suites: Optional[Sequence[str]] = None) -> RunReport:
        """Run the configured suites (all of them when none are named).

        Unknown suite names raise before anything runs.
        """
        names = list(suites or self.config.suites or self._suites)
        for name in names:
            self.get_suite(name)

        self.open_devices()
        for name in names:
            self.run_suite(name)

        return self.report()

    def report(self) -> RunReport:
        return RunReport(self.store.get_results(), self.profiles)

    def get_results(self) -> List[BenchmarkResult]:
        """Get all collected results."""
        return self.store.get_results()
