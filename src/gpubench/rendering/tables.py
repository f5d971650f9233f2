"""
Rich tables for device listings and per-suite result summaries.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.device_info import DeviceProfile
from ..core.logger import get_console
from ..core.metrics import BenchmarkResult, Polarity, VerificationStatus

SUITE_TITLES = {
    "compute": "Compute Throughput",
    "memory": "Memory Bandwidth",
    "matmul": "Matrix Multiplication",
    "latency": "Latency Tests",
    "patterns": "Memory Access Patterns",
}

# rows of these suites are one benchmark at one size
SIZE_KEYED_SUITES = {"memory"}

VERIFICATION_MARKS = {
    VerificationStatus.PASSED: " [green]✓[/green]",
    VerificationStatus.FAILED: " [red]⚠[/red]",
    VerificationStatus.REFERENCE: " [dim]ref[/dim]",
}


def format_bytes(size: int) -> str:
    for unit, scale in (("GB", 1 << 30), ("MB", 1 << 20), ("KB", 1 << 10)):
        if size >= scale:
            return f"{size / scale:.1f} {unit}"
    return f"{size} B"


def suite_title(suite: str) -> str:
    return SUITE_TITLES.get(suite, suite)


def row_key(result: BenchmarkResult) -> str:
    if result.suite in SIZE_KEYED_SUITES:
        return f"{result.benchmark} ({result.metric})"
    return result.benchmark


def group_rows(results: Sequence[BenchmarkResult]) -> Dict[str, Dict[int, BenchmarkResult]]:
    """Row label -> device index -> first result, in emission order."""
    rows: Dict[str, Dict[int, BenchmarkResult]] = {}
    for result in results:
        rows.setdefault(row_key(result), {}).setdefault(result.device_index, result)
    return rows


def best_value(cells: Sequence[BenchmarkResult]) -> Optional[float]:
    """Winning value of a row, or None when fewer than two devices succeeded."""
    valid = [r for r in cells if not r.is_error]
    if len(valid) < 2 or valid[0].unit == "x":
        return None
    values = [r.best for r in valid]
    return min(values) if valid[0].polarity is Polarity.MINIMIZE else max(values)


def format_cell(result: Optional[BenchmarkResult], best: Optional[float] = None) -> str:
    if result is None:
        return "[dim]N/A[/dim]"
    if result.is_skipped:
        return "[dim]Skipped[/dim]"
    if result.is_error:
        return "[red]FAILED[/red]"

    value = f"{result.best:.2f} {escape(result.unit)}"
    if best is not None and abs(result.best - best) < 0.01:
        value = f"[bold]{value}[/bold]"
    return value + VERIFICATION_MARKS.get(result.verification, "")


def build_device_table(profiles: Sequence[DeviceProfile]) -> Table:
    table = Table(title="Devices")
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Compute Units", justify="right")
    table.add_column("Max Threads/Group", justify="right")
    table.add_column("Shared Mem/Group", justify="right")
    table.add_column("Memory", justify="right")
    table.add_column("Warp", justify="right")
    table.add_column("Clock (MHz)", justify="right")

    for profile in profiles:
        table.add_row(
            str(profile.device_index),
            f"[{profile.color} bold]{escape(profile.name)}[/]",
            profile.device_class.value,
            str(profile.compute_units),
            f"{profile.max_threads_per_group:,}",
            format_bytes(profile.max_shared_memory_per_group),
            format_bytes(profile.memory_size),
            str(profile.warp_size),
            str(profile.clock_rate),
        )
    return table


def build_suite_table(
    suite: str, results: Sequence[BenchmarkResult], profiles: Sequence[DeviceProfile]
) -> Table:
    """One row per benchmark, one column per device; best value in bold."""
    table = Table(title=f"[bold]{escape(suite_title(suite))}[/bold]")
    table.add_column("Benchmark", style="cyan")
    for profile in profiles:
        table.add_column(f"[{profile.color} bold]{escape(profile.name)}[/]", justify="right")

    for label, by_device in group_rows([r for r in results if r.suite == suite]).items():
        best = best_value(list(by_device.values()))
        cells = [format_cell(by_device.get(p.device_index), best) for p in profiles]
        table.add_row(escape(label), *cells)

    return table


def suites_in_order(results: Sequence[BenchmarkResult]) -> List[str]:
    seen: List[str] = []
    for result in results:
        if result.suite not in seen:
            seen.append(result.suite)
    return seen


def print_devices(profiles: Sequence[DeviceProfile], console: Optional[Console] = None) -> None:
    (console or get_console()).print(build_device_table(profiles))


def print_results(
    results: Sequence[BenchmarkResult],
    profiles: Sequence[DeviceProfile],
    console: Optional[Console] = None,
) -> None:
    """Print one summary table per suite that produced results."""
    console = console or get_console()
    if not results:
        console.print("[yellow]No results to display[/yellow]")
        return

    for suite in suites_in_order(results):
        console.print(build_suite_table(suite, results, profiles))


def failure_summary(results: Sequence[BenchmarkResult]) -> Tuple[int, int, int]:
    """Counts of (failed, skipped, verification mismatches)."""
    failed = sum(1 for r in results if r.is_error and not r.is_skipped)
    skipped = sum(1 for r in results if r.is_skipped)
    mismatched = sum(1 for r in results if r.verification is VerificationStatus.FAILED)
    return failed, skipped, mismatched
