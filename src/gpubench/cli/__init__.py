"""
Command-line interface for gpubench.
"""

from pathlib import Path
from typing import List, Optional

import typer
from rich import print as rprint
from rich.table import Table

from ..backends.base import Backend
from ..backends.torch_backend import TorchBackend
from ..core.benchmark_runner import BenchmarkRunner
from ..core.config import RunConfiguration
from ..core.device_info import get_system_info
from ..core.errors import BenchmarkError
from ..core.logger import get_console, setup_logging
from ..rendering.export import export
from ..rendering.tables import failure_summary, print_devices, print_results

app = typer.Typer(
    help="gpubench - Compute, memory and latency benchmarks across GPU and CPU devices"
)


def get_backend(include_cpu: bool = True) -> Backend:
    """Backend used by every command."""
    return TorchBackend(include_cpu=include_cpu)


@app.command()
def run(
    suites: List[str] = typer.Option(
        [], "--suite", "-s", help="Suite to run (repeatable); default runs all"
    ),
    device: Optional[str] = typer.Option(
        None, "--device", "-d", help="Device index, name substring, or class (cuda, rocm, gpu, cpu)"
    ),
    quick: bool = typer.Option(False, "--quick", "-q", help="Smaller sizes and fewer iterations"),
    full: bool = typer.Option(False, "--full", help="Largest sizes; CPU runs every matmul size"),
    size: Optional[int] = typer.Option(None, "--size", help="Single matrix size for matmul"),
    export_path: Optional[Path] = typer.Option(
        None, "--export", "-e", help="Write results to a .json or .md file"
    ),
    seed: int = typer.Option(42, "--seed", help="Seed for input data"),
    no_cpu: bool = typer.Option(False, "--no-cpu", help="Exclude the host CPU"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Run benchmark suites across all selected devices."""
    setup_logging("DEBUG" if verbose else "INFO")

    try:
        config = RunConfiguration(
            suites=tuple(s.lower() for s in suites or []),
            device_filter=device,
            quick=quick,
            full=full,
            size=size,
            export_path=export_path,
            seed=seed,
        )
    except ValueError as e:
        rprint(f"[red]Invalid options: {e}[/red]")
        raise typer.Exit(code=2)

    try:
        with BenchmarkRunner(get_backend(include_cpu=not no_cpu), config) as runner:
            rprint(f"[green]Running {config.mode.value} benchmarks[/green]")
            print_devices(runner.profiles)
            report = runner.run()
    except (BenchmarkError, ValueError) as e:
        rprint(f"[red]Error running benchmarks: {e}[/red]")
        raise typer.Exit(code=1)

    print_results(report.results, report.profiles)

    failed, skipped, mismatched = failure_summary(report.results)
    rprint(
        f"\n{len(report.results)} results: "
        f"[red]{failed} failed[/red], [dim]{skipped} skipped[/dim], "
        f"[yellow]{mismatched} verification mismatches[/yellow]"
    )

    if config.export_path is not None:
        path = export(config.export_path, report.results, report.profiles)
        rprint(f"[green]Results written to {path}[/green]")


@app.command()
def list_devices(
    device: Optional[str] = typer.Option(None, "--device", "-d", help="Device filter"),
    no_cpu: bool = typer.Option(False, "--no-cpu", help="Exclude the host CPU"),
) -> None:
    """List available devices and their capabilities."""
    try:
        config = RunConfiguration(device_filter=device)
        with BenchmarkRunner(get_backend(include_cpu=not no_cpu), config) as runner:
            print_devices(runner.profiles)
    except (BenchmarkError, ValueError) as e:
        rprint(f"[red]Error listing devices: {e}[/red]")
        raise typer.Exit(code=1)

    for key, value in get_system_info().items():
        rprint(f"[cyan]{key}[/cyan]: {value}")


@app.command()
def list_suites() -> None:
    """List available benchmark suites."""
    runner = BenchmarkRunner(get_backend())

    table = Table(title="Available Suites")
    table.add_column("Suite", style="cyan")
    table.add_column("Description", style="green")
    for name, description in runner.list_suites().items():
        table.add_row(name, description)

    get_console().print(table)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
