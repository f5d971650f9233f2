"""
JSON and Markdown export of benchmark results.

The JSON document uses camelCase keys::

    {"timestamp": ..., "system": {...}, "devices": [...], "results": [...]}

and is the only format that can be loaded back.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..backends.base import DeviceClass
from ..core.device_info import DeviceProfile, get_system_info
from ..core.metrics import BenchmarkResult, Polarity
from .tables import format_bytes, group_rows, suite_title, suites_in_order

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# (label, suite, benchmark prefix, polarity) for the Markdown summary
SUMMARY_METRICS = [
    ("FP32 Throughput", "compute", "FP32 Throughput", Polarity.MAXIMIZE),
    ("FP64 Throughput", "compute", "FP64 Throughput", Polarity.MAXIMIZE),
    ("Int32 Throughput", "compute", "Int32 Throughput", Polarity.MAXIMIZE),
    ("MatMul Tiled", "matmul", "Tiled", Polarity.MAXIMIZE),
    ("Memory H→D", "memory", "H→D Transfer", Polarity.MAXIMIZE),
    ("Kernel Launch", "latency", "Kernel Launch", Polarity.MINIMIZE),
]


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def profile_to_dict(profile: DeviceProfile) -> Dict[str, Any]:
    return {
        "name": profile.name,
        "type": profile.device_class.value,
        "deviceIndex": profile.device_index,
        "computeUnits": profile.compute_units,
        "maxThreadsPerGroup": profile.max_threads_per_group,
        "maxSharedMemoryPerGroup": profile.max_shared_memory_per_group,
        "memorySize": profile.memory_size,
        "warpSize": profile.warp_size,
        "clockRate": profile.clock_rate,
        "driverVersion": profile.driver_version,
    }


def profile_from_dict(data: Dict[str, Any]) -> DeviceProfile:
    return DeviceProfile(
        name=data["name"],
        device_class=DeviceClass(data["type"]),
        device_index=int(data["deviceIndex"]),
        compute_units=int(data["computeUnits"]),
        max_threads_per_group=int(data["maxThreadsPerGroup"]),
        max_shared_memory_per_group=int(data["maxSharedMemoryPerGroup"]),
        memory_size=int(data["memorySize"]),
        warp_size=int(data["warpSize"]),
        clock_rate=int(data["clockRate"]),
        driver_version=data.get("driverVersion"),
    )


def build_document(
    results: Sequence[BenchmarkResult],
    profiles: Sequence[DeviceProfile],
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Assemble the JSON export document."""
    timestamp = timestamp or datetime.now(timezone.utc)
    return {
        "timestamp": timestamp.isoformat(),
        "system": {_camel(k): v for k, v in get_system_info().items()},
        "devices": [profile_to_dict(p) for p in profiles],
        "results": [r.to_dict() for r in results],
    }


def export_json(
    path: PathLike, results: Sequence[BenchmarkResult], profiles: Sequence[DeviceProfile]
) -> Path:
    path = Path(path)
    path.write_text(
        json.dumps(build_document(results, profiles), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    logger.info("Exported %d results to %s", len(results), path)
    return path


def load_json(path: PathLike) -> Tuple[List[BenchmarkResult], List[DeviceProfile]]:
    """Parse a file written by :func:`export_json`.

    Raises:
        ValueError: If the file is not a results document
    """
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict) or "results" not in data:
        raise ValueError(f"{path} is not a gpubench results file")

    results = [BenchmarkResult.from_dict(item) for item in data["results"]]
    profiles = [profile_from_dict(item) for item in data.get("devices", [])]
    return results, profiles


def _escape_markdown(text: str) -> str:
    return text.replace("|", "\\|").replace("*", "\\*").replace("_", "\\_")


def _markdown_cell(result: Optional[BenchmarkResult]) -> str:
    if result is None:
        return "N/A"
    if result.is_error:
        return _escape_markdown(result.error)
    return f"{result.best:.2f} {result.unit}"


def _summary_lines(results: Sequence[BenchmarkResult]) -> List[str]:
    lines = []
    for label, suite, prefix, polarity in SUMMARY_METRICS:
        candidates = [
            r
            for r in results
            if r.suite == suite and r.benchmark.startswith(prefix) and not r.is_error
        ]
        if not candidates:
            continue

        pick = min if polarity is Polarity.MINIMIZE else max
        winner = pick(candidates, key=lambda r: r.best)
        lines.append(
            f"- **{label}:** {_escape_markdown(winner.device)}: {winner.best:.2f} {winner.unit}"
        )
    return lines


def render_markdown(
    results: Sequence[BenchmarkResult],
    profiles: Sequence[DeviceProfile],
    timestamp: Optional[datetime] = None,
) -> str:
    timestamp = timestamp or datetime.now(timezone.utc)
    system = get_system_info()

    lines = [
        "# gpubench Results",
        "",
        f"**Date:** {timestamp:%Y-%m-%d %H:%M:%S} UTC",
        f"**Machine:** {system['machine']}",
        f"**OS:** {system['platform']}",
        f"**Runtime:** Python {system['python_version']}, PyTorch {system['pytorch_version']}",
        "",
        "## Devices",
        "",
        "| # | Name | Type | Compute Units | Max Threads/Group | Memory | Warp Size | Clock (MHz) |",
        "|---|------|------|---------------|-------------------|--------|-----------|-------------|",
    ]
    for p in profiles:
        lines.append(
            f"| {p.device_index} | {_escape_markdown(p.name)} | {p.device_class.value} "
            f"| {p.compute_units} | {p.max_threads_per_group:,} | {format_bytes(p.memory_size)} "
            f"| {p.warp_size} | {p.clock_rate} |"
        )
    lines.append("")

    for suite in suites_in_order(results):
        suite_results = [r for r in results if r.suite == suite]
        devices: Dict[int, str] = {}
        for r in suite_results:
            devices.setdefault(r.device_index, r.device)

        lines.append(f"## {suite_title(suite)}")
        lines.append("")
        header = " | ".join(_escape_markdown(name) for name in devices.values())
        lines.append(f"| Benchmark | {header} |")
        lines.append("|-----------|" + "-----------|" * len(devices))
        for label, by_device in group_rows(suite_results).items():
            cells = [_markdown_cell(by_device.get(index)) for index in devices]
            lines.append(f"| {_escape_markdown(label)} | " + " | ".join(cells) + " |")
        lines.append("")

    summary = _summary_lines(results)
    if summary:
        lines.extend(["## Summary", "", *summary, ""])

    lines.extend(["---", "*Generated by gpubench*", ""])
    return "\n".join(lines)


def export_markdown(
    path: PathLike, results: Sequence[BenchmarkResult], profiles: Sequence[DeviceProfile]
) -> Path:
    path = Path(path)
    path.write_text(render_markdown(results, profiles), encoding="utf-8")
    logger.info("Exported %d results to %s", len(results), path)
    return path


def export(
    path: PathLike, results: Sequence[BenchmarkResult], profiles: Sequence[DeviceProfile]
) -> Path:
    """Write results in the format named by the file suffix (.json or .md)."""
    suffix = Path(path).suffix.lower()
    if suffix == ".json":
        return export_json(path, results, profiles)
    if suffix == ".md":
        return export_markdown(path, results, profiles)
    raise ValueError(f"Unsupported export format '{suffix}' (use .json or .md)")
