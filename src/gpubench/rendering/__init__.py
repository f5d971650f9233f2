"""
Result tables and file export.
"""

from .export import export, export_json, export_markdown, load_json
from .tables import build_device_table, build_suite_table, print_devices, print_results

__all__ = [
    "export",
    "export_json",
    "export_markdown",
    "load_json",
    "build_device_table",
    "build_suite_table",
    "print_devices",
    "print_results",
]
