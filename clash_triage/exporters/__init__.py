"""
Triage result exporters.
"""

from .csv_writer import EXPORT_FILENAME, build_export_rows, to_csv_text, write_export

__all__ = [
    "EXPORT_FILENAME",
    "build_export_rows",
    "to_csv_text",
    "write_export",
]
