"""
CSV writer for triage exports.

Header cells are written bare; every data cell is quoted with embedded quotes
doubled.
"""

from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from pathlib import Path
from typing import Any

from ..logging_config import get_logger
from ..models import EnrichedClash

# Module-level logger
logger = get_logger("csv_writer")

EXPORT_FILENAME = "zaki_triage_export.csv"

EXPORT_COLUMNS = (
    "ID",
    "Item 1",
    "Item 2",
    "Distance",
    "AI Status",
    "AI Severity",
    "AI Responsibility",
    "AI Description",
)


def _quote(value: Any) -> str:
    if value is None:
        return '""'
    text = value.value if isinstance(value, Enum) else value
    return '"' + str(text).replace('"', '""') + '"'


def to_csv_text(records: Sequence[Mapping[str, Any]]) -> str:
    """
    Serialize flat records to CSV text.

    Column order comes from the first record; keys missing from later records
    serialize as empty cells.

    Returns:
        CSV text without a trailing newline, or "" for no records
    """
    if not records:
        return ""
    headers = list(records[0].keys())
    lines = [",".join(headers)]
    for record in records:
        lines.append(",".join(_quote(record.get(header)) for header in headers))
    return "\n".join(lines)


def build_export_rows(clashes: Iterable[EnrichedClash]) -> list[dict[str, str]]:
    """Project clashes onto the fixed export columns."""
    return [
        dict(
            zip(
                EXPORT_COLUMNS,
                (
                    clash.clash_id,
                    clash.item1,
                    clash.item2,
                    clash.distance,
                    clash.status.value,
                    clash.ai_severity.value,
                    clash.ai_responsibility.value,
                    clash.ai_description,
                ),
            )
        )
        for clash in clashes
    ]


def write_export(clashes: Iterable[EnrichedClash], path: str | Path = EXPORT_FILENAME) -> Path | None:
    """
    Write the triage export file.

    Args:
        clashes: Clashes to export, in display order
        path: Destination file (default: zaki_triage_export.csv)

    Returns:
        The written path, or None when there was nothing to export
    """
    rows = build_export_rows(clashes)
    if not rows:
        logger.info("Nothing to export")
        return None

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(to_csv_text(rows))

    logger.info(f"Exported {len(rows)} clashes to {path}")
    return path
