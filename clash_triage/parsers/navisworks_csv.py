"""
Navisworks clash export parser.

Turns comma-delimited clash exports into RawClash records. Column meaning is
inferred from the header row where possible, with fixed positional fallbacks
for exports whose headers are not recognisable.

Known limitation: empty cells and unquoted values containing commas shift the
row's tokens, so later columns can end up misaligned.
"""

import re
from pathlib import Path

from ..logging_config import get_logger
from ..models import RawClash

# Module-level logger
logger = get_logger("navisworks_csv")

TEST_NAME = "Imported Test"

_LINE_SPLIT = re.compile(r"\r?\n")
_HEADER_QUOTES = re.compile(r"['\"]+")
_ITEM_NUMBER = re.compile(r"item\s*([12])")
# A double-quoted span, or a non-comma run that does not start with whitespace,
# followed by a comma or the end of the line.
_FIELD = re.compile(r'(".*?"|[^",\s][^",]*)(?=\s*,|\s*$)')

# (role, required substrings), checked in order; first match per header wins
_ROLE_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("clash_name", ("clash", "name")),
    ("distance", ("distance",)),
    ("item1", ("item 1", "name")),
    ("item2", ("item 2", "name")),
    ("layer1", ("item 1", "layer")),
    ("layer2", ("item 2", "layer")),
)

# role -> (positional fallback indices, placeholder)
_FALLBACKS: dict[str, tuple[tuple[int, ...], str]] = {
    "clash_name": ((0,), "Unknown"),
    "distance": ((1,), "Unknown"),
    "item1": ((2, 3), "Unknown Item 1"),
    "item2": ((5, 6), "Unknown Item 2"),
    "layer1": ((4,), "Layer 1"),
    "layer2": ((7,), "Layer 2"),
}


def normalize_header(token: str) -> str:
    """Lower-case, trim and strip quotes from a header cell."""
    return _HEADER_QUOTES.sub("", token.strip().lower())


def infer_column_roles(headers: list[str]) -> dict[str, int]:
    """
    Map semantic roles to column indices from normalized header cells.

    Unmatched headers are ignored. When several headers match the same role,
    the last one wins.

    Args:
        headers: Header cells, already passed through normalize_header

    Returns:
        Partial mapping of role name to column index
    """
    roles = dict[str, int]()
    for index, header in enumerate(headers):
        # "Item1 Name" and "Item 1 Name" both appear in the wild
        header = _ITEM_NUMBER.sub(r"item \1", header)
        if header == "name":
            roles["clash_name"] = index
            continue
        for role, needles in _ROLE_RULES:
            if all(needle in header for needle in needles):
                roles[role] = index
                break
    return roles


def _strip_quotes(token: str) -> str:
    if len(token) >= 2 and token.startswith('"') and token.endswith('"'):
        return token[1:-1].replace('""', '"').strip()
    if token.startswith('"'):
        token = token[1:]
    if token.endswith('"'):
        token = token[:-1]
    return token.strip()


def tokenize_row(line: str) -> list[str]:
    """
    Split one data line into cell values.

    Uses quote-aware matching first and a naive comma split when that finds
    nothing.
    """
    tokens = _FIELD.findall(line)
    if not tokens:
        tokens = line.split(",")
    return [_strip_quotes(token.strip()) for token in tokens]


def _resolve(row: list[str], role: str, roles: dict[str, int], offset: int) -> str:
    index = roles.get(role)
    if index is not None:
        index += offset
        if index < len(row) and row[index]:
            return row[index]

    fallback_indices, placeholder = _FALLBACKS[role]
    for fallback in fallback_indices:
        if fallback < len(row) and row[fallback]:
            return row[fallback]
    return placeholder


def parse_clash_csv(text: str) -> list[RawClash]:
    """
    Parse a clash export into RawClash records.

    Args:
        text: Full CSV text, header row first

    Returns:
        One RawClash per usable data row. Empty when the text has no header
        or no data rows; callers should read that as "nothing to triage".
    """
    lines = [line for line in _LINE_SPLIT.split(text) if line.strip()]
    if len(lines) < 2:
        logger.debug(f"Not enough lines to parse ({len(lines)})")
        return []

    headers = [normalize_header(token) for token in lines[0].split(",")]
    roles = infer_column_roles(headers)
    logger.debug(f"Inferred column roles: {roles}")

    clashes = list[RawClash]()
    skipped = 0
    for line_index, line in enumerate(lines[1:], start=1):
        row = tokenize_row(line)
        if len(row) < 2:
            skipped += 1
            continue

        # Extra cells are treated as unlabeled leading columns
        offset = max(0, len(row) - len(headers))

        clashes.append(
            RawClash(
                clash_id=f"clash-{line_index}",
                test_name=TEST_NAME,
                clash_name=_resolve(row, "clash_name", roles, offset),
                item1=_resolve(row, "item1", roles, offset),
                item2=_resolve(row, "item2", roles, offset),
                distance=_resolve(row, "distance", roles, offset),
                layer1=_resolve(row, "layer1", roles, offset),
                layer2=_resolve(row, "layer2", roles, offset),
            )
        )

    if skipped:
        logger.warning(f"Skipped {skipped} malformed rows")
    logger.info(f"Parsed {len(clashes)} clashes from {len(lines) - 1} data lines")
    return clashes


def load_clash_file(path: str | Path) -> list[RawClash]:
    """Read and parse a UTF-8 clash export from disk."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Clash export does not exist: {path}")
    logger.info(f"Reading clash export {path}")
    return parse_clash_csv(path.read_text(encoding="utf-8-sig"))
