"""
Clash export parsers.
"""

from .navisworks_csv import infer_column_roles, load_clash_file, parse_clash_csv, tokenize_row

__all__ = [
    "infer_column_roles",
    "load_clash_file",
    "parse_clash_csv",
    "tokenize_row",
]
