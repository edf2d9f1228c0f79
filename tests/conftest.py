"""
Shared fixtures for clash triage tests.
"""

from pathlib import Path

import pytest
from loguru import logger

from clash_triage.dataset import ClashDataset

FIXTURES_DIR = Path(__file__).parent / "fixtures"

HEADER = "clash name,distance,item 1 name,item 1 layer,item 2 name,item 2 layer"


def make_csv(count: int) -> str:
    """Build a clash export with `count` well-formed data rows."""
    rows = [HEADER]
    for i in range(1, count + 1):
        rows.append(f"Clash {i},0.{i:03d},Duct {i},M-Duct,Beam {i},S-Beam")
    return "\n".join(rows)


@pytest.fixture
def export_path() -> Path:
    return FIXTURES_DIR / "navisworks_export.csv"


@pytest.fixture
def make_dataset():
    """Factory for datasets loaded with `count` pending clashes."""
    def _make(count: int) -> ClashDataset:
        dataset = ClashDataset()
        dataset.load_text(make_csv(count))
        return dataset
    return _make


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop sinks added by setup_logging() so they never outlive a test's tmp dir or capture."""
    yield
    logger.remove()
