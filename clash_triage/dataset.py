"""
In-memory clash dataset.

Holds the single loaded clash list for a session. All mutation goes through
the dataset lock so the orchestrator and user actions (load/clear) never
interleave mid-update.
"""

import copy
import threading
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path

from .logging_config import get_logger
from .models import ClashSeverity, ClashStatus, Discipline, EnrichedClash
from .parsers.navisworks_csv import load_clash_file, parse_clash_csv


@dataclass
class TriageStats:
    """Dashboard summary of a dataset."""

    total: int
    by_severity: dict[ClashSeverity, int]
    by_responsibility: dict[Discipline, int]
    by_status: dict[ClashStatus, int]

    @property
    def critical_count(self) -> int:
        return self.by_severity[ClashSeverity.CRITICAL]

    @property
    def critical_percent(self) -> int:
        if self.total == 0:
            return 0
        return int(self.critical_count * 100 / self.total + 0.5)


class ClashDataset:
    """Ordered, thread-safe collection of EnrichedClash for one loaded file."""

    def __init__(self, clashes: Iterable[EnrichedClash] = ()):
        self._lock = threading.RLock()
        self._clashes: list[EnrichedClash] = list(clashes)
        self._index: dict[str, EnrichedClash] = {c.clash_id: c for c in self._clashes}
        if len(self._index) != len(self._clashes):
            raise ValueError("Duplicate clash ids in dataset")
        # Bumped on every load/clear so stale runs can detect replacement
        self.generation: int = 0
        self.logger = get_logger("dataset")

    def _replace(self, clashes: list[EnrichedClash]) -> None:
        with self._lock:
            self._clashes = clashes
            self._index = {c.clash_id: c for c in clashes}
            self.generation += 1

    def load_text(self, text: str) -> int:
        """Replace the dataset with clashes parsed from CSV text."""
        clashes = [EnrichedClash.from_raw(raw) for raw in parse_clash_csv(text)]
        self._replace(clashes)
        self.logger.info(f"Loaded {len(clashes)} clashes (generation {self.generation})")
        return len(clashes)

    def load_file(self, path: str | Path) -> int:
        """Replace the dataset with clashes parsed from a CSV file."""
        clashes = [EnrichedClash.from_raw(raw) for raw in load_clash_file(path)]
        self._replace(clashes)
        self.logger.info(f"Loaded {len(clashes)} clashes from {path} (generation {self.generation})")
        return len(clashes)

    def clear(self) -> None:
        self._replace([])
        self.logger.info("Dataset cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._clashes)

    def __iter__(self) -> Iterator[EnrichedClash]:
        return iter(self.snapshot())

    def snapshot(self) -> list[EnrichedClash]:
        """Return copies of all clashes, in order."""
        with self._lock:
            return copy.deepcopy(self._clashes)

    def get(self, clash_id: str) -> EnrichedClash | None:
        """Return a copy of one clash, or None if the id is unknown."""
        with self._lock:
            clash = self._index.get(clash_id)
            return copy.deepcopy(clash) if clash is not None else None

    def pending(self) -> list[EnrichedClash]:
        return [c for c in self.snapshot() if c.status is ClashStatus.PENDING]

    def update(
        self,
        clash_id: str,
        fn: Callable[[EnrichedClash], None],
        generation: int | None = None,
        expected: ClashStatus | None = None,
    ) -> bool:
        """
        Apply a mutation to one clash under the dataset lock.

        Args:
            clash_id: Id of the clash to mutate
            fn: Mutation applied to the live record
            generation: If given, only apply while the dataset is still at
                this generation
            expected: If given, only apply while the clash is in this status

        Returns:
            True if the mutation was applied
        """
        with self._lock:
            if generation is not None and generation != self.generation:
                return False
            clash = self._index.get(clash_id)
            if clash is None:
                return False
            if expected is not None and clash.status is not expected:
                return False
            fn(clash)
            return True

    def stats(self) -> TriageStats:
        """Count clashes per severity, discipline and status."""
        clashes = self.snapshot()
        by_severity = {severity: 0 for severity in ClashSeverity}
        by_responsibility = {discipline: 0 for discipline in Discipline}
        by_status = {status: 0 for status in ClashStatus}
        for clash in clashes:
            by_severity[clash.ai_severity] += 1
            by_responsibility[clash.ai_responsibility] += 1
            by_status[clash.status] += 1
        return TriageStats(
            total=len(clashes),
            by_severity=by_severity,
            by_responsibility=by_responsibility,
            by_status=by_status,
        )

    def filter_by_severity(self, severity: ClashSeverity | None) -> list[EnrichedClash]:
        """Return clashes with the given severity; None means all."""
        clashes = self.snapshot()
        if severity is None:
            return clashes
        return [c for c in clashes if c.ai_severity is severity]
