"""
Orchestrator for clash triage runs.

Feeds pending clashes from the dataset to a classifier in fixed-size batches,
one batch at a time, and merges results back by clash id.
"""

import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loguru import Logger

from .dataset import ClashDataset
from .interfaces import Classifier, TriageProgress
from .logging_config import get_logger
from .models import ClassificationResult, ClashStatus, EnrichedClash

DEFAULT_BATCH_SIZE = 10
DEFAULT_COOLDOWN_SECONDS = 0.5


@dataclass
class RunConfig:
    """Configuration for a triage run."""

    batch_size: int = DEFAULT_BATCH_SIZE  # clashes per classifier call
    cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS  # flat pause between batches

    def __post_init__(self):
        """Validate configuration."""
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.cooldown_seconds < 0:
            raise ValueError(f"cooldown_seconds must be non-negative, got {self.cooldown_seconds}")


@dataclass
class TriageSummary:
    """Outcome of a single run."""

    selected: int = 0
    dispatched: int = 0
    completed: int = 0
    failed: int = 0
    batches: int = 0
    cancelled: bool = False
    progress: int = 0


def _percent(processed: int, total: int) -> int:
    # Round half up
    return int(processed * 100 / total + 0.5) if total else 100


class TriageOrchestrator:
    """Sequential batch driver with progress reporting and cooperative cancel."""

    def __init__(
        self,
        dataset: ClashDataset,
        classifier: Classifier,
        config: RunConfig | None = None,
        on_progress: Callable[[TriageProgress], None] | None = None,
    ):
        """Initialize orchestrator with its dataset and classifier."""
        self.dataset: ClashDataset = dataset
        self.classifier: Classifier = classifier
        self.config: RunConfig = config or RunConfig()
        self.on_progress = on_progress

        self._cancel = threading.Event()
        self._run_lock = threading.Lock()
        self.progress: int = 0

        self.logger: Logger = get_logger("orchestrator")

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def cancel(self) -> None:
        """Stop before the next batch; the batch in flight is allowed to finish."""
        self.logger.info("Cancellation requested")
        self._cancel.set()

    def run(self) -> TriageSummary:
        """Classify every PENDING clash in the dataset."""
        if not self._run_lock.acquire(blocking=False):
            raise RuntimeError("Triage run already in progress")
        self._cancel.clear()
        try:
            return self._run()
        finally:
            self._run_lock.release()

    def _run(self) -> TriageSummary:
        generation = self.dataset.generation
        clashes = self.dataset.snapshot()
        pending_ids = [c.clash_id for c in clashes if c.status is ClashStatus.PENDING]
        total = len(clashes)
        baseline = total - len(pending_ids)

        size = self.config.batch_size
        batches = [pending_ids[i:i + size] for i in range(0, len(pending_ids), size)]
        summary = TriageSummary(selected=len(pending_ids), progress=_percent(baseline, total))
        if pending_ids:
            summary.progress = min(summary.progress, 99)
        self.progress = summary.progress

        self.logger.info(
            f"Starting triage: {len(pending_ids)} pending of {total} clashes in {len(batches)} batches (config: {self.config})"
        )
        if not batches:
            self.logger.info("No pending clashes; nothing to do")
            return summary

        for batch_number, batch_ids in enumerate(batches, 1):
            if self._cancel.is_set():
                self.logger.info(f"Triage cancelled before batch {batch_number}/{len(batches)}")
                summary.cancelled = True
                break
            if self.dataset.generation != generation:
                self.logger.warning("Dataset was replaced during triage; stopping run")
                summary.cancelled = True
                break

            completed, failed = self._process_batch(batch_ids, generation)
            summary.batches += 1
            summary.dispatched += len(batch_ids)
            summary.completed += completed
            summary.failed += failed

            percent = _percent(baseline + summary.dispatched, total)
            if batch_number < len(batches):
                percent = min(percent, 99)
            self.progress = summary.progress = max(self.progress, percent)
            self._emit_progress(baseline + summary.dispatched, total, batch_number, len(batches))

            self.logger.info(
                f"Batch {batch_number}/{len(batches)} done: {completed} completed, {failed} failed, progress {self.progress}%"
            )

            if batch_number < len(batches) and self.config.cooldown_seconds:
                # Returns early if cancel() is called during the pause
                self._cancel.wait(self.config.cooldown_seconds)

        self.logger.info(
            f"Triage finished: {summary.completed} completed, {summary.failed} failed, {summary.selected - summary.dispatched} left pending"
        )
        return summary

    def _process_batch(self, batch_ids: Sequence[str], generation: int) -> tuple[int, int]:
        """
        Dispatch one batch and merge its results by id.

        Returns:
            (completed, failed) counts for the batch
        """
        dispatched = list[EnrichedClash]()
        for clash_id in batch_ids:
            # Records moved on by someone else since selection are skipped
            if self.dataset.update(
                clash_id, EnrichedClash.mark_processing, generation=generation, expected=ClashStatus.PENDING
            ):
                clash = self.dataset.get(clash_id)
                if clash is not None:
                    dispatched.append(clash)
        if not dispatched:
            self.logger.warning(f"No clashes from batch {list(batch_ids)} are still pending")
            return 0, 0

        results: list[ClassificationResult] | None
        try:
            results = self.classifier.classify_batch([c.to_raw() for c in dispatched])
        except Exception as e:
            self.logger.error(f"Classification failed for batch {[c.clash_id for c in dispatched]}: {e}")
            results = None

        by_id = dict[str, ClassificationResult]()
        if results is None:
            self.logger.warning(f"No classification payload for {len(dispatched)} clashes; marking batch failed")
        else:
            # First result per id wins
            for result in results:
                by_id.setdefault(result.clash_id, result)

        completed = failed = 0
        for clash in dispatched:
            result = by_id.get(clash.clash_id)
            if result is not None:
                if self.dataset.update(
                    clash.clash_id,
                    lambda c, r=result: c.complete(r),
                    generation=generation,
                    expected=ClashStatus.PROCESSING,
                ):
                    completed += 1
            else:
                self.logger.debug(f"No result for {clash.clash_id}")
                if self.dataset.update(
                    clash.clash_id, EnrichedClash.fail, generation=generation, expected=ClashStatus.PROCESSING
                ):
                    failed += 1
        return completed, failed

    def _emit_progress(self, processed: int, total: int, batches_completed: int, batches_total: int) -> None:
        if self.on_progress is None:
            return
        self.on_progress(
            TriageProgress(
                percent=self.progress,
                processed=processed,
                total=total,
                batches_completed=batches_completed,
                batches_total=batches_total,
            )
        )
