"""
Abstract base classes defining the interfaces for the clash triage system.

All interfaces are synchronous to avoid asyncio complexity in core interfaces.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import TypedDict

from .models import ClassificationResult, RawClash


class TriageProgress(TypedDict):
    """Progress snapshot emitted after every batch."""
    percent: int
    processed: int  # baseline non-pending + dispatched this run
    total: int
    batches_completed: int
    batches_total: int


class Classifier(ABC):
    """Interface for classifying batches of clashes."""

    @abstractmethod
    def classify_batch(self, clashes: Sequence[RawClash]) -> list[ClassificationResult] | None:
        """
        Synchronous classification of one batch of clashes.

        May block. The orchestrator calls it once per batch and never
        concurrently.

        Args:
            clashes: Clashes to classify, in dataset order

        Returns:
            Results for some or all of the submitted ids, or None when the
            client produced no payload. A submitted id without a result is a
            failure for that clash only.

        Raises:
            ClassifierError: If the call failed as a whole
        """
        pass
