"""
Tests for TriageOrchestrator.

Focus on batch sequencing, per-batch failure handling, progress and
cancellation.
"""

import threading
import time
from collections.abc import Callable, Sequence

import pytest
from typing_extensions import override

from clash_triage.exceptions import ClassifierError
from clash_triage.interfaces import Classifier, TriageProgress
from clash_triage.models import (
    ClashSeverity,
    ClashStatus,
    ClassificationResult,
    Discipline,
    EnrichedClash,
    RawClash,
)
from clash_triage.orchestrator import RunConfig, TriageOrchestrator, TriageSummary

FAST = RunConfig(batch_size=10, cooldown_seconds=0)


def _result(clash: RawClash) -> ClassificationResult:
    return ClassificationResult(
        clash_id=clash.clash_id,
        severity=ClashSeverity.CRITICAL,
        responsibility=Discipline.MEP,
        description=f"{clash.item1} hits {clash.item2}",
        reasoning="test",
    )


class ScriptedClassifier(Classifier):
    """Classifier whose per-call behavior is scripted by the test."""

    def __init__(self, behaviour: Callable[[int, Sequence[RawClash]], list[ClassificationResult] | None] | None = None):
        self.batches = list[list[str]]()
        self.behaviour = behaviour

    @override
    def classify_batch(self, clashes: Sequence[RawClash]) -> list[ClassificationResult] | None:
        self.batches.append([c.clash_id for c in clashes])
        if self.behaviour is None:
            return [_result(c) for c in clashes]
        return self.behaviour(len(self.batches), clashes)


def _statuses(dataset) -> list[ClashStatus]:
    return [c.status for c in dataset]


class TestRunConfig:

    @pytest.mark.parametrize("kwargs", [{"batch_size": 0}, {"cooldown_seconds": -1}])
    def test_invalid_config_rejected(self, kwargs) -> None:
        with pytest.raises(ValueError):
            RunConfig(**kwargs)

    def test_defaults(self) -> None:
        config = RunConfig()

        assert config.batch_size == 10
        assert config.cooldown_seconds == 0.5


class TestTriageOrchestrator:
    """Test TriageOrchestrator behavior through its public interface."""

    def test_classifies_all_pending_in_fixed_batches(self, make_dataset) -> None:
        # Arrange
        dataset = make_dataset(25)
        classifier = ScriptedClassifier()
        orchestrator = TriageOrchestrator(dataset, classifier, FAST)

        # Act
        summary = orchestrator.run()

        # Assert
        assert [len(b) for b in classifier.batches] == [10, 10, 5]
        assert classifier.batches[0][0] == "clash-1"
        assert classifier.batches[2][-1] == "clash-25"
        assert all(s is ClashStatus.COMPLETED for s in _statuses(dataset))
        assert summary.completed == 25
        assert summary.failed == 0
        assert summary.batches == 3
        assert not summary.cancelled
        assert orchestrator.progress == 100

        clash = dataset.get("clash-3")
        assert clash is not None
        assert clash.ai_severity is ClashSeverity.CRITICAL
        assert clash.ai_description == "Duct 3 hits Beam 3"

    def test_batch_members_processing_during_call(self, make_dataset) -> None:
        """While the client runs, its batch is PROCESSING and later batches PENDING."""
        # Arrange
        dataset = make_dataset(4)
        seen = list[list[ClashStatus]]()

        def observe(call: int, clashes: Sequence[RawClash]) -> list[ClassificationResult]:
            seen.append(_statuses(dataset))
            return [_result(c) for c in clashes]

        orchestrator = TriageOrchestrator(dataset, ScriptedClassifier(observe), RunConfig(batch_size=2, cooldown_seconds=0))

        # Act
        _ = orchestrator.run()

        # Assert
        P, R, C = ClashStatus.PENDING, ClashStatus.PROCESSING, ClashStatus.COMPLETED
        assert seen == [[R, R, P, P], [C, C, R, R]]

    def test_client_failure_fails_whole_batch(self, make_dataset) -> None:
        """A raising client fails every clash in its batch and the run continues."""
        # Arrange
        dataset = make_dataset(20)

        def fail_first(call: int, clashes: Sequence[RawClash]) -> list[ClassificationResult]:
            if call == 1:
                raise ClassifierError("model unavailable")
            return [_result(c) for c in clashes]

        orchestrator = TriageOrchestrator(dataset, ScriptedClassifier(fail_first), FAST)

        # Act
        summary = orchestrator.run()

        # Assert
        statuses = _statuses(dataset)
        assert statuses[:10] == [ClashStatus.FAILED] * 10
        assert statuses[10:] == [ClashStatus.COMPLETED] * 10
        assert summary.failed == 10
        assert summary.completed == 10

    def test_unexpected_exception_is_absorbed(self, make_dataset) -> None:
        dataset = make_dataset(3)

        def explode(call: int, clashes: Sequence[RawClash]) -> list[ClassificationResult]:
            raise RuntimeError("connection reset")

        summary = TriageOrchestrator(dataset, ScriptedClassifier(explode), FAST).run()

        assert summary.failed == 3
        assert _statuses(dataset) == [ClashStatus.FAILED] * 3

    def test_no_payload_fails_whole_batch(self, make_dataset) -> None:
        dataset = make_dataset(10)

        summary = TriageOrchestrator(dataset, ScriptedClassifier(lambda call, clashes: None), FAST).run()

        assert summary.failed == 10
        assert ClashStatus.COMPLETED not in _statuses(dataset)

    def test_missing_result_fails_only_that_clash(self, make_dataset) -> None:
        """Results are matched by id; omitted ids fail, unknown ids are ignored."""
        # Arrange
        dataset = make_dataset(3)

        def partial(call: int, clashes: Sequence[RawClash]) -> list[ClassificationResult]:
            results = [_result(c) for c in clashes if c.clash_id != "clash-2"]
            results.reverse()
            results.append(_result(RawClash("clash-99", "t", "n", "a", "b", "0", "l1", "l2")))
            return results

        # Act
        summary = TriageOrchestrator(dataset, ScriptedClassifier(partial), FAST).run()

        # Assert
        assert _statuses(dataset) == [ClashStatus.COMPLETED, ClashStatus.FAILED, ClashStatus.COMPLETED]
        assert summary.completed == 2
        assert summary.failed == 1
        assert dataset.get("clash-99") is None

    def test_rerun_without_pending_is_noop(self, make_dataset) -> None:
        """Completed and failed clashes are never re-dispatched."""
        # Arrange
        dataset = make_dataset(5)
        _ = TriageOrchestrator(dataset, ScriptedClassifier(lambda call, clashes: None), FAST).run()
        before = _statuses(dataset)
        classifier = ScriptedClassifier()

        # Act
        summary = TriageOrchestrator(dataset, classifier, FAST).run()

        # Assert
        assert classifier.batches == []
        assert _statuses(dataset) == before
        assert summary.selected == 0
        assert summary.progress == 100

    def test_progress_is_monotonic_and_ends_at_100(self, make_dataset) -> None:
        # Arrange
        dataset = make_dataset(7)
        updates = list[TriageProgress]()
        orchestrator = TriageOrchestrator(
            dataset, ScriptedClassifier(), RunConfig(batch_size=2, cooldown_seconds=0), on_progress=updates.append
        )

        # Act
        _ = orchestrator.run()

        # Assert
        percents = [u["percent"] for u in updates]
        assert percents == sorted(percents)
        assert percents[-1] == 100
        assert all(p < 100 for p in percents[:-1])
        assert [u["processed"] for u in updates] == [2, 4, 6, 7]
        assert updates[-1]["batches_total"] == 4

    def test_progress_counts_already_processed_baseline(self, make_dataset) -> None:
        """Clashes already out of PENDING count toward progress but are not re-sent."""
        # Arrange
        dataset = make_dataset(4)
        for clash_id in ("clash-1", "clash-2"):
            dataset.update(clash_id, EnrichedClash.mark_processing)
            dataset.update(clash_id, EnrichedClash.fail)
        updates = list[TriageProgress]()
        classifier = ScriptedClassifier()
        orchestrator = TriageOrchestrator(
            dataset, classifier, RunConfig(batch_size=1, cooldown_seconds=0), on_progress=updates.append
        )

        # Act
        _ = orchestrator.run()

        # Assert
        assert classifier.batches == [["clash-3"], ["clash-4"]]
        assert [u["percent"] for u in updates] == [75, 100]

    def test_cancel_stops_before_next_batch(self, make_dataset) -> None:
        """Cancellation keeps finished batches and leaves the rest PENDING."""
        # Arrange
        dataset = make_dataset(30)
        orchestrator: TriageOrchestrator

        def cancel_during_first(call: int, clashes: Sequence[RawClash]) -> list[ClassificationResult]:
            if call == 1:
                orchestrator.cancel()
            return [_result(c) for c in clashes]

        classifier = ScriptedClassifier(cancel_during_first)
        orchestrator = TriageOrchestrator(dataset, classifier, FAST)

        # Act
        summary = orchestrator.run()

        # Assert
        statuses = _statuses(dataset)
        assert summary.cancelled
        assert len(classifier.batches) == 1
        assert statuses[:10] == [ClashStatus.COMPLETED] * 10
        assert statuses[10:] == [ClashStatus.PENDING] * 20
        assert not orchestrator.is_running

        # A later run picks up where the cancelled one stopped
        summary = orchestrator.run()
        assert summary.completed == 20
        assert all(s is ClashStatus.COMPLETED for s in _statuses(dataset))

    def test_replaced_dataset_is_left_untouched(self, make_dataset) -> None:
        """Results for a dataset that was reloaded mid-call are discarded."""
        # Arrange
        dataset = make_dataset(20)

        def reload_mid_call(call: int, clashes: Sequence[RawClash]) -> list[ClassificationResult]:
            dataset.load_text("clash name,distance\nA,1\nB,2")
            return [_result(c) for c in clashes]

        classifier = ScriptedClassifier(reload_mid_call)

        # Act
        summary = TriageOrchestrator(dataset, classifier, FAST).run()

        # Assert
        assert len(classifier.batches) == 1
        assert summary.cancelled
        assert summary.completed == 0
        assert _statuses(dataset) == [ClashStatus.PENDING, ClashStatus.PENDING]

    def test_empty_dataset(self) -> None:
        from clash_triage.dataset import ClashDataset

        classifier = ScriptedClassifier()
        summary = TriageOrchestrator(ClashDataset(), classifier, FAST).run()

        assert classifier.batches == []
        assert summary.selected == 0

    def test_records_claimed_by_another_run_are_skipped(self, make_dataset) -> None:
        """A second run on the same dataset never causes an illegal transition in the first."""
        # Arrange
        dataset = make_dataset(30)
        inner_classifier = ScriptedClassifier()
        inner_summaries = list[TriageSummary]()

        def start_second_run(call: int, clashes: Sequence[RawClash]) -> list[ClassificationResult]:
            if call == 1:
                inner_summaries.append(TriageOrchestrator(dataset, inner_classifier, FAST).run())
            return [_result(c) for c in clashes]

        outer_classifier = ScriptedClassifier(start_second_run)

        # Act
        summary = TriageOrchestrator(dataset, outer_classifier, FAST).run()

        # Assert
        assert len(outer_classifier.batches) == 1
        assert summary.completed == 10
        assert inner_summaries[0].completed == 20
        assert inner_classifier.batches[0][0] == "clash-11"
        assert all(s is ClashStatus.COMPLETED for s in _statuses(dataset))

    def test_concurrent_run_rejected(self, make_dataset) -> None:
        # Arrange
        dataset = make_dataset(2)
        orchestrator: TriageOrchestrator
        rejected = list[bool]()

        def rerun(call: int, clashes: Sequence[RawClash]) -> list[ClassificationResult]:
            assert orchestrator.is_running
            with pytest.raises(RuntimeError):
                orchestrator.run()
            rejected.append(True)
            return [_result(c) for c in clashes]

        orchestrator = TriageOrchestrator(dataset, ScriptedClassifier(rerun), FAST)

        # Act
        summary = orchestrator.run()

        # Assert
        assert rejected == [True]
        assert summary.completed == 2
        assert not orchestrator.is_running


class TestCooldown:
    """The pause between batches."""

    def _record_waits(self, orchestrator: TriageOrchestrator, monkeypatch) -> list[float | None]:
        waits = list[float | None]()
        real_wait = orchestrator._cancel.wait

        def recording_wait(timeout: float | None = None) -> bool:
            waits.append(timeout)
            return real_wait(0)

        monkeypatch.setattr(orchestrator._cancel, "wait", recording_wait)
        return waits

    def test_pause_only_between_batches(self, make_dataset, monkeypatch) -> None:
        # Arrange
        orchestrator = TriageOrchestrator(
            make_dataset(3), ScriptedClassifier(), RunConfig(batch_size=1, cooldown_seconds=0.2)
        )
        waits = self._record_waits(orchestrator, monkeypatch)

        # Act
        summary = orchestrator.run()

        # Assert
        assert summary.batches == 3
        assert waits == [0.2, 0.2]

    def test_no_pause_after_last_batch(self, make_dataset, monkeypatch) -> None:
        orchestrator = TriageOrchestrator(
            make_dataset(3), ScriptedClassifier(), RunConfig(batch_size=10, cooldown_seconds=30)
        )
        waits = self._record_waits(orchestrator, monkeypatch)

        start = time.monotonic()
        _ = orchestrator.run()

        assert waits == []
        assert time.monotonic() - start < 5

    def test_cancel_cuts_pause_short(self, make_dataset) -> None:
        """cancel() from another thread wakes a run sleeping between batches."""
        # Arrange
        dataset = make_dataset(20)
        orchestrator: TriageOrchestrator

        def cancel_soon(call: int, clashes: Sequence[RawClash]) -> list[ClassificationResult]:
            threading.Timer(0.1, orchestrator.cancel).start()
            return [_result(c) for c in clashes]

        classifier = ScriptedClassifier(cancel_soon)
        orchestrator = TriageOrchestrator(dataset, classifier, RunConfig(batch_size=10, cooldown_seconds=30))

        # Act
        start = time.monotonic()
        summary = orchestrator.run()
        elapsed = time.monotonic() - start

        # Assert
        assert summary.cancelled
        assert len(classifier.batches) == 1
        assert elapsed < 10
        assert _statuses(dataset)[10:] == [ClashStatus.PENDING] * 10
