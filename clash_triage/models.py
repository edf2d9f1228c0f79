"""
Core dataclasses for the clash triage system.

Defines the clash records, their triage enums and classification results.
"""

from dataclasses import dataclass, fields
from enum import Enum
from typing import TypedDict

from .exceptions import ValidationError


class ClashStatus(str, Enum):
    """Triage lifecycle of a single clash."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ClashSeverity(str, Enum):
    CRITICAL = "Critical"
    DESIGN_ISSUE = "Design Issue"
    TOLERANCE_ISSUE = "Tolerance Issue"
    FALSE_CLASH = "False Clash"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> "ClashSeverity":
        """Map a model-supplied label to a severity, falling back to UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class Discipline(str, Enum):
    ARCH = "Architecture"
    STRUCT = "Structure"
    MEP = "MEP"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> "Discipline":
        """Map a model-supplied label to a discipline, falling back to UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


# PENDING -> PROCESSING -> COMPLETED | FAILED; nothing leaves a terminal state
_ALLOWED_TRANSITIONS: dict[ClashStatus, frozenset[ClashStatus]] = {
    ClashStatus.PENDING: frozenset({ClashStatus.PROCESSING}),
    ClashStatus.PROCESSING: frozenset({ClashStatus.COMPLETED, ClashStatus.FAILED}),
    ClashStatus.COMPLETED: frozenset(),
    ClashStatus.FAILED: frozenset(),
}


class ClashPayload(TypedDict):
    """Fields sent to the classification client for one clash."""

    id: str
    item1: str
    item2: str
    distance: str
    layer1: str
    layer2: str


@dataclass(frozen=True)
class RawClash:
    """One parsed row of a clash export."""

    clash_id: str
    test_name: str
    clash_name: str
    item1: str
    item2: str
    distance: str
    layer1: str
    layer2: str

    def __post_init__(self) -> None:
        """Validate clash data."""
        if not self.clash_id:
            raise ValidationError("clash_id cannot be empty")

    def to_payload(self) -> ClashPayload:
        """Return the subset of fields the classifier sees."""
        return ClashPayload(
            id=self.clash_id,
            item1=self.item1,
            item2=self.item2,
            distance=self.distance,
            layer1=self.layer1,
            layer2=self.layer2,
        )


@dataclass(frozen=True)
class ClassificationResult:
    """Classification returned for a single clash id."""

    clash_id: str
    severity: ClashSeverity
    responsibility: Discipline
    description: str
    reasoning: str | None = None

    def __post_init__(self) -> None:
        """Validate classification result data."""
        if not self.clash_id:
            raise ValidationError("clash_id cannot be empty")


@dataclass
class EnrichedClash:
    """A clash together with its mutable triage state."""

    clash_id: str
    test_name: str
    clash_name: str
    item1: str
    item2: str
    distance: str
    layer1: str
    layer2: str
    status: ClashStatus = ClashStatus.PENDING
    ai_severity: ClashSeverity = ClashSeverity.UNKNOWN
    ai_responsibility: Discipline = Discipline.UNKNOWN
    ai_description: str = ""
    ai_reasoning: str | None = None

    @classmethod
    def from_raw(cls, raw: RawClash) -> "EnrichedClash":
        """Create a PENDING clash from a parsed row."""
        return cls(**{f.name: getattr(raw, f.name) for f in fields(RawClash)})

    def to_raw(self) -> RawClash:
        """Drop the triage fields."""
        return RawClash(**{f.name: getattr(self, f.name) for f in fields(RawClash)})

    def _transition(self, new_status: ClashStatus) -> None:
        if new_status not in _ALLOWED_TRANSITIONS[self.status]:
            raise ValidationError(
                f"Illegal status transition for {self.clash_id}: {self.status.value} -> {new_status.value}"
            )
        self.status = new_status

    def mark_processing(self) -> None:
        self._transition(ClashStatus.PROCESSING)

    def complete(self, result: ClassificationResult) -> None:
        """Copy a classification onto this clash and mark it COMPLETED."""
        if result.clash_id != self.clash_id:
            raise ValidationError(
                f"Result for {result.clash_id} applied to {self.clash_id}"
            )
        self._transition(ClashStatus.COMPLETED)
        self.ai_severity = result.severity
        self.ai_responsibility = result.responsibility
        self.ai_description = result.description
        self.ai_reasoning = result.reasoning

    def fail(self) -> None:
        self._transition(ClashStatus.FAILED)
