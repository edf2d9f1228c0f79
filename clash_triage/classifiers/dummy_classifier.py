"""
Dummy classifier implementation for testing and offline demos.

Classifies clashes with simple keyword and distance rules instead of a model.
"""

import re
from collections.abc import Sequence

from typing_extensions import override

from ..exceptions import ClassifierError, ValidationError
from ..interfaces import Classifier
from ..models import ClashSeverity, ClassificationResult, Discipline, RawClash

TOLERANCE_MM = 25.0

_MEP_WORDS = ("duct", "pipe", "cable", "tray", "sprinkler", "conduit", "mep", "hvac")
_STRUCT_WORDS = ("beam", "column", "slab", "footing", "brace", "struct")
_ARCH_WORDS = ("wall", "door", "window", "ceiling", "stair", "arch", "partition")
_FALSE_WORDS = ("sleeve", "penetration", "opening", "insulation")
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def _discipline_of(text: str) -> Discipline:
    text = text.lower()
    if any(word in text for word in _MEP_WORDS):
        return Discipline.MEP
    if any(word in text for word in _STRUCT_WORDS):
        return Discipline.STRUCT
    if any(word in text for word in _ARCH_WORDS):
        return Discipline.ARCH
    return Discipline.UNKNOWN


def _distance_mm(distance: str) -> float | None:
    """Read a Navisworks distance (metres unless suffixed mm) as millimetres."""
    match = _NUMBER.search(distance)
    if match is None:
        return None
    value = abs(float(match.group()))
    if "mm" in distance.lower():
        return value
    return value * 1000.0


class DummyClassifier(Classifier):
    """
    Dummy classifier for testing purposes.

    Modes:
        deterministic: rule-based classification
        fail: every call raises ClassifierError
        empty: every call returns no payload
    """

    def __init__(self, mode: str = "deterministic"):
        """
        Initialize dummy classifier.

        Args:
            mode: "deterministic", "fail" or "empty"
        """
        if mode not in ("deterministic", "fail", "empty"):
            raise ValidationError(f"Unknown mode: {mode}")
        self.mode = mode
        self.classifier_id = f"dummy_{mode}"
        self.calls = 0

    @override
    def classify_batch(self, clashes: Sequence[RawClash]) -> list[ClassificationResult] | None:
        if not clashes:
            raise ValidationError("Cannot classify empty batch")
        self.calls += 1

        if self.mode == "fail":
            raise ClassifierError(f"Dummy failure for {len(clashes)} clashes")
        if self.mode == "empty":
            return None
        return [self._classify(clash) for clash in clashes]

    def _classify(self, clash: RawClash) -> ClassificationResult:
        first = f"{clash.item1} {clash.layer1}"
        second = f"{clash.item2} {clash.layer2}"
        combined = f"{first} {second}".lower()
        disciplines = (_discipline_of(first), _discipline_of(second))
        distance = _distance_mm(clash.distance)

        if any(word in combined for word in _FALSE_WORDS):
            severity = ClashSeverity.FALSE_CLASH
            reasoning = "Intentional overlap or insulation"
        elif distance is not None and distance < TOLERANCE_MM:
            severity = ClashSeverity.TOLERANCE_ISSUE
            reasoning = f"Overlap of {distance:.0f}mm is under {TOLERANCE_MM:.0f}mm"
        elif Discipline.MEP in disciplines and Discipline.STRUCT in disciplines:
            severity = ClashSeverity.CRITICAL
            reasoning = "Services run through structure"
        else:
            severity = ClashSeverity.DESIGN_ISSUE
            reasoning = "Layout conflict between elements"

        # Services move before structure or architecture
        if Discipline.MEP in disciplines:
            responsibility = Discipline.MEP
        elif Discipline.ARCH in disciplines:
            responsibility = Discipline.ARCH
        elif Discipline.STRUCT in disciplines:
            responsibility = Discipline.STRUCT
        else:
            responsibility = Discipline.UNKNOWN

        return ClassificationResult(
            clash_id=clash.clash_id,
            severity=severity,
            responsibility=responsibility,
            description=f"{clash.item1} clashes with {clash.item2}",
            reasoning=reasoning,
        )
