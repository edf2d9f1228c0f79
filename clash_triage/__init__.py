"""
Clash Triage - AI-assisted Navisworks clash triage

Imports clash-detection CSV exports, classifies clashes in batches with a
generative model (severity, responsible discipline, description), and
re-exports an annotated CSV.
"""

from .models import ClashSeverity, ClashStatus, ClassificationResult, Discipline, EnrichedClash, RawClash
from .interfaces import Classifier
from .dataset import ClashDataset, TriageStats
from .orchestrator import RunConfig, TriageOrchestrator, TriageSummary

__version__ = "0.1.0"
__all__ = [
    "ClashSeverity",
    "ClashStatus",
    "ClassificationResult",
    "Discipline",
    "EnrichedClash",
    "RawClash",
    "Classifier",
    "ClashDataset",
    "TriageStats",
    "RunConfig",
    "TriageOrchestrator",
    "TriageSummary",
]
