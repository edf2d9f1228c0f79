"""
Classifier implementations.
"""

from .dummy_classifier import DummyClassifier
from .gemini_classifier import GeminiClassifier

__all__ = [
    "DummyClassifier",
    "GeminiClassifier",
]
