"""Remote classifier adapters."""

from .classifier import LLMClassifier
from .protocol import ClassifierProtocol, SingleClassification

__all__ = ["ClassifierProtocol", "LLMClassifier", "SingleClassification"]
