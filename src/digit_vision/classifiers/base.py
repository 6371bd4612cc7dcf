"""Base classifier definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Mapping

from ..errors import EmptyResult
from ..types import Classification, ClassificationResult, RectifiedImage


class Classifier(ABC):
    """Abstract base class for a digit classifier."""

    @abstractmethod
    def classify(self, image: RectifiedImage) -> ClassificationResult:
        """Return labels ranked by descending confidence."""

    @staticmethod
    def _rank(scores: Mapping[str, float]) -> ClassificationResult:
        if not scores:
            raise EmptyResult("classifier produced no candidate labels")
        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
        return ClassificationResult(
            tuple(
                Classification(label=str(label), confidence=float(max(0.0, min(1.0, score))))
                for label, score in ranked
            )
        )
