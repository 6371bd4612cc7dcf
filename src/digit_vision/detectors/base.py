"""Base detector definitions."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from ..types import Image, Quadrilateral


class RectangleDetector(ABC):
    """Abstract base class for a rectangle detector."""

    @abstractmethod
    def detect_candidates(self, image: Image) -> List[Quadrilateral]:
        """Return every candidate quadrilateral in the detector's own order."""

    def detect(self, image: Image) -> Optional[Quadrilateral]:
        """Return the first candidate, or ``None`` when nothing was found.

        Candidates are not re-ranked here; whatever order the detector
        reports is the order that wins.
        """

        candidates = self.detect_candidates(image)
        if not candidates:
            return None
        return candidates[0]
