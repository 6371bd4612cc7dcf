"""Digit classification backed by a pre-trained ultralytics model."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from ..errors import EmptyResult, ModelLoadFailure
from ..image_utils import ensure_color
from ..types import ClassificationResult, RectifiedImage
from .base import Classifier

logger = logging.getLogger(__name__)

try:
    from ultralytics import YOLO
    YOLO_AVAILABLE = True
except ImportError:
    YOLO_AVAILABLE = False


class YOLODigitClassifier(Classifier):
    """Classifier that runs an ultralytics classification checkpoint."""

    def __init__(
        self,
        model_path: Union[str, Path],
        input_size: int = 28,
        device: str = "cpu",
    ) -> None:
        """
        Load the classification model.

        Args:
            model_path: Path to a classification checkpoint (e.g. ``mnist-cls.pt``)
            input_size: Square resolution the model was trained on
            device: Device to run inference on ('cpu' or 'cuda')

        Raises:
            ModelLoadFailure: if ultralytics is missing or the model cannot be loaded
        """
        if not YOLO_AVAILABLE:
            raise ModelLoadFailure(
                "ultralytics is not installed. Install it with: pip install ultralytics"
            )

        path = Path(model_path)
        if not path.exists():
            raise ModelLoadFailure(f"Model file not found: {path}")

        try:
            self.model = YOLO(str(path), task="classify")
        except Exception as exc:
            raise ModelLoadFailure(f"Unable to load model {path}: {exc}") from exc

        self.model_path = path
        self.input_size = input_size
        self.device = device
        logger.info("Loaded classification model %s on %s", path, device)

    def classify(self, image: RectifiedImage) -> ClassificationResult:
        """
        Run the model on a rectified crop.

        Args:
            image: Inverted grayscale crop produced by the rectifier

        Returns:
            Every label the model knows, ranked by probability
        """
        resized = cv2.resize(
            image.pixels,
            (self.input_size, self.input_size),
            interpolation=cv2.INTER_AREA,
        )
        results = self.model(
            ensure_color(resized),
            imgsz=self.input_size,
            device=self.device,
            verbose=False,
        )

        if not results:
            raise EmptyResult("model returned no results")

        result = results[0]
        if result.probs is None:
            raise EmptyResult("model returned no class probabilities")

        probabilities = np.asarray(result.probs.data.cpu().numpy(), dtype=np.float32).ravel()
        names = result.names
        # str() keeps the shortest float32 repr, so 0.97 is reported as 0.97
        scores = {
            str(names.get(idx, idx)) if isinstance(names, dict) else str(names[idx]): float(str(p))
            for idx, p in enumerate(probabilities)
        }
        return self._rank(scores)
