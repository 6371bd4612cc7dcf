"""Template-matching digit classifier for rectified, inverted crops."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import cv2
import numpy as np

from ..errors import EmptyResult
from ..image_utils import ensure_gray
from ..types import ClassificationResult, RectifiedImage
from .base import Classifier

_CANVAS_SIZE = 96
_BASELINE = 72


class TemplateDigitClassifier(Classifier):
    """A tiny classifier that compares strokes against rendered digit glyphs.

    It needs no model artifact, which makes it the fallback when no trained
    model is configured. It works best for bold, upright digits; handwriting
    that strays far from the Hershey fonts is better served by a trained model.
    """

    def __init__(
        self,
        labels: Sequence[str] | str = "0123456789",
        template_size: int = 28,
        border_fraction: float = 0.08,
        temperature: float = 0.05,
        min_component_ratio: float = 0.05,
    ) -> None:
        self.labels = list(dict.fromkeys(labels))
        self.template_size = template_size
        self.border_fraction = border_fraction
        self.temperature = temperature
        self.min_component_ratio = min_component_ratio
        self._templates = self._build_templates()

    def classify(self, image: RectifiedImage) -> ClassificationResult:
        prepared = self.prepare(image.pixels)
        if prepared is None:
            raise EmptyResult("no strokes found in rectified image")

        vector = (prepared / 255.0).astype(np.float32)
        similarities = np.array(
            [
                max(
                    (self._cosine_similarity(vector, template) for template in self._templates.get(label, [])),
                    default=0.0,
                )
                for label in self.labels
            ],
            dtype=np.float64,
        )
        logits = similarities / max(self.temperature, 1e-6)
        logits -= logits.max()
        probabilities = np.exp(logits)
        probabilities /= probabilities.sum()
        return self._rank({label: float(p) for label, p in zip(self.labels, probabilities)})

    def prepare(self, image: np.ndarray) -> Optional[np.ndarray]:
        """Reduce a rectified crop to a centred ``template_size`` square glyph."""

        gray = ensure_gray(image).copy()
        h, w = gray.shape[:2]
        band_y = int(round(h * self.border_fraction))
        band_x = int(round(w * self.border_fraction))
        if band_y:
            gray[:band_y] = 0
            gray[h - band_y :] = 0
        if band_x:
            gray[:, :band_x] = 0
            gray[:, w - band_x :] = 0

        if np.count_nonzero(gray) == 0:
            return None
        blurred = cv2.GaussianBlur(gray, (3, 3), 0)
        _, binary = cv2.threshold(blurred, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        white_ratio = float(cv2.countNonZero(binary)) / float(binary.size)
        if white_ratio > 0.5:
            binary = cv2.bitwise_not(binary)

        strokes = self._drop_specks(binary)
        cropped = self._crop_to_content(strokes)
        if cropped is None:
            return None
        return self._resize_with_padding(cropped, self.template_size)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _drop_specks(self, binary: np.ndarray) -> np.ndarray:
        count, labels, stats, _ = cv2.connectedComponentsWithStats(binary, connectivity=8)
        if count <= 1:
            return binary
        areas = stats[1:, cv2.CC_STAT_AREA]
        keep_threshold = max(1.0, float(areas.max()) * self.min_component_ratio)
        kept = [idx + 1 for idx, area in enumerate(areas) if area >= keep_threshold]
        return np.where(np.isin(labels, kept), 255, 0).astype(np.uint8)

    def _build_templates(self) -> Dict[str, List[np.ndarray]]:
        fonts = [
            (cv2.FONT_HERSHEY_SIMPLEX, 2.0, 4),
            (cv2.FONT_HERSHEY_SIMPLEX, 2.0, 8),
            (cv2.FONT_HERSHEY_DUPLEX, 1.8, 5),
            (cv2.FONT_HERSHEY_PLAIN, 4.0, 5),
        ]
        templates: Dict[str, List[np.ndarray]] = {}

        for label in self.labels:
            variants: List[np.ndarray] = []
            for font_face, scale, thickness in fonts:
                canvas = np.zeros((_CANVAS_SIZE, _CANVAS_SIZE), dtype=np.uint8)
                cv2.putText(
                    canvas,
                    label,
                    (8, _BASELINE),
                    font_face,
                    scale,
                    255,
                    thickness,
                    lineType=cv2.LINE_AA,
                )
                cropped = self._crop_to_content(canvas)
                if cropped is None:
                    continue
                prepared = self._resize_with_padding(cropped, self.template_size)
                variants.append((prepared / 255.0).astype(np.float32))
            if variants:
                templates[label] = variants
        return templates

    @staticmethod
    def _resize_with_padding(image: np.ndarray, target_size: int) -> np.ndarray:
        h, w = image.shape[:2]
        if h == 0 or w == 0:
            return np.zeros((target_size, target_size), dtype=np.uint8)
        scale = min((target_size - 4) / h, (target_size - 4) / w)
        scale = max(scale, 0.1)
        new_w = max(1, int(round(w * scale)))
        new_h = max(1, int(round(h * scale)))
        resized = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_AREA)
        canvas = np.zeros((target_size, target_size), dtype=np.uint8)
        y_offset = (target_size - new_h) // 2
        x_offset = (target_size - new_w) // 2
        canvas[y_offset : y_offset + new_h, x_offset : x_offset + new_w] = resized
        return canvas

    @staticmethod
    def _crop_to_content(image: np.ndarray) -> Optional[np.ndarray]:
        if np.count_nonzero(image) == 0:
            return None
        coords = cv2.findNonZero(image)
        if coords is None:
            return None
        x, y, w, h = cv2.boundingRect(coords)
        return image[y : y + h, x : x + w]

    @staticmethod
    def _cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
        a_vec = a.flatten()
        b_vec = b.flatten()
        denom = float(np.linalg.norm(a_vec) * np.linalg.norm(b_vec))
        if denom == 0.0:
            return 0.0
        return float(np.dot(a_vec, b_vec) / denom)
