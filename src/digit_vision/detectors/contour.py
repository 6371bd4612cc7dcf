"""Rectangle detection via edge contours and polygon approximation."""

from __future__ import annotations

from typing import List, Tuple

import cv2
import numpy as np

from ..image_utils import ensure_gray
from ..types import Image, Quadrilateral
from .base import RectangleDetector


class ContourRectangleDetector(RectangleDetector):
    """Detect convex four-sided outlines such as a sheet of paper."""

    def __init__(
        self,
        min_area_ratio: float = 0.05,
        approx_epsilon: float = 0.02,
        max_candidates: int = 8,
        canny_low: int = 50,
        canny_high: int = 150,
    ) -> None:
        self.min_area_ratio = min_area_ratio
        self.approx_epsilon = approx_epsilon
        self.max_candidates = max_candidates
        self.canny_low = canny_low
        self.canny_high = canny_high

    def detect_candidates(self, image: Image) -> List[Quadrilateral]:
        gray = ensure_gray(image.pixels)
        gray = cv2.GaussianBlur(gray, (5, 5), 0)
        edges = cv2.Canny(gray, self.canny_low, self.canny_high)
        edges = cv2.dilate(edges, np.ones((3, 3), np.uint8), iterations=1)

        contours, _ = cv2.findContours(edges, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        if not contours:
            return []

        h, w = gray.shape[:2]
        image_area = float(h * w)
        found: List[Tuple[float, np.ndarray]] = []

        for contour in contours:
            area = cv2.contourArea(contour)
            if area < self.min_area_ratio * image_area:
                continue
            perimeter = cv2.arcLength(contour, True)
            approx = cv2.approxPolyDP(contour, self.approx_epsilon * perimeter, True)
            if len(approx) != 4 or not cv2.isContourConvex(approx):
                continue
            found.append((float(cv2.contourArea(approx)), approx.reshape(4, 2)))

        # Largest outline first; ties keep contour order so results are stable.
        found.sort(key=lambda item: -item[0])
        return [
            Quadrilateral.from_points(points, w, h)
            for _, points in found[: self.max_candidates]
        ]
