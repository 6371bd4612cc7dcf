"""Perspective correction and photometric normalization of detected regions."""

from __future__ import annotations

import logging
import math
from typing import Tuple

import cv2
import numpy as np

from .image_utils import ensure_color
from .types import Image, Quadrilateral, RectifiedImage

logger = logging.getLogger(__name__)

# BGR luminance weights (ITU-R BT.601), matching cv2.COLOR_BGR2GRAY.
_LUMA_BGR = np.array([0.114, 0.587, 0.299], dtype=np.float32)


class PerspectiveRectifier:
    """Warp a detected quadrilateral into an upright, inverted grayscale crop.

    The output is meant to resemble classifier training data: light strokes on
    a dark background with the paper texture pushed to black by a steep
    contrast curve.
    """

    def __init__(self, saturation: float = 0.0, contrast: float = 32.0) -> None:
        self.saturation = saturation
        self.contrast = contrast

    def rectify(self, image: Image, quad: Quadrilateral) -> RectifiedImage:
        x0, y0, x1, y1 = self._crop_box(quad, image.width, image.height)
        crop = ensure_color(np.ascontiguousarray(image.pixels[y0:y1, x0:x1]))
        warped = self._warp(crop, quad.as_array(image.width, image.height), (x0, y0))
        adjusted = self.color_controls(warped)
        return RectifiedImage(pixels=invert(adjusted))

    def color_controls(self, image: np.ndarray) -> np.ndarray:
        """Blend toward luminance, stretch contrast around mid-grey, flatten to one channel."""

        values = ensure_color(image).astype(np.float32) / 255.0
        luma = values @ _LUMA_BGR
        blended = luma[..., None] + self.saturation * (values - luma[..., None])
        contrasted = np.clip((blended - 0.5) * self.contrast + 0.5, 0.0, 1.0)
        gray = contrasted @ _LUMA_BGR
        return np.clip(np.rint(gray * 255.0), 0, 255).astype(np.uint8)

    @staticmethod
    def _crop_box(quad: Quadrilateral, width: int, height: int) -> Tuple[int, int, int, int]:
        x, y, w, h = quad.bounding_box(width, height)
        x0 = min(max(0, int(math.floor(x))), width - 1)
        y0 = min(max(0, int(math.floor(y))), height - 1)
        x1 = min(width, max(x0 + 1, int(math.ceil(x + w))))
        y1 = min(height, max(y0 + 1, int(math.ceil(y + h))))
        return x0, y0, x1, y1

    @staticmethod
    def _warp(crop: np.ndarray, corners: np.ndarray, origin: Tuple[int, int]) -> np.ndarray:
        ch, cw = crop.shape[:2]
        src = corners - np.array(origin, dtype=np.float32)
        dst = np.array(
            [[0, 0], [cw - 1, 0], [cw - 1, ch - 1], [0, ch - 1]],
            dtype=np.float32,
        )
        if cw < 2 or ch < 2:
            return crop

        matrix = cv2.getPerspectiveTransform(src, dst)
        if not np.all(np.isfinite(matrix)) or abs(np.linalg.det(matrix)) < 1e-9:
            # Collinear corners: nothing to undo, keep the axis-aligned crop.
            logger.debug("Degenerate quadrilateral, skipping perspective warp")
            return crop
        return cv2.warpPerspective(
            crop,
            matrix,
            (cw, ch),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_REPLICATE,
        )


def invert(image: np.ndarray) -> np.ndarray:
    """Swap light and dark."""

    return cv2.bitwise_not(image)
