"""Detector exports."""

from .base import RectangleDetector
from .contour import ContourRectangleDetector

__all__ = [
    "RectangleDetector",
    "ContourRectangleDetector",
]
