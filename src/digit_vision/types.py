"""Common types used throughout the digit recognition pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Iterator, Optional, Sequence, Tuple

import numpy as np


class Orientation(IntEnum):
    """EXIF orientation tags describing how stored pixels map to display."""

    UP = 1
    UP_MIRRORED = 2
    DOWN = 3
    DOWN_MIRRORED = 4
    LEFT_MIRRORED = 5
    RIGHT = 6
    RIGHT_MIRRORED = 7
    LEFT = 8

    @classmethod
    def from_tag(cls, value: object) -> "Orientation":
        """Map a raw metadata value to an orientation, defaulting to ``UP``."""

        try:
            return cls(int(value))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return cls.UP


class AcquisitionMode(str, Enum):
    """Ways an image can enter the pipeline."""

    CAPTURE = "capture"
    PICK = "pick"


class PipelineState(str, Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    DETECTING = "detecting"
    NO_DETECTION = "no_detection"
    RECTIFYING = "rectifying"
    CLASSIFYING = "classifying"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def scaled(self, width: float, height: float) -> "Point":
        return Point(self.x * width, self.y * height)


@dataclass(frozen=True)
class Image:
    """An acquired image whose pixels are already orientation-corrected.

    ``orientation`` records the tag that was folded into ``pixels``; every
    coordinate computed downstream is expressed in the corrected pixel space.
    """

    pixels: np.ndarray
    orientation: Orientation = Orientation.UP

    def __post_init__(self) -> None:
        pixels = np.array(self.pixels, dtype=np.uint8, copy=True)
        pixels.setflags(write=False)
        object.__setattr__(self, "pixels", pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def extent(self) -> Tuple[int, int, int, int]:
        return (0, 0, self.width, self.height)


@dataclass(frozen=True)
class Quadrilateral:
    """Four corners normalized to ``[0, 1]`` relative to the image extent.

    The origin is the top-left corner of the image and ``y`` grows downward.
    """

    top_left: Point
    top_right: Point
    bottom_left: Point
    bottom_right: Point

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]], width: float, height: float) -> "Quadrilateral":
        """Build a quadrilateral from four unordered pixel-space corners."""

        pts = np.asarray(points, dtype=np.float64).reshape(4, 2)
        sums = pts.sum(axis=1)
        diffs = np.diff(pts, axis=1).ravel()
        top_left = pts[np.argmin(sums)]
        bottom_right = pts[np.argmax(sums)]
        top_right = pts[np.argmin(diffs)]
        bottom_left = pts[np.argmax(diffs)]
        return cls(
            top_left=Point(float(top_left[0]) / width, float(top_left[1]) / height),
            top_right=Point(float(top_right[0]) / width, float(top_right[1]) / height),
            bottom_left=Point(float(bottom_left[0]) / width, float(bottom_left[1]) / height),
            bottom_right=Point(float(bottom_right[0]) / width, float(bottom_right[1]) / height),
        )

    @property
    def corners(self) -> Tuple[Point, Point, Point, Point]:
        """Corners in clockwise order starting at the top-left."""

        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    def scaled(self, width: float, height: float) -> "Quadrilateral":
        return Quadrilateral(
            top_left=self.top_left.scaled(width, height),
            top_right=self.top_right.scaled(width, height),
            bottom_left=self.bottom_left.scaled(width, height),
            bottom_right=self.bottom_right.scaled(width, height),
        )

    def as_array(self, width: float = 1.0, height: float = 1.0) -> np.ndarray:
        """Return a float32 ``(4, 2)`` array in TL, TR, BR, BL order."""

        return np.array(
            [[p.x * width, p.y * height] for p in self.corners],
            dtype=np.float32,
        )

    def bounding_box(self, width: float = 1.0, height: float = 1.0) -> Tuple[float, float, float, float]:
        """Axis-aligned ``(x, y, w, h)`` box around the scaled corners."""

        pts = self.as_array(width, height)
        x0, y0 = pts.min(axis=0)
        x1, y1 = pts.max(axis=0)
        return (float(x0), float(y0), float(x1 - x0), float(y1 - y0))

    def is_within(self, width: float, height: float) -> bool:
        """True when the scaled bounding box lies fully inside the image."""

        xs = [p.x * width for p in self.corners]
        ys = [p.y * height for p in self.corners]
        return min(xs) >= 0.0 and min(ys) >= 0.0 and max(xs) <= width and max(ys) <= height


@dataclass(frozen=True)
class RectifiedImage:
    """Single-channel crop with light strokes on a dark background."""

    pixels: np.ndarray

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


@dataclass(frozen=True)
class Classification:
    label: str
    confidence: float


@dataclass(frozen=True)
class ClassificationResult:
    """Ranked classifier output, highest confidence first."""

    classifications: Tuple[Classification, ...]

    def __post_init__(self) -> None:
        if not self.classifications:
            raise ValueError("ClassificationResult requires at least one entry")

    @property
    def best(self) -> Classification:
        return self.classifications[0]

    def __iter__(self) -> Iterator[Classification]:
        return iter(self.classifications)

    def __len__(self) -> int:
        return len(self.classifications)


@dataclass(frozen=True)
class RunOutcome:
    """Final record of one pipeline run."""

    run_id: int
    state: PipelineState
    status: str
    quadrilateral: Optional[Quadrilateral] = None
    rectified: Optional[RectifiedImage] = None
    result: Optional[ClassificationResult] = None
    error: Optional[BaseException] = None
    stale: bool = False
