"""Unit tests for rectangle detection using synthetic images."""

from __future__ import annotations

from typing import List

import pytest

from digit_vision.detectors import ContourRectangleDetector, RectangleDetector
from digit_vision.image_utils import load_image
from digit_vision.types import Image, Point, Quadrilateral

from . import image_factory as factory


def _assert_close(point: Point, x: float, y: float, tolerance: float = 0.02) -> None:
    assert point.x == pytest.approx(x, abs=tolerance)
    assert point.y == pytest.approx(y, abs=tolerance)


def test_contour_detector_finds_upright_paper():
    detector = ContourRectangleDetector()
    image = load_image(factory.create_digit_on_paper(paper=(120, 60, 360, 340)))

    quad = detector.detect(image)

    assert quad is not None
    _assert_close(quad.top_left, 120 / 480, 60 / 400)
    _assert_close(quad.top_right, 360 / 480, 60 / 400)
    _assert_close(quad.bottom_left, 120 / 480, 340 / 400)
    _assert_close(quad.bottom_right, 360 / 480, 340 / 400)
    assert quad.is_within(image.width, image.height)


def test_contour_detector_orders_skewed_corners():
    detector = ContourRectangleDetector()
    pixels, corners = factory.create_skewed_paper()
    image = load_image(pixels)

    quad = detector.detect(image)

    assert quad is not None
    (tl, tr, br, bl) = corners
    _assert_close(quad.top_left, tl[0] / 480, tl[1] / 400)
    _assert_close(quad.top_right, tr[0] / 480, tr[1] / 400)
    _assert_close(quad.bottom_right, br[0] / 480, br[1] / 400)
    _assert_close(quad.bottom_left, bl[0] / 480, bl[1] / 400)


def test_contour_detector_ignores_blank_canvas():
    detector = ContourRectangleDetector()
    assert detector.detect(load_image(factory.create_blank_image())) is None


def test_contour_detector_ignores_small_shapes():
    detector = ContourRectangleDetector(min_area_ratio=0.5)
    image = load_image(factory.create_digit_on_paper(paper=(200, 150, 260, 220)))
    assert detector.detect(image) is None


def test_detection_is_idempotent():
    detector = ContourRectangleDetector()
    image = load_image(factory.create_skewed_paper()[0])
    assert detector.detect(image) == detector.detect(image)


class _FixedCandidates(RectangleDetector):
    def __init__(self, candidates: List[Quadrilateral]) -> None:
        self.candidates = candidates

    def detect_candidates(self, image: Image) -> List[Quadrilateral]:
        return list(self.candidates)


def _quad(offset: float, size: float) -> Quadrilateral:
    return Quadrilateral(
        top_left=Point(offset, offset),
        top_right=Point(offset + size, offset),
        bottom_left=Point(offset, offset + size),
        bottom_right=Point(offset + size, offset + size),
    )


def test_detect_returns_first_candidate_without_reranking():
    small, large = _quad(0.4, 0.1), _quad(0.1, 0.8)
    detector = _FixedCandidates([small, large])
    assert detector.detect(load_image(factory.create_blank_image())) is small


def test_detect_returns_none_without_candidates():
    detector = _FixedCandidates([])
    assert detector.detect(load_image(factory.create_blank_image())) is None


def test_from_points_orders_unordered_corners():
    quad = Quadrilateral.from_points([[90, 80], [10, 20], [12, 70], [95, 15]], 100, 100)
    assert quad.top_left == Point(0.1, 0.2)
    assert quad.top_right == Point(0.95, 0.15)
    assert quad.bottom_left == Point(0.12, 0.7)
    assert quad.bottom_right == Point(0.9, 0.8)


@pytest.mark.parametrize(
    ("quad", "inside"),
    [
        (_quad(0.1, 0.8), True),
        (_quad(0.0, 1.0), True),
        (_quad(-0.05, 0.5), False),
        (_quad(0.6, 0.5), False),
        (Quadrilateral(Point(0.1, 0.1), Point(1.0, 0.1), Point(0.1, 1.0), Point(1.0, 1.0)), True),
        (Quadrilateral(Point(0.0, 0.0), Point(1.0, 0.0), Point(0.0, 1.01), Point(1.0, 1.01)), False),
    ],
)
def test_is_within_checks_scaled_bounding_box(quad: Quadrilateral, inside: bool):
    assert quad.is_within(640, 480) is inside


@pytest.mark.parametrize("size", [300, 303, 640, 1001, 1999])
def test_is_within_accepts_quads_touching_the_far_edges(size: int):
    for left in (0.1, 0.3, 0.7):
        quad = Quadrilateral(Point(left, 0.1), Point(1.0, 0.1), Point(left, 1.0), Point(1.0, 1.0))
        assert quad.is_within(size, size)
