"""Tests for image loading and orientation normalization."""

from __future__ import annotations

import numpy as np
import pytest
from PIL import Image as PILImage
from PIL import ImageOps

from digit_vision.image_utils import EXIF_ORIENTATION_TAG, apply_orientation, load_image
from digit_vision.types import Image, Orientation


def _gradient_image(width: int = 30, height: int = 20) -> np.ndarray:
    xs = np.linspace(0, 255, width, dtype=np.uint8)
    ys = np.linspace(0, 255, height, dtype=np.uint8)
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[..., 0] = xs[None, :]
    image[..., 1] = ys[:, None]
    image[..., 2] = 128
    return image


@pytest.mark.parametrize("orientation", list(Orientation))
def test_load_image_matches_pillow_exif_transpose(tmp_path, orientation: Orientation):
    rgb = _gradient_image()
    path = tmp_path / f"tagged_{orientation.value}.jpg"
    exif = PILImage.Exif()
    exif[EXIF_ORIENTATION_TAG] = int(orientation)
    PILImage.fromarray(rgb).save(path, quality=100, exif=exif.tobytes())

    image = load_image(path)

    with PILImage.open(path) as reference:
        expected_rgb = np.array(ImageOps.exif_transpose(reference).convert("RGB"))
    assert image.orientation is orientation
    assert image.pixels.shape == expected_rgb.shape
    np.testing.assert_array_equal(image.pixels, expected_rgb[..., ::-1])


def test_missing_orientation_defaults_to_up(tmp_path):
    path = tmp_path / "plain.png"
    PILImage.fromarray(_gradient_image()).save(path)

    image = load_image(path)

    assert image.orientation is Orientation.UP
    assert (image.width, image.height) == (30, 20)


@pytest.mark.parametrize("raw", [None, "sideways", 0, 9])
def test_invalid_orientation_tags_default_to_up(raw):
    assert Orientation.from_tag(raw) is Orientation.UP


def test_right_rotation_swaps_dimensions():
    pixels = np.arange(6, dtype=np.uint8).reshape(2, 3)
    rotated = apply_orientation(pixels, Orientation.RIGHT)
    assert rotated.shape == (3, 2)
    # The bottom-left stored pixel ends up at the displayed top-left.
    assert rotated[0, 0] == pixels[1, 0]


def test_array_input_is_copied_and_read_only():
    source = _gradient_image()
    image = load_image(source)

    source[:] = 0
    assert image.pixels.any()
    with pytest.raises(ValueError):
        image.pixels[0, 0, 0] = 1


def test_explicit_orientation_overrides_array_default():
    image = load_image(_gradient_image(), Orientation.LEFT)
    assert image.orientation is Orientation.LEFT
    assert (image.width, image.height) == (20, 30)


def test_missing_path_raises_file_not_found(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_image(tmp_path / "nope.png")


def test_undecodable_file_raises_value_error(tmp_path):
    path = tmp_path / "broken.png"
    path.write_bytes(b"not an image")
    with pytest.raises(ValueError):
        load_image(path)


def test_grayscale_array_becomes_three_channel():
    image = load_image(np.zeros((10, 12), dtype=np.uint8))
    assert isinstance(image, Image)
    assert image.pixels.shape == (10, 12, 3)
