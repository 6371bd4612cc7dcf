"""Utility helpers for image loading and orientation handling."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np
from PIL import Image as PILImage
from PIL import UnidentifiedImageError

from .types import Image, Orientation

ImageInput = Union[str, Path, np.ndarray, PILImage.Image]

EXIF_ORIENTATION_TAG = 274


def load_image(image_input: ImageInput, orientation: Optional[Orientation] = None) -> Image:
    """Load an image input into an orientation-corrected BGR :class:`Image`.

    File and Pillow inputs read their orientation from EXIF metadata. Raw
    arrays carry no metadata and default to ``UP``. An explicit ``orientation``
    overrides whatever the metadata says.
    """

    if isinstance(image_input, np.ndarray):
        pixels = ensure_color(image_input.copy())
        tag = Orientation.UP
    elif isinstance(image_input, PILImage.Image):
        pixels, tag = _from_pillow(image_input)
    else:
        path = Path(image_input)
        if not path.exists():
            raise FileNotFoundError(f"Image path not found: {path}")
        try:
            with PILImage.open(path) as pil_image:
                pixels, tag = _from_pillow(pil_image)
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError(f"Unable to read image from path: {path}") from exc

    if orientation is not None:
        tag = orientation
    return Image(pixels=apply_orientation(pixels, tag), orientation=tag)


def read_orientation(pil_image: PILImage.Image) -> Orientation:
    """Return the EXIF orientation of a Pillow image, ``UP`` when absent."""

    try:
        exif = pil_image.getexif()
    except (AttributeError, OSError, ValueError):
        return Orientation.UP
    return Orientation.from_tag(exif.get(EXIF_ORIENTATION_TAG, Orientation.UP))


def apply_orientation(pixels: np.ndarray, orientation: Orientation) -> np.ndarray:
    """Fold an orientation tag into the pixel data so it displays upright."""

    if orientation is Orientation.UP_MIRRORED:
        out = pixels[:, ::-1]
    elif orientation is Orientation.DOWN:
        out = pixels[::-1, ::-1]
    elif orientation is Orientation.DOWN_MIRRORED:
        out = pixels[::-1]
    elif orientation is Orientation.LEFT_MIRRORED:
        out = np.swapaxes(pixels, 0, 1)
    elif orientation is Orientation.RIGHT:
        out = np.rot90(pixels, k=-1)
    elif orientation is Orientation.RIGHT_MIRRORED:
        out = np.swapaxes(pixels, 0, 1)[::-1, ::-1]
    elif orientation is Orientation.LEFT:
        out = np.rot90(pixels, k=1)
    else:
        out = pixels
    return np.ascontiguousarray(out)


def ensure_color(image: np.ndarray) -> np.ndarray:
    """Ensure the ndarray is three-channel BGR."""

    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


def ensure_gray(image: np.ndarray) -> np.ndarray:
    """Convert a BGR image to grayscale if necessary."""

    if image.ndim == 2:
        return image
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def _from_pillow(pil_image: PILImage.Image) -> tuple[np.ndarray, Orientation]:
    tag = read_orientation(pil_image)
    rgb = np.array(pil_image.convert("RGB"))
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR), tag
