"""Image acquisition from a camera or a user-driven chooser."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import cv2

from .errors import DeviceUnavailable, ImageLoadError, UserCancelled
from .image_utils import ImageInput, load_image
from .types import AcquisitionMode, Image, Orientation

logger = logging.getLogger(__name__)

Chooser = Callable[[], Optional[ImageInput]]
CaptureFactory = Callable[[int], Any]


class ImageSource:
    """Produce orientation-corrected images for the pipeline.

    ``chooser`` stands in for a photo picker: it returns a path, array or
    Pillow image, or ``None`` when the user backs out. ``capture_factory``
    opens a camera and defaults to :class:`cv2.VideoCapture`.
    """

    def __init__(
        self,
        chooser: Optional[Chooser] = None,
        camera_index: int = 0,
        capture_factory: CaptureFactory = cv2.VideoCapture,
    ) -> None:
        self.chooser = chooser
        self.camera_index = camera_index
        self.capture_factory = capture_factory

    def acquire(self, mode: AcquisitionMode) -> Image:
        mode = AcquisitionMode(mode)
        if mode is AcquisitionMode.CAPTURE:
            return self.capture()
        return self.pick()

    def capture(self) -> Image:
        """Grab a single frame from the configured camera."""

        device = self.capture_factory(self.camera_index)
        try:
            if device is None or not device.isOpened():
                raise DeviceUnavailable(f"No capture device at index {self.camera_index}")
            ok, frame = device.read()
            if not ok or frame is None:
                raise DeviceUnavailable(f"Capture device {self.camera_index} returned no frame")
        finally:
            if device is not None:
                device.release()

        logger.info("Captured %dx%d frame from camera %d", frame.shape[1], frame.shape[0], self.camera_index)
        return load_image(frame, Orientation.UP)

    def pick(self) -> Image:
        """Ask the chooser for an image and load it with its metadata."""

        if self.chooser is None:
            raise DeviceUnavailable("No image chooser configured")

        selection = self.chooser()
        if selection is None:
            raise UserCancelled("Image selection cancelled")

        try:
            image = load_image(selection)
        except (FileNotFoundError, ValueError) as exc:
            raise ImageLoadError(str(exc)) from exc

        logger.info("Picked %dx%d image (orientation %s)", image.width, image.height, image.orientation.name)
        return image
