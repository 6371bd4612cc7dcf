"""Exception hierarchy for the pipeline stages."""

from __future__ import annotations


class DigitVisionError(Exception):
    """Base class for every pipeline error."""


class AcquisitionError(DigitVisionError):
    """The image source could not produce an image."""


class UserCancelled(AcquisitionError):
    """The user dismissed the chooser without selecting an image."""


class DeviceUnavailable(AcquisitionError):
    """No capture device (or chooser) is available."""


class ImageLoadError(AcquisitionError):
    """The selected image could not be decoded."""


class DetectionError(DigitVisionError):
    """The rectangle detector failed to produce an answer."""


class DetectionTimeout(DetectionError):
    pass


class ClassificationError(DigitVisionError):
    """The classifier failed to produce a ranked result."""


class ModelLoadFailure(ClassificationError):
    """The model artifact could not be loaded; classification is unusable."""


class EmptyResult(ClassificationError):
    """The model produced no candidate labels."""


class ClassificationTimeout(ClassificationError):
    pass
