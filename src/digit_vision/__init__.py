"""Public exports for the digit_vision package."""

from .config import PipelineConfig
from .pipeline import PipelineController
from .rectifier import PerspectiveRectifier
from .sources import ImageSource
from .types import (
    AcquisitionMode,
    Classification,
    ClassificationResult,
    Image,
    Orientation,
    PipelineState,
    Quadrilateral,
    RectifiedImage,
    RunOutcome,
)

__all__ = [
    "PipelineConfig",
    "PipelineController",
    "PerspectiveRectifier",
    "ImageSource",
    "AcquisitionMode",
    "Classification",
    "ClassificationResult",
    "Image",
    "Orientation",
    "PipelineState",
    "Quadrilateral",
    "RectifiedImage",
    "RunOutcome",
]
