"""Classifier exports."""

from __future__ import annotations

from ..config import PipelineConfig
from .base import Classifier
from .template import TemplateDigitClassifier
from .yolo import YOLODigitClassifier


def build_classifier(config: PipelineConfig) -> Classifier:
    """Return the model-backed classifier when a model is configured."""

    if config.model_path:
        return YOLODigitClassifier(
            model_path=config.model_path,
            input_size=config.input_size,
            device=config.device,
        )
    return TemplateDigitClassifier(template_size=config.input_size)


__all__ = [
    "Classifier",
    "TemplateDigitClassifier",
    "YOLODigitClassifier",
    "build_classifier",
]
