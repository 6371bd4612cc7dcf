"""Unit tests for the digit classifiers."""

from __future__ import annotations

import numpy as np
import pytest

from digit_vision.classifiers import (
    Classifier,
    TemplateDigitClassifier,
    YOLODigitClassifier,
    build_classifier,
)
from digit_vision.classifiers import yolo as yolo_module
from digit_vision.config import PipelineConfig
from digit_vision.errors import EmptyResult, ModelLoadFailure
from digit_vision.pipeline import format_classification
from digit_vision.types import RectifiedImage

from . import image_factory as factory


@pytest.fixture(scope="module")
def classifier() -> TemplateDigitClassifier:
    return TemplateDigitClassifier()


@pytest.mark.parametrize("digit", ["0", "1", "4", "7"])
def test_template_classifier_recognizes_rendered_digits(classifier, digit: str):
    result = classifier.classify(RectifiedImage(factory.create_glyph(digit)))
    assert result.best.label == digit


def test_template_classifier_ranks_every_label(classifier):
    result = classifier.classify(RectifiedImage(factory.create_glyph("7")))

    confidences = [entry.confidence for entry in result]
    assert len(result) == 10
    assert {entry.label for entry in result} == set("0123456789")
    assert confidences == sorted(confidences, reverse=True)
    assert all(0.0 <= value <= 1.0 for value in confidences)
    assert sum(confidences) == pytest.approx(1.0)


def test_template_classifier_ignores_border_noise(classifier):
    glyph = factory.create_glyph("1")
    glyph[:6, :] = 255
    glyph[:, -4:] = 255
    assert classifier.classify(RectifiedImage(glyph)).best.label == "1"


def test_template_classifier_rejects_blank_input(classifier):
    with pytest.raises(EmptyResult):
        classifier.classify(RectifiedImage(np.zeros((64, 64), dtype=np.uint8)))


def test_rank_rejects_empty_scores():
    with pytest.raises(EmptyResult):
        Classifier._rank({})


def test_rank_sorts_and_clips():
    result = Classifier._rank({"a": 0.2, "b": 1.3, "c": -0.1})
    assert [entry.label for entry in result] == ["b", "a", "c"]
    assert [entry.confidence for entry in result] == [1.0, 0.2, 0.0]


def test_yolo_classifier_reports_missing_model(tmp_path):
    with pytest.raises(ModelLoadFailure):
        YOLODigitClassifier(tmp_path / "missing-cls.pt")


class _FakeTensor:
    def __init__(self, values):
        self._values = np.asarray(values, dtype=np.float32)

    def cpu(self):
        return self

    def numpy(self):
        return self._values


class _FakeProbs:
    def __init__(self, values):
        self.data = _FakeTensor(values)


class _FakeResult:
    def __init__(self, values, names):
        self.probs = None if values is None else _FakeProbs(values)
        self.names = names


class _FakeYOLO:
    outputs = None
    calls = []

    def __init__(self, model_path, task=None):
        self.model_path = model_path

    def __call__(self, image, **kwargs):
        _FakeYOLO.calls.append((image.shape, kwargs))
        return _FakeYOLO.outputs


@pytest.fixture
def fake_yolo(monkeypatch, tmp_path):
    monkeypatch.setattr(yolo_module, "YOLO", _FakeYOLO, raising=False)
    monkeypatch.setattr(yolo_module, "YOLO_AVAILABLE", True)
    _FakeYOLO.calls = []
    model_path = tmp_path / "mnist-cls.pt"
    model_path.write_bytes(b"weights")
    return model_path


def test_yolo_classifier_ranks_model_probabilities(fake_yolo):
    names = {idx: str(idx) for idx in range(10)}
    probabilities = [0.0] * 10
    probabilities[7] = 0.97
    probabilities[1] = 0.02
    probabilities[4] = 0.01
    _FakeYOLO.outputs = [_FakeResult(probabilities, names)]

    classifier = YOLODigitClassifier(fake_yolo, input_size=28)
    result = classifier.classify(RectifiedImage(factory.create_glyph("7")))

    assert result.best.label == "7"
    assert result.best.confidence == 0.97
    assert format_classification(result.best) == 'Classification: "7" Confidence: 0.97'
    assert [entry.label for entry in result][:3] == ["7", "1", "4"]
    shape, kwargs = _FakeYOLO.calls[0]
    assert shape == (28, 28, 3)
    assert kwargs["imgsz"] == 28


@pytest.mark.parametrize("outputs", [[], [_FakeResult(None, {})]])
def test_yolo_classifier_empty_output_raises(fake_yolo, outputs):
    _FakeYOLO.outputs = outputs
    classifier = YOLODigitClassifier(fake_yolo)
    with pytest.raises(EmptyResult):
        classifier.classify(RectifiedImage(factory.create_glyph("3")))


def test_yolo_classifier_wraps_load_errors(monkeypatch, tmp_path):
    def broken(*args, **kwargs):
        raise RuntimeError("corrupt checkpoint")

    monkeypatch.setattr(yolo_module, "YOLO", broken, raising=False)
    monkeypatch.setattr(yolo_module, "YOLO_AVAILABLE", True)
    model_path = tmp_path / "broken-cls.pt"
    model_path.write_bytes(b"??")

    with pytest.raises(ModelLoadFailure, match="corrupt checkpoint"):
        YOLODigitClassifier(model_path)


def test_build_classifier_defaults_to_templates():
    assert isinstance(build_classifier(PipelineConfig()), TemplateDigitClassifier)


def test_build_classifier_uses_configured_model(fake_yolo):
    classifier = build_classifier(PipelineConfig(model_path=str(fake_yolo)))
    assert isinstance(classifier, YOLODigitClassifier)
