"""Pipeline configuration with environment variable overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

ENV_PREFIX = "DIGIT_VISION_"

# (min, max) accepted for numeric settings; None means unbounded.
_RANGES: Dict[str, Tuple[Optional[float], Optional[float]]] = {
    "camera_index": (0, None),
    "min_area_ratio": (0.0, 1.0),
    "approx_epsilon": (0.001, 0.2),
    "max_candidates": (1, 64),
    "canny_low": (0, 255),
    "canny_high": (0, 255),
    "saturation": (0.0, 2.0),
    "contrast": (0.0, 255.0),
    "input_size": (8, 1024),
    "detection_timeout_s": (0.1, 600.0),
    "classification_timeout_s": (0.1, 600.0),
    "max_workers": (1, 32),
}


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable settings shared by every pipeline stage."""

    # Image source
    camera_index: int = 0

    # Rectangle detection
    min_area_ratio: float = 0.05
    approx_epsilon: float = 0.02
    max_candidates: int = 8
    canny_low: int = 50
    canny_high: int = 150

    # Rectification
    saturation: float = 0.0
    contrast: float = 32.0

    # Classification
    model_path: Optional[str] = None
    input_size: int = 28
    device: str = "cpu"

    # Scheduling
    detection_timeout_s: float = 10.0
    classification_timeout_s: float = 10.0
    max_workers: int = 2

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        """Build a config from ``<prefix><FIELD_NAME>`` environment variables.

        Values that fail to parse or fall outside their accepted range are
        logged and replaced by the default.
        """

        env = os.environ if environ is None else environ
        defaults = cls()
        overrides: Dict[str, Any] = {}
        for field in fields(cls):
            raw = env.get(f"{prefix}{field.name.upper()}")
            if raw is None or raw.strip() == "":
                continue
            default = getattr(defaults, field.name)
            value = _parse_value(prefix, field.name, raw.strip(), default)
            if value is not None:
                overrides[field.name] = value
        config = replace(defaults, **overrides)
        if overrides:
            logger.info("Loaded pipeline config overrides: %s", sorted(overrides))
        return config


def _parse_value(prefix: str, name: str, raw: str, default: Any) -> Any:
    if isinstance(default, str) or (default is None and name == "model_path"):
        return raw

    caster = int if isinstance(default, int) else float
    try:
        value = caster(raw)
    except ValueError:
        logger.warning("Ignoring %s%s=%r: not a valid %s", prefix, name.upper(), raw, caster.__name__)
        return None

    low, high = _RANGES.get(name, (None, None))
    if (low is not None and value < low) or (high is not None and value > high):
        logger.warning(
            "Ignoring %s%s=%r: outside accepted range [%s, %s]",
            prefix,
            name.upper(),
            raw,
            low,
            high,
        )
        return None
    return value
