#!/usr/bin/env python3
"""Run the digit pipeline over every image in a folder."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterator, Optional

from digit_vision import (
    AcquisitionMode,
    ImageSource,
    PipelineConfig,
    PipelineController,
    PipelineState,
    RunOutcome,
)

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".bmp", ".tiff"}


def folder_chooser(folder: Path):
    """Return a chooser that hands out one image file per call, then ``None``."""

    files: Iterator[Path] = iter(
        sorted(f for f in folder.iterdir() if f.is_file() and f.suffix.lower() in IMAGE_EXTENSIONS)
    )

    def choose() -> Optional[Path]:
        return next(files, None)

    return choose


def analyze_images_in_folder(folder_path: str, config: PipelineConfig) -> Dict[str, RunOutcome]:
    """Pick each image in ``folder_path`` in turn and wait for its run.

    Args:
        folder_path: folder holding the images
        config: pipeline settings

    Returns:
        Mapping of run number to the run's outcome
    """
    folder = Path(folder_path)
    if not folder.exists():
        print(f"❌ Folder not found: {folder_path}")
        return {}

    source = ImageSource(chooser=folder_chooser(folder), camera_index=config.camera_index)
    results: Dict[str, RunOutcome] = {}

    with PipelineController(source, config=config) as controller:
        if not controller.classification_enabled:
            print(f"⚠️  Classification disabled: {controller.disabled_reason}")

        run = 0
        while True:
            outcome = controller.acquire(AcquisitionMode.PICK).result()
            if outcome.state is PipelineState.IDLE:
                # Chooser ran out of files.
                break
            run += 1
            image = controller.current_image
            size = f"{image.width}x{image.height}" if image is not None else "?"
            print(f"[{run}] {size} → {outcome.status}")
            results[str(run)] = outcome

    print(f"\n✨ Done, processed {len(results)} images")
    return results


def main():
    """Entry point."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # ==================== settings ====================
    # Environment variables prefixed with DIGIT_VISION_ override defaults,
    # e.g. DIGIT_VISION_MODEL_PATH=./models/mnist-cls.pt
    images_folder = Path(__file__).parent / "test-images"
    config = PipelineConfig.from_env()
    # ===================================================

    print("=" * 80)
    print(f"📂 Image folder: {images_folder}")
    print(f"🔧 Classifier: {'model ' + config.model_path if config.model_path else 'built-in templates'}")
    print("=" * 80)

    analyze_images_in_folder(str(images_folder), config)


if __name__ == "__main__":
    main()
