"""High level API that drives one image through detection and classification."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Callable, Optional, Type, TypeVar

from .classifiers import Classifier, build_classifier
from .config import PipelineConfig
from .detectors import ContourRectangleDetector, RectangleDetector
from .errors import (
    AcquisitionError,
    ClassificationError,
    ClassificationTimeout,
    DetectionError,
    DetectionTimeout,
    DigitVisionError,
    ModelLoadFailure,
    UserCancelled,
)
from .rectifier import PerspectiveRectifier
from .sources import ImageSource
from .types import (
    AcquisitionMode,
    Classification,
    Image,
    PipelineState,
    Quadrilateral,
    RectifiedImage,
    RunOutcome,
)

logger = logging.getLogger(__name__)

ANALYZING_STATUS = "Analyzing Image…"
NO_DETECTION_STATUS = "No rectangles detected."

T = TypeVar("T")
Dispatch = Callable[[Callable[[], None]], None]
StatusListener = Callable[[str], None]
ImageListener = Callable[[Image], None]
RectifiedListener = Callable[[Optional[RectifiedImage]], None]
StateListener = Callable[[PipelineState], None]


def format_classification(best: Classification) -> str:
    return f'Classification: "{best.label}" Confidence: {best.confidence}'


def _call_inline(update: Callable[[], None]) -> None:
    update()


class PipelineController:
    """Runs acquisition, detection, rectification and classification.

    Acquisition happens on the calling thread (the one that owns the UI).
    Everything after it runs on a worker pool, and every UI-facing update is
    handed to ``dispatch`` so a toolkit can marshal it back to its own thread
    (e.g. ``lambda fn: root.after(0, fn)`` for Tk).

    Each run gets a monotonically increasing id. Updates are applied only
    while their run is still the latest one; anything from an older run is
    dropped when it arrives. The controller lock is held while an update and
    its listener run, so listeners may start a new run but must not block
    on another thread that uses the controller.
    """

    def __init__(
        self,
        source: ImageSource,
        detector: Optional[RectangleDetector] = None,
        rectifier: Optional[PerspectiveRectifier] = None,
        classifier: Optional[Classifier] = None,
        config: Optional[PipelineConfig] = None,
        classifier_factory: Optional[Callable[[], Classifier]] = None,
        dispatch: Dispatch = _call_inline,
        on_status: Optional[StatusListener] = None,
        on_image: Optional[ImageListener] = None,
        on_rectified: Optional[RectifiedListener] = None,
        on_state: Optional[StateListener] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.source = source
        self.detector = detector or ContourRectangleDetector(
            min_area_ratio=self.config.min_area_ratio,
            approx_epsilon=self.config.approx_epsilon,
            max_candidates=self.config.max_candidates,
            canny_low=self.config.canny_low,
            canny_high=self.config.canny_high,
        )
        self.rectifier = rectifier or PerspectiveRectifier(
            saturation=self.config.saturation,
            contrast=self.config.contrast,
        )

        self.classifier: Optional[Classifier] = classifier
        self.disabled_reason: Optional[str] = None
        if self.classifier is None:
            factory = classifier_factory or (lambda: build_classifier(self.config))
            try:
                self.classifier = factory()
            except ModelLoadFailure as exc:
                self.disabled_reason = str(exc)
                logger.warning("Classification disabled: %s", exc)

        self._dispatch = dispatch
        self._on_status = on_status
        self._on_image = on_image
        self._on_rectified = on_rectified
        self._on_state = on_state

        self._lock = threading.RLock()
        self._run_id = 0
        self._state = PipelineState.IDLE
        self._status = ""
        self._image: Optional[Image] = None
        self._rectified: Optional[RectifiedImage] = None

        self._runs = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="digit-vision-run"
        )
        self._stages = ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="digit-vision-stage"
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def classification_enabled(self) -> bool:
        return self.classifier is not None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def status(self) -> str:
        return self._status

    @property
    def current_image(self) -> Optional[Image]:
        return self._image

    @property
    def rectified_image(self) -> Optional[RectifiedImage]:
        return self._rectified

    def acquire(self, mode: AcquisitionMode) -> "Future[RunOutcome]":
        """Start a new run; returns a future resolving to its :class:`RunOutcome`.

        A cancelled pick starts no run. The run on display keeps its id, state
        and status, and the returned outcome is ``IDLE``.
        """

        try:
            image = self.source.acquire(mode)
        except UserCancelled:
            with self._lock:
                current = self._run_id
            logger.info("Acquisition cancelled; run %d stays current", current)
            return self._completed(RunOutcome(current, PipelineState.IDLE, self._status))
        except AcquisitionError as exc:
            run_id = self._next_run_id()
            logger.warning("Run %d: acquisition failed: %s", run_id, exc)
            return self._completed(self._fail(run_id, f"Acquisition failed: {exc}", exc))

        run_id = self._next_run_id()
        logger.info("Run %d: acquired %dx%d image", run_id, image.width, image.height)
        self._publish_state(run_id, PipelineState.ACQUIRING)
        self._publish(run_id, lambda: self._show_image(image))
        self._publish_status(run_id, ANALYZING_STATUS)
        self._publish_rectified(run_id, None)
        self._publish_state(run_id, PipelineState.DETECTING)
        return self._runs.submit(self._execute, run_id, image)

    def run_image(self, image: Image) -> RunOutcome:
        """Process an already acquired image synchronously on the calling thread."""

        run_id = self._next_run_id()
        self._publish(run_id, lambda: self._show_image(image))
        self._publish_status(run_id, ANALYZING_STATUS)
        self._publish_rectified(run_id, None)
        self._publish_state(run_id, PipelineState.DETECTING)
        return self._execute(run_id, image)

    def shutdown(self, wait: bool = True) -> None:
        """Stop both worker pools.

        Stage work that already timed out cannot be interrupted, so the stage
        pool is never waited on and its queued work is cancelled. Runs only
        wait on stages up to their timeouts, so waiting on them is bounded.
        """

        self._runs.shutdown(wait=wait)
        self._stages.shutdown(wait=False, cancel_futures=True)

    def __enter__(self) -> "PipelineController":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    # ------------------------------------------------------------------
    # Run stages
    # ------------------------------------------------------------------

    def _execute(self, run_id: int, image: Image) -> RunOutcome:
        try:
            quad = self._run_stage(
                self.detector.detect,
                image,
                self.config.detection_timeout_s,
                DetectionTimeout,
            )
        except DetectionError as exc:
            return self._fail(run_id, f"Detection failed: {exc}", exc)
        except Exception as exc:
            logger.exception("Run %d: rectangle detector raised", run_id)
            return self._fail(run_id, f"Detection failed: {exc}", DetectionError(str(exc)))

        if quad is None:
            logger.info("Run %d: no rectangles detected", run_id)
            return self._no_detection(run_id)
        if not quad.is_within(image.width, image.height):
            logger.warning("Run %d: invalid detected rectangle %s", run_id, quad)
            return self._no_detection(run_id, quad)

        self._publish_state(run_id, PipelineState.RECTIFYING)
        rectified = self.rectifier.rectify(image, quad)
        self._publish_rectified(run_id, rectified)

        if self.classifier is None:
            message = f"Classification unavailable: {self.disabled_reason}"
            return self._fail(
                run_id, message, ModelLoadFailure(self.disabled_reason or ""), quad, rectified
            )

        self._publish_state(run_id, PipelineState.CLASSIFYING)
        try:
            result = self._run_stage(
                self.classifier.classify,
                rectified,
                self.config.classification_timeout_s,
                ClassificationTimeout,
            )
        except ClassificationError as exc:
            return self._fail(run_id, f"Classification failed: {exc}", exc, quad, rectified)
        except Exception as exc:
            logger.exception("Run %d: classifier raised", run_id)
            return self._fail(
                run_id, f"Classification failed: {exc}", ClassificationError(str(exc)), quad, rectified
            )

        status = format_classification(result.best)
        logger.info("Run %d: %s", run_id, status)
        self._publish_status(run_id, status)
        self._publish_state(run_id, PipelineState.DONE)
        return RunOutcome(
            run_id=run_id,
            state=PipelineState.DONE,
            status=status,
            quadrilateral=quad,
            rectified=rectified,
            result=result,
            stale=not self._is_current(run_id),
        )

    def _run_stage(
        self,
        stage: Callable[[object], T],
        argument: object,
        timeout: float,
        timeout_error: Type[DigitVisionError],
    ) -> T:
        future = self._stages.submit(stage, argument)
        try:
            return future.result(timeout=timeout)
        except FuturesTimeoutError:
            name = getattr(stage, "__name__", "stage")
            if not future.cancel():
                # The worker keeps its stage pool slot until the call returns.
                logger.warning("%s still running after its %ss timeout", name, timeout)
            raise timeout_error(f"{name} timed out after {timeout}s") from None

    def _no_detection(self, run_id: int, quad: Optional[Quadrilateral] = None) -> RunOutcome:
        self._publish_status(run_id, NO_DETECTION_STATUS)
        self._publish_state(run_id, PipelineState.NO_DETECTION)
        return RunOutcome(
            run_id=run_id,
            state=PipelineState.NO_DETECTION,
            status=NO_DETECTION_STATUS,
            quadrilateral=quad,
            stale=not self._is_current(run_id),
        )

    def _fail(
        self,
        run_id: int,
        message: str,
        error: BaseException,
        quad: Optional[Quadrilateral] = None,
        rectified: Optional[RectifiedImage] = None,
    ) -> RunOutcome:
        logger.warning("Run %d failed: %s", run_id, message)
        self._publish_status(run_id, message)
        self._publish_state(run_id, PipelineState.FAILED)
        self._publish_state(run_id, PipelineState.IDLE)
        return RunOutcome(
            run_id=run_id,
            state=PipelineState.FAILED,
            status=message,
            quadrilateral=quad,
            rectified=rectified,
            error=error,
            stale=not self._is_current(run_id),
        )

    # ------------------------------------------------------------------
    # Guarded UI updates
    # ------------------------------------------------------------------

    def _next_run_id(self) -> int:
        with self._lock:
            self._run_id += 1
            return self._run_id

    def _is_current(self, run_id: int) -> bool:
        with self._lock:
            return run_id == self._run_id

    def _publish(self, run_id: int, update: Callable[[], None]) -> None:
        def deliver() -> None:
            # Held across the check and the update so a new run cannot start in between.
            with self._lock:
                if run_id != self._run_id:
                    logger.debug("Dropping update from stale run %d", run_id)
                    return
                update()

        self._dispatch(deliver)

    def _publish_status(self, run_id: int, status: str) -> None:
        self._publish(run_id, lambda: self._show_status(status))

    def _publish_state(self, run_id: int, state: PipelineState) -> None:
        self._publish(run_id, lambda: self._show_state(state))

    def _publish_rectified(self, run_id: int, rectified: Optional[RectifiedImage]) -> None:
        self._publish(run_id, lambda: self._show_rectified(rectified))

    def _show_status(self, status: str) -> None:
        self._status = status
        if self._on_status is not None:
            self._on_status(status)

    def _show_state(self, state: PipelineState) -> None:
        self._state = state
        if self._on_state is not None:
            self._on_state(state)

    def _show_image(self, image: Image) -> None:
        self._image = image
        if self._on_image is not None:
            self._on_image(image)

    def _show_rectified(self, rectified: Optional[RectifiedImage]) -> None:
        self._rectified = rectified
        if self._on_rectified is not None:
            self._on_rectified(rectified)

    @staticmethod
    def _completed(outcome: RunOutcome) -> "Future[RunOutcome]":
        future: "Future[RunOutcome]" = Future()
        future.set_result(outcome)
        return future
