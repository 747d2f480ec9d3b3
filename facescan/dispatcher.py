"""
Batch dispatch for the face scan pipeline.

Responsibility:
    Partition ImageRecords into fixed-size batches, run each batch on a
    bounded thread pool (decode → resize → detect per record), and collect
    the per-batch outcomes into DetectionResults.

Concurrency:
    - The pool has exactly `workers` threads and batches hold `workers`
      records each.
    - Each batch task returns a BatchOutcome message to the collecting
      thread; the only state shared between tasks is the run's FaceCounter
      and the stop event used by fail-fast.
    - Batch mosaics travel back in the BatchOutcome and are shown by the
      collecting thread; worker threads never touch the display.
    - run() returns (or raises) only after every submitted batch has
      finished or been cancelled.

Failure policy:
    - best_effort: a record that fails to decode or detect is logged,
      recorded as an ImageFailure, and left out of the results.
    - fail_fast: the first such failure stops the run; DetectionFailedError
      naming the offending path is raised once the pool has drained.

Non-goals:
    - No retries, timeouts, or cancellation beyond fail-fast.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np

from facescan.config import AppConfig, VisualizationConfig
from facescan.detector import FaceDetector
from facescan.errors import DecodeError, DetectionFailedError, InferenceError, RenderError
from facescan.preprocessor import ImageDecoder, OpenCvDecoder
from facescan.records import Detection, DetectionResult, ImageRecord
from facescan.visualizer import DisplaySink, compose_mosaic

logger = logging.getLogger(__name__)

BEST_EFFORT = "best_effort"
FAIL_FAST = "fail_fast"
FAILURE_POLICIES = (BEST_EFFORT, FAIL_FAST)

# Per-item errors covered by the failure policy (ValueError: a raster the
# detector rejects); anything else is a bug
_ITEM_ERRORS = (DecodeError, InferenceError, OSError, ValueError)


@dataclass(frozen=True)
class ImageFailure:
    """A record that was dropped in best-effort mode."""

    path: str
    reason: str

    def to_dict(self) -> dict:
        return {"path": self.path, "reason": self.reason}


@dataclass(frozen=True)
class BatchOutcome:
    """Message returned by one batch task."""

    index: int
    results: Tuple[DetectionResult, ...]
    failures: Tuple[ImageFailure, ...]
    preview: Optional[np.ndarray] = None


@dataclass(frozen=True)
class DispatchOutcome:
    """Everything the dispatcher produced for one run."""

    results: Tuple[DetectionResult, ...]
    failures: Tuple[ImageFailure, ...]
    face_count: int
    batch_count: int


class FaceCounter:
    """Running total of detected faces, shared by the batch tasks of one run.

    add() is a single guarded increment. value is meant to be read after
    the pool has drained.
    """

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def add(self, count: int) -> None:
        with self._lock:
            self._value += count

    @property
    def value(self) -> int:
        return self._value


def make_batches(records: Sequence[ImageRecord], size: int) -> List[Tuple[ImageRecord, ...]]:
    """Split records into contiguous batches of `size` (the last may be shorter).

    Raises:
        ValueError: If size is less than 1.
    """
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}.")
    return [tuple(records[i:i + size]) for i in range(0, len(records), size)]


class BatchDispatcher:
    """Runs face detection over ImageRecords on a bounded worker pool.

    Usage:
        dispatcher = BatchDispatcher(detector, workers=8)
        outcome = dispatcher.run(records)
        print(outcome.face_count, len(outcome.results))
    """

    def __init__(
        self,
        detector: FaceDetector,
        decoder: Optional[ImageDecoder] = None,
        workers: int = 4,
        failure_policy: str = BEST_EFFORT,
        max_edge: int = 512,
        display_sink: Optional[DisplaySink] = None,
        visualization: Optional[VisualizationConfig] = None,
    ) -> None:
        """
        Raises:
            ValueError: If workers < 1, max_edge <= 0, or the policy is unknown.
        """
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}.")
        if max_edge <= 0:
            raise ValueError(f"max_edge must be positive, got {max_edge}.")
        if failure_policy not in FAILURE_POLICIES:
            raise ValueError(
                f"Invalid failure_policy: '{failure_policy}'. "
                f"Must be one of {FAILURE_POLICIES}."
            )

        self._detector = detector
        self._decoder = decoder or OpenCvDecoder()
        self._workers = workers
        self._failure_policy = failure_policy
        self._max_edge = max_edge
        self._display_sink = display_sink
        self._visualization = visualization or VisualizationConfig()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        detector: FaceDetector,
        decoder: Optional[ImageDecoder] = None,
        display_sink: Optional[DisplaySink] = None,
    ) -> "BatchDispatcher":
        return cls(
            detector=detector,
            decoder=decoder,
            workers=config.dispatch.workers,
            failure_policy=config.dispatch.failure_policy,
            max_edge=config.dispatch.max_edge,
            display_sink=display_sink,
            visualization=config.visualization,
        )

    @property
    def workers(self) -> int:
        return self._workers

    @property
    def failure_policy(self) -> str:
        return self._failure_policy

    def run(self, records: Sequence[ImageRecord]) -> DispatchOutcome:
        """Detect faces in every record.

        Returns:
            A DispatchOutcome with one DetectionResult per successful record.
            Ordering of results is not meaningful.

        Raises:
            DetectionFailedError: In fail-fast mode, on the first per-item failure.
        """
        batches = make_batches(records, self._workers)
        counter = FaceCounter()
        stop = threading.Event()

        results: List[DetectionResult] = []
        failures: List[ImageFailure] = []
        first_error: Optional[DetectionFailedError] = None

        logger.info(
            "Applying face detection to %d images in %d batches (workers=%d, policy=%s)...",
            len(records), len(batches), self._workers, self._failure_policy,
        )

        with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="detect") as executor:
            futures: Dict[Future, int] = {
                executor.submit(self._process_batch, index, batch, counter, stop): index
                for index, batch in enumerate(batches)
            }
            try:
                for future in as_completed(futures):
                    if future.cancelled():
                        continue
                    try:
                        outcome = future.result()
                    except DetectionFailedError as e:
                        if first_error is None:
                            first_error = e
                            self._abort(stop, futures)
                        continue

                    results.extend(outcome.results)
                    failures.extend(outcome.failures)
                    if outcome.preview is not None:
                        self._show_preview(outcome.index, outcome.preview)
                    logger.debug(
                        "Batch %d/%d done (%d results, %d failures).",
                        outcome.index + 1, len(batches),
                        len(outcome.results), len(outcome.failures),
                    )
            except BaseException:
                self._abort(stop, futures)
                raise

        if first_error is not None:
            logger.error("Aborting run: %s", first_error)
            raise first_error

        if failures:
            logger.warning(
                "Detection complete with %d/%d failures.", len(failures), len(records)
            )

        return DispatchOutcome(
            results=tuple(results),
            failures=tuple(failures),
            face_count=counter.value,
            batch_count=len(batches),
        )

    @staticmethod
    def _abort(stop: threading.Event, futures: Dict[Future, int]) -> None:
        """Stop in-flight batches at their next record and cancel queued ones."""
        stop.set()
        for future in futures:
            future.cancel()

    def _process_batch(
        self,
        index: int,
        batch: Sequence[ImageRecord],
        counter: FaceCounter,
        stop: threading.Event,
    ) -> BatchOutcome:
        """Worker body: decode and detect every record of one batch."""
        results: List[DetectionResult] = []
        failures: List[ImageFailure] = []
        previews: List[Tuple[np.ndarray, Sequence[Detection]]] = []

        for record in batch:
            if stop.is_set():
                break

            try:
                raster = self._decoder.decode(record.path, self._max_edge)
                detections = self._detector.detect(raster)
            except _ITEM_ERRORS as e:
                if self._failure_policy == FAIL_FAST:
                    stop.set()
                    raise DetectionFailedError(record.path, e) from e
                logger.error("Error detecting faces in image at %s: %s", record.path, e)
                failures.append(ImageFailure(path=record.path, reason=str(e)))
                continue

            result = DetectionResult.for_record(record, detections)
            counter.add(result.face_count)
            results.append(result)

            if self._display_sink is not None:
                previews.append((raster, result.detections))

        mosaic = self._compose_preview(index, previews) if previews else None

        return BatchOutcome(
            index=index, results=tuple(results), failures=tuple(failures), preview=mosaic,
        )

    def _compose_preview(self, index: int, previews) -> Optional[np.ndarray]:
        """Build the batch mosaic on the worker; failures are logged only."""
        try:
            return compose_mosaic(previews, self._visualization)
        except (ValueError, cv2.error) as e:
            logger.warning("Preview for batch %d failed: %s", index, e)
            return None

    def _show_preview(self, index: int, mosaic: np.ndarray) -> None:
        """Forward a mosaic to the display sink from the collecting thread."""
        try:
            self._display_sink.show(mosaic)
        except RenderError as e:
            logger.warning("Preview for batch %d failed: %s", index, e)
