"""
Pipeline orchestration: scan → (dedupe) → dispatch → aggregate.

Responsibility:
    Wire the scanner, dispatcher and aggregator together for one run and
    time it from the start of scanning to the end of aggregation.

Non-goals:
    - No retry logic; failure handling is the dispatcher's policy.
    - No output writing (see OutputHandler).
"""

import logging
import os
import time
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple, Union

from facescan.aggregator import ScanReport, aggregate
from facescan.config import AppConfig, load_config
from facescan.detector import FaceDetector, build_detector
from facescan.dispatcher import BatchDispatcher
from facescan.preprocessor import ImageDecoder
from facescan.records import ImageRecord
from facescan.scanner import collect_images
from facescan.visualizer import DisplaySink

logger = logging.getLogger(__name__)


def deduplicate_records(records: Sequence[ImageRecord]) -> Tuple[List[ImageRecord], int]:
    """Keep the first record for each distinct content hash.

    Returns:
        (unique records in input order, number of records skipped)
    """
    seen: Dict[str, str] = {}
    unique: List[ImageRecord] = []
    for record in records:
        original = seen.get(record.content_hash)
        if original is not None:
            logger.debug("Skipping duplicate %s (same content as %s)", record.path, original)
            continue
        seen[record.content_hash] = record.path
        unique.append(record)
    return unique, len(records) - len(unique)


class ScanPipeline:
    """Runs one full scan over a set of root directories.

    Usage:
        pipeline = ScanPipeline(config)
        report = pipeline.run(["photos/", "backup/photos/"])
        for line in report.summary_lines():
            print(line)

    The detector is built in the constructor, so a model that cannot be
    loaded aborts before any directory is scanned.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        detector: Optional[FaceDetector] = None,
        decoder: Optional[ImageDecoder] = None,
        display_sink: Optional[DisplaySink] = None,
    ) -> None:
        """
        Raises:
            FileNotFoundError, RuntimeError, ValueError: If the configured
                detector cannot be constructed.
        """
        self._config = config or load_config()
        self._detector = detector or build_detector(self._config)
        self._dispatcher = BatchDispatcher.from_config(
            self._config,
            detector=self._detector,
            decoder=decoder,
            display_sink=display_sink,
        )

    @property
    def config(self) -> AppConfig:
        return self._config

    def run(self, roots: Sequence[Union[str, os.PathLike]]) -> ScanReport:
        """Scan roots, detect faces in every image found, and summarize.

        Raises:
            DetectionFailedError: In fail-fast mode, if any image fails.
        """
        scan = self._config.scan
        start_time = time.perf_counter()

        records = collect_images(
            roots,
            extensions=scan.extensions,
            max_depth=scan.max_depth,
            follow_symlinks=scan.follow_symlinks,
        )
        discovered = len(records)

        skipped = 0
        if self._config.dispatch.deduplicate:
            records, skipped = deduplicate_records(records)
            logger.info("Skipped %d files with duplicate content.", skipped)

        outcome = self._dispatcher.run(records)

        report = aggregate(
            outcome.results,
            elapsed_seconds=0.0,
            discovered_count=discovered,
            failures=outcome.failures,
            duplicates_skipped=skipped,
        )
        # Timer covers aggregation too
        report = replace(report, elapsed_seconds=time.perf_counter() - start_time)

        if report.face_count != outcome.face_count:
            logger.warning(
                "Face counter (%d) disagrees with aggregated results (%d).",
                outcome.face_count, report.face_count,
            )

        logger.info(
            "Scan finished: %d files, %d faces in %.2fs.",
            report.file_count, report.face_count, report.elapsed_seconds,
        )
        return report
