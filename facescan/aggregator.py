"""
Result aggregation for the face scan pipeline.

Merges the dispatcher's per-image DetectionResults into a ScanReport with
file and face totals and the average processing time per file.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from facescan.dispatcher import ImageFailure
from facescan.records import DetectionResult

NO_FILES_MESSAGE = "No files processed."


@dataclass(frozen=True)
class ScanReport:
    """Final summary of one pipeline run.

    Attributes:
        results: One DetectionResult per successfully processed image.
        failures: Images dropped in best-effort mode.
        elapsed_seconds: Wall-clock time from scan start to aggregation.
        discovered_count: Image files found by the scanner.
        duplicates_skipped: Files skipped because their content was already queued.
    """

    results: Tuple[DetectionResult, ...]
    failures: Tuple[ImageFailure, ...]
    elapsed_seconds: float
    discovered_count: int
    duplicates_skipped: int = 0

    @property
    def file_count(self) -> int:
        return len(self.results)

    @property
    def face_count(self) -> int:
        return sum(result.face_count for result in self.results)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def average_seconds(self) -> Optional[float]:
        """Mean time per processed file, or None if nothing was processed."""
        if self.file_count == 0:
            return None
        return self.elapsed_seconds / self.file_count

    def summary_lines(self) -> list:
        """Console summary, one line per statistic.

        The timing line counts every discovered image; time per file divides
        by the images actually processed.
        """
        lines = [
            f"Total execution time: {self.elapsed_seconds:.3f}s for {self.discovered_count} files",
            f"Number of faces found: {self.face_count}",
        ]
        if self.average_seconds is None:
            lines.append(NO_FILES_MESSAGE)
        else:
            lines.append(f"Time per file: {self.average_seconds:.4f}s")

        if self.file_count != self.discovered_count:
            lines.append(f"Processed files: {self.file_count}")
        if self.failed_count:
            lines.append(f"Failed files: {self.failed_count}")
        if self.duplicates_skipped:
            lines.append(f"Duplicate files skipped: {self.duplicates_skipped}")
        return lines

    def to_dict(self) -> dict:
        return {
            "images": [r.to_dict() for r in self.results],
            "failures": [f.to_dict() for f in self.failures],
            "total_files": self.file_count,
            "total_faces": self.face_count,
            "discovered_files": self.discovered_count,
            "duplicates_skipped": self.duplicates_skipped,
            "elapsed_seconds": round(self.elapsed_seconds, 6),
            "average_seconds": (
                None if self.average_seconds is None else round(self.average_seconds, 6)
            ),
        }


def aggregate(
    results: Iterable[DetectionResult],
    elapsed_seconds: float,
    discovered_count: Optional[int] = None,
    failures: Iterable[ImageFailure] = (),
    duplicates_skipped: int = 0,
) -> ScanReport:
    """Build the ScanReport for a run.

    Args:
        results: DetectionResults from the dispatcher (any order).
        elapsed_seconds: Wall-clock duration of the run.
        discovered_count: Files found by the scanner; defaults to the
                          number of results plus failures.
        failures: Images dropped in best-effort mode.
        duplicates_skipped: Files skipped by content deduplication.
    """
    results = tuple(results)
    failures = tuple(failures)
    if discovered_count is None:
        discovered_count = len(results) + len(failures) + duplicates_skipped

    return ScanReport(
        results=results,
        failures=failures,
        elapsed_seconds=elapsed_seconds,
        discovered_count=discovered_count,
        duplicates_skipped=duplicates_skipped,
    )
