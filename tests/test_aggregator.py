"""
Tests for result aggregation.
"""

import pytest

from facescan.aggregator import NO_FILES_MESSAGE, aggregate
from facescan.dispatcher import ImageFailure
from facescan.records import BoundingBox, Detection, DetectionResult


def _result(path, faces):
    detections = [Detection.create(BoundingBox(0, 0, 5, 5), 0.8) for _ in range(faces)]
    return DetectionResult(source_path=path, content_hash=f"h-{path}", detections=tuple(detections))


def test_totals_and_average():
    """File and face totals are summed; average divides elapsed by files."""
    report = aggregate([_result("a", 2), _result("b", 0), _result("c", 3)], elapsed_seconds=1.5)

    assert report.file_count == 3
    assert report.face_count == 5
    assert report.average_seconds == pytest.approx(0.5)
    assert report.discovered_count == 3


def test_zero_files():
    """No processed files: no division, a defined message instead."""
    report = aggregate([], elapsed_seconds=0.2)

    assert report.average_seconds is None
    lines = report.summary_lines()
    assert lines[-1] == NO_FILES_MESSAGE
    assert "Number of faces found: 0" in lines


def test_summary_mentions_failures():
    """The timing line counts discovered files; the average uses processed ones."""
    report = aggregate(
        [_result("a", 1)],
        elapsed_seconds=2.0,
        failures=[ImageFailure(path="b", reason="corrupt")],
    )

    lines = report.summary_lines()
    assert lines[0] == "Total execution time: 2.000s for 2 files"
    assert "Time per file: 2.0000s" in lines
    assert "Processed files: 1" in lines
    assert "Failed files: 1" in lines
    assert report.discovered_count == 2


def test_to_dict():
    report = aggregate([_result("a", 1)], elapsed_seconds=1.0, discovered_count=4, duplicates_skipped=1)
    payload = report.to_dict()

    assert payload["total_files"] == 1
    assert payload["total_faces"] == 1
    assert payload["discovered_files"] == 4
    assert payload["duplicates_skipped"] == 1
    assert payload["images"][0]["source_path"] == "a"
