"""
End-to-end tests for the scan pipeline using real JPEG files and a fake detector.
"""

import os

import pytest

from conftest import FakeDetector, make_record, write_jpeg, write_non_utf8_jpeg
from facescan.aggregator import NO_FILES_MESSAGE
from facescan.config import AppConfig, DispatchConfig, ModelConfig, DetectionConfig
from facescan.errors import DetectionFailedError
from facescan.pipeline import ScanPipeline, deduplicate_records


def _config(**dispatch):
    return AppConfig(dispatch=DispatchConfig(**dispatch))


def test_two_directory_scenario(two_dir_scenario):
    """a.jpg (2 faces) + b.jpg (0 faces) + c.txt with W=2 → 2 files, 2 faces."""
    first, second = two_dir_scenario

    report = ScanPipeline(_config(workers=2), detector=FakeDetector()).run([first, second])

    assert report.file_count == 2
    assert report.face_count == 2
    assert report.discovered_count == 2
    assert all(not r.source_path.endswith("c.txt") for r in report.results)
    assert report.average_seconds is not None
    assert report.elapsed_seconds > 0


def test_empty_input(tmp_path):
    """No eligible files: a defined 'no files processed' summary."""
    (tmp_path / "readme.txt").write_text("nothing here", encoding="utf-8")

    report = ScanPipeline(_config(), detector=FakeDetector()).run([tmp_path])

    assert report.file_count == 0
    assert report.average_seconds is None
    assert NO_FILES_MESSAGE in report.summary_lines()


def test_fail_fast_produces_no_report(tmp_path):
    """Fail-fast aborts the run with the failing path; nothing is returned."""
    write_jpeg(tmp_path / "ok.jpg", 100)
    bad = write_jpeg(tmp_path / "bad.jpg", 255)

    pipeline = ScanPipeline(_config(workers=2, failure_policy="fail_fast"), detector=FakeDetector())

    with pytest.raises(DetectionFailedError) as excinfo:
        pipeline.run([tmp_path])

    assert str(bad) in str(excinfo.value)


def test_best_effort_reports_failures(tmp_path):
    """Best-effort keeps going and counts the failure separately."""
    write_jpeg(tmp_path / "ok.jpg", 100)
    write_jpeg(tmp_path / "bad.jpg", 255)
    (tmp_path / "corrupt.jpeg").write_bytes(b"definitely not a jpeg")

    report = ScanPipeline(_config(workers=2), detector=FakeDetector()).run([tmp_path])

    assert report.file_count == 1
    assert report.face_count == 1
    assert report.failed_count == 2
    assert report.discovered_count == 3


def test_non_utf8_file_name_is_processed(tmp_path):
    """A file name that is not valid UTF-8 is scanned and detected like the rest."""
    write_jpeg(tmp_path / "ok.jpg", 100)
    odd = write_non_utf8_jpeg(tmp_path, 200)

    report = ScanPipeline(_config(workers=2), detector=FakeDetector()).run([tmp_path])

    assert report.failed_count == 0
    assert report.file_count == 2
    assert report.face_count == 3
    assert odd.name in {os.path.basename(r.source_path) for r in report.results}


def test_deduplicate_records():
    """First record per content hash wins, input order is kept."""
    records = [
        make_record("/a/1.jpg", "h1"),
        make_record("/b/1-copy.jpg", "h1"),
        make_record("/a/2.jpg", "h2"),
    ]

    unique, skipped = deduplicate_records(records)

    assert [r.path for r in unique] == ["/a/1.jpg", "/a/2.jpg"]
    assert skipped == 1


def test_duplicates_detected_once_when_enabled(tmp_path):
    """With deduplication on, identical files under two roots are detected once."""
    write_jpeg(tmp_path / "one" / "a.jpg", 200)
    (tmp_path / "two").mkdir()
    (tmp_path / "two" / "a-copy.jpg").write_bytes((tmp_path / "one" / "a.jpg").read_bytes())
    roots = [tmp_path / "one", tmp_path / "two"]

    detector = FakeDetector()
    report = ScanPipeline(_config(deduplicate=True), detector=detector).run(roots)

    assert report.file_count == 1
    assert report.duplicates_skipped == 1
    assert detector.calls == 1

    plain = ScanPipeline(_config(), detector=FakeDetector()).run(roots)
    assert plain.file_count == 2
    assert plain.face_count == 4


def test_detector_construction_failure_is_fatal(tmp_path):
    """A detector that cannot load aborts before any scanning."""
    config = AppConfig(
        model=ModelConfig(
            prototxt_path=str(tmp_path / "missing.prototxt"),
            weights_path=str(tmp_path / "missing.caffemodel"),
        ),
        detection=DetectionConfig(detector="ssd"),
    )

    with pytest.raises(FileNotFoundError, match="prototxt"):
        ScanPipeline(config)
