"""Shared test fixtures and fakes for the detection capabilities."""

import os
import sys
import threading
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import cv2
import numpy as np
import pytest

from facescan.detector import validate_raster
from facescan.errors import DecodeError, InferenceError, RenderError
from facescan.records import BoundingBox, Detection, ImageRecord, utc_now

# Raster mean at or above this makes FakeDetector raise InferenceError
FAIL_LEVEL = 250


def write_jpeg(path: Path, level: int, size=(64, 48)) -> Path:
    """Write a solid gray JPEG (width, height) and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    w, h = size
    frame = np.full((h, w, 3), level, dtype=np.uint8)
    ok, encoded = cv2.imencode(".jpg", frame)
    assert ok
    with open(path, "wb") as f:
        f.write(encoded.tobytes())
    return path


def write_non_utf8_jpeg(directory: Path, level: int) -> Path:
    """Write a JPEG whose file name is not valid UTF-8, or skip the test."""
    if sys.platform in ("win32", "darwin"):
        pytest.skip("filesystem requires valid Unicode file names")
    path = directory / os.fsdecode(b"\xffphoto.jpg")
    try:
        return write_jpeg(path, level)
    except (OSError, UnicodeError) as e:
        pytest.skip(f"cannot create a non-UTF-8 file name here: {e}")


def faces_for_level(level: float) -> int:
    """Face count FakeDetector reports for a raster of the given mean level."""
    return int(round(level / 100))


class FakeDetector:
    """Detector whose face count is derived from the raster brightness.

    A mean of ~0 yields 0 faces, ~100 yields 1, ~200 yields 2; a mean at or
    above FAIL_LEVEL raises InferenceError.
    """

    def __init__(self, with_confidence: bool = True) -> None:
        self._with_confidence = with_confidence
        self._lock = threading.Lock()
        self.calls = 0
        self.thread_names = set()

    def detect(self, raster: np.ndarray) -> List[Detection]:
        validate_raster(raster)
        with self._lock:
            self.calls += 1
            self.thread_names.add(threading.current_thread().name)

        level = float(raster.mean())
        if level >= FAIL_LEVEL:
            raise InferenceError(f"synthetic failure at level {level:.0f}")

        confidence = 0.9 if self._with_confidence else None
        return [
            Detection.create(BoundingBox(x=i * 10, y=0, width=8, height=8), confidence)
            for i in range(faces_for_level(level))
        ]


class FakeDecoder:
    """Decoder serving solid rasters keyed by file name, without touching disk."""

    def __init__(
        self,
        levels: Dict[str, int],
        failing: Iterable[str] = (),
        grayscale: Iterable[str] = (),
    ) -> None:
        self._levels = levels
        self._failing = set(failing)
        self._grayscale = set(grayscale)

    def decode(self, path, max_edge: int) -> np.ndarray:
        name = os.path.basename(os.fspath(path))
        if name in self._failing:
            raise DecodeError(f"Can't decode image at '{path}'")
        level = self._levels.get(name, 0)
        if name in self._grayscale:
            return np.full((max_edge // 2, max_edge), level, dtype=np.uint8)
        return np.full((max_edge // 2, max_edge, 3), level, dtype=np.uint8)


class RecordingDisplaySink:
    """DisplaySink keeping mosaics, and the threads that showed them, in memory."""

    def __init__(self, fail: bool = False) -> None:
        self._fail = fail
        self._lock = threading.Lock()
        self.mosaics: List[np.ndarray] = []
        self.thread_names: List[str] = []

    def show(self, mosaic: np.ndarray) -> None:
        if self._fail:
            raise RenderError("no display available")
        with self._lock:
            self.mosaics.append(mosaic)
            self.thread_names.append(threading.current_thread().name)


def make_record(path: str, content_hash: Optional[str] = None) -> ImageRecord:
    now = utc_now()
    return ImageRecord(
        path=path,
        creation_timestamp=now,
        processing_timestamp=now,
        content_hash=content_hash or f"hash-{os.path.basename(path)}",
    )


@pytest.fixture
def fake_detector() -> FakeDetector:
    return FakeDetector()


@pytest.fixture
def two_dir_scenario(tmp_path):
    """Two roots: a.jpg (2 faces) in one, b.jpg (0 faces) and c.txt in the other."""
    first = tmp_path / "first"
    second = tmp_path / "second"
    write_jpeg(first / "a.jpg", 200)
    write_jpeg(second / "b.jpg", 0)
    (second / "c.txt").write_text("not an image", encoding="utf-8")
    return first, second
