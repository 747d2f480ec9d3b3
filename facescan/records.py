"""
Record types for the face scan pipeline.

This module defines the immutable values that flow between pipeline
stages: ImageRecord (scanner output), BoundingBox and Detection (detector
output) and DetectionResult (dispatcher output). They are frozen,
serializable containers with no behavior beyond data access.

Non-goals:
    - No file I/O.
    - No rendering logic.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple


def _new_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ImageRecord:
    """A discovered image file plus its content identity.

    Attributes:
        path: Filesystem path, unique within one scan.
        creation_timestamp: Best-effort file creation time (UTC). Falls back
                            to the processing time when unavailable.
        processing_timestamp: Time the record was built (UTC).
        content_hash: SHA-256 hex digest of the full file contents.
    """

    path: str
    creation_timestamp: datetime
    processing_timestamp: datetime
    content_hash: str

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "path": self.path,
            "creation_timestamp": self.creation_timestamp.isoformat(),
            "processing_timestamp": self.processing_timestamp.isoformat(),
            "content_hash": self.content_hash,
        }


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Integer rectangle in pixel coordinates of the resized raster."""

    x: int
    y: int
    width: int
    height: int

    @property
    def x2(self) -> int:
        """Right edge (exclusive)."""
        return self.x + self.width

    @property
    def y2(self) -> int:
        """Bottom edge (exclusive)."""
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class Detection:
    """A single located face.

    Attributes:
        id: Unique identifier (uuid4 hex).
        bbox: Bounding box of the face.
        confidence: Detector score in [0.0, 1.0], or None when the
                    backend does not report one.
    """

    id: str
    bbox: BoundingBox
    confidence: Optional[float] = None

    @classmethod
    def create(cls, bbox: BoundingBox, confidence: Optional[float] = None) -> "Detection":
        """Build a Detection with a fresh id."""
        return cls(id=_new_id(), bbox=bbox, confidence=confidence)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            **self.bbox.to_dict(),
            "confidence": None if self.confidence is None else round(self.confidence, 4),
        }


@dataclass(frozen=True, slots=True)
class DetectionResult:
    """All detections found in one image.

    Attributes:
        id: Unique identifier (uuid4 hex).
        source_path: Path of the image the detections belong to.
        content_hash: Content identity of the source image.
        timestamp: Time the result was produced (UTC).
        detections: Detections in detector-reported order.
    """

    source_path: str
    content_hash: str
    detections: Tuple[Detection, ...] = ()
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def for_record(cls, record: ImageRecord, detections) -> "DetectionResult":
        """Build the result for an ImageRecord from a detector's output."""
        return cls(
            source_path=record.path,
            content_hash=record.content_hash,
            detections=tuple(detections),
        )

    @property
    def face_count(self) -> int:
        return len(self.detections)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_path": self.source_path,
            "content_hash": self.content_hash,
            "timestamp": self.timestamp.isoformat(),
            "detections": [d.to_dict() for d in self.detections],
        }
