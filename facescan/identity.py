"""
Content identity for discovered image files.

Responsibility:
    Build an ImageRecord for one file path: a SHA-256 digest of the file
    bytes plus creation and processing timestamps.

Non-goals:
    - No directory traversal (see scanner).
    - No image decoding.

Failure behavior:
    - An unreadable file raises OSError. Callers log and skip it.
    - A missing creation time is not an error; the processing time is used.
"""

import hashlib
import os
from datetime import datetime, timezone
from typing import Optional, Union

from facescan.records import ImageRecord, utc_now

# 1 MiB read buffer for streaming hashes
_CHUNK_SIZE = 1024 * 1024

PathLike = Union[str, os.PathLike]


def compute_content_hash(path: PathLike, chunk_size: int = _CHUNK_SIZE) -> str:
    """Compute the SHA-256 hex digest of a file's contents.

    The file is streamed in fixed-size chunks and never held in memory
    as a whole.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    sha256 = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


def get_creation_timestamp(path: PathLike) -> Optional[datetime]:
    """Return the file's creation time, or None if the platform does not expose it."""
    try:
        stat = os.stat(path)
    except OSError:
        return None

    birthtime = getattr(stat, "st_birthtime", None)
    if birthtime is None:
        return None
    return datetime.fromtimestamp(birthtime, tz=timezone.utc)


def build_image_record(path: PathLike) -> ImageRecord:
    """Build the ImageRecord for a single file.

    Args:
        path: Path to an image file.

    Returns:
        An ImageRecord whose content_hash depends only on the file bytes.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    now = utc_now()
    content_hash = compute_content_hash(path)
    created = get_creation_timestamp(path) or now

    return ImageRecord(
        path=os.fspath(path),
        creation_timestamp=created,
        processing_timestamp=now,
        content_hash=content_hash,
    )
