"""
Tests for content identity (hashing and ImageRecord construction).
"""

import hashlib

import pytest

from facescan import identity
from facescan.identity import build_image_record, compute_content_hash


def test_same_content_same_hash(tmp_path):
    """Identical bytes hash identically regardless of path or name."""
    first = tmp_path / "a.jpg"
    second = tmp_path / "nested" / "copy_of_a.JPG"
    second.parent.mkdir()
    first.write_bytes(b"\xff\xd8 same bytes")
    second.write_bytes(b"\xff\xd8 same bytes")

    assert compute_content_hash(first) == compute_content_hash(second)
    assert compute_content_hash(first) == compute_content_hash(first)


def test_different_content_different_hash(tmp_path):
    """Different bytes give different hashes."""
    first = tmp_path / "a.jpg"
    second = tmp_path / "b.jpg"
    first.write_bytes(b"one")
    second.write_bytes(b"two")

    assert compute_content_hash(first) != compute_content_hash(second)


def test_hash_is_sha256_of_full_file(tmp_path):
    """Chunked streaming yields the digest of the whole file."""
    payload = bytes(range(256)) * 1000
    path = tmp_path / "big.jpg"
    path.write_bytes(payload)

    expected = hashlib.sha256(payload).hexdigest()
    assert compute_content_hash(path, chunk_size=1000) == expected
    assert compute_content_hash(path) == expected
    assert len(expected) == 64


def test_unreadable_file_raises(tmp_path):
    """A missing file is a recoverable OSError."""
    with pytest.raises(OSError):
        build_image_record(tmp_path / "missing.jpg")


def test_record_fields(tmp_path):
    """Records carry the path, hash and aware timestamps."""
    path = tmp_path / "a.jpg"
    path.write_bytes(b"abc")

    record = build_image_record(path)

    assert record.path == str(path)
    assert record.content_hash == hashlib.sha256(b"abc").hexdigest()
    assert record.processing_timestamp.tzinfo is not None
    assert record.creation_timestamp.tzinfo is not None


def test_creation_time_falls_back_to_now(tmp_path, monkeypatch):
    """Without a filesystem creation time, the processing time is used."""
    path = tmp_path / "a.jpg"
    path.write_bytes(b"abc")
    monkeypatch.setattr(identity, "get_creation_timestamp", lambda p: None)

    record = build_image_record(path)

    assert record.creation_timestamp == record.processing_timestamp
