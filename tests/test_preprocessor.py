"""
Tests for the preprocessing module.
"""

import cv2
import numpy as np
import pytest

from conftest import write_non_utf8_jpeg
from facescan.config import ModelConfig
from facescan.errors import DecodeError
from facescan.preprocessor import (
    OpenCvDecoder,
    load_image,
    preprocess,
    resize_to_max_edge,
    scale_dimensions,
)


@pytest.mark.parametrize(
    "size, max_edge, expected",
    [
        ((1024, 768), 512, (512, 384)),
        ((768, 1024), 512, (384, 512)),
        ((100, 50), 512, (512, 256)),
        ((512, 512), 512, (512, 512)),
    ],
)
def test_scale_dimensions(size, max_edge, expected):
    """The longer edge becomes max_edge and the aspect ratio is kept."""
    assert scale_dimensions(*size, max_edge) == expected


def test_scale_dimensions_rejects_empty():
    with pytest.raises(ValueError):
        scale_dimensions(0, 10, 512)


def test_resize_to_max_edge():
    frame = np.zeros((300, 600, 3), dtype=np.uint8)
    resized = resize_to_max_edge(frame, 200)
    assert resized.shape == (100, 200, 3)


def test_decoder_returns_rgb(tmp_path):
    """Decoded rasters are RGB and bounded by max_edge."""
    bgr = np.zeros((40, 80, 3), dtype=np.uint8)
    bgr[:, :, 0] = 255  # pure blue in BGR
    path = tmp_path / "blue.png"
    cv2.imwrite(str(path), bgr)

    raster = OpenCvDecoder().decode(path, 160)

    assert raster.shape == (80, 160, 3)
    assert raster.dtype == np.uint8
    assert raster[..., 2].min() == 255
    assert raster[..., 0].max() == 0


def test_undecodable_file_raises_decode_error(tmp_path):
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"not an image at all")

    with pytest.raises(DecodeError):
        load_image(path)
    with pytest.raises(DecodeError):
        OpenCvDecoder().decode(path, 512)


def test_empty_file_raises_decode_error(tmp_path):
    path = tmp_path / "empty.jpg"
    path.write_bytes(b"")

    with pytest.raises(DecodeError, match="empty"):
        load_image(path)


def test_missing_file_raises_os_error(tmp_path):
    with pytest.raises(OSError):
        load_image(tmp_path / "gone.jpg")


def test_decoder_reads_non_utf8_file_name(tmp_path):
    """File names that are not valid UTF-8 decode like any other file."""
    path = write_non_utf8_jpeg(tmp_path, 100)

    raster = OpenCvDecoder().decode(str(path), 64)

    assert raster.shape == (48, 64, 3)
    assert abs(float(raster.mean()) - 100) < 5


def test_preprocess_valid_input():
    """Test standard blob creation on a valid raster."""
    config = ModelConfig(
        input_size=(300, 300),
        scale_factor=1.0,
        mean_values=(104.0, 177.0, 123.0),
    )
    frame = np.zeros((480, 640, 3), dtype=np.uint8)
    frame[:, :, 1] = 255

    blob = preprocess(frame, config)

    assert isinstance(blob, np.ndarray)
    assert blob.shape == (1, 3, 300, 300)
    assert blob.dtype == np.float32


def test_preprocess_empty_frame():
    """Test that preprocessing rejects empty frames."""
    with pytest.raises(ValueError):
        preprocess(np.array([]), ModelConfig())


def test_preprocess_none_frame():
    """Test that preprocessing rejects None."""
    with pytest.raises(ValueError):
        preprocess(None, ModelConfig())
