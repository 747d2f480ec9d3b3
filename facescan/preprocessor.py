"""
Preprocessing for the face scan pipeline.

Responsibility:
    Decode an image file into an RGB raster bounded by a maximum edge
    length, and convert rasters into DNN input blobs.

Non-goals:
    - No inference or coordinate mapping.
    - No directory traversal.

Hard-coded:
    - Rasters handed to detectors are RGB uint8 (H, W, 3).
    - Resizing uses nearest-neighbor interpolation and always scales the
      longer edge to exactly max_edge (small images are scaled up).
"""

import os
from typing import Protocol, Tuple, Union

import cv2
import numpy as np

from facescan.config import ModelConfig
from facescan.errors import DecodeError

PathLike = Union[str, os.PathLike]


class ImageDecoder(Protocol):
    """Capability: decode a file into a bounded-size RGB raster."""

    def decode(self, path: PathLike, max_edge: int) -> np.ndarray:
        ...


def scale_dimensions(width: int, height: int, max_edge: int) -> Tuple[int, int]:
    """Scale (width, height) so the longer edge equals max_edge, keeping aspect ratio.

    Raises:
        ValueError: If any dimension is not positive.
    """
    if width <= 0 or height <= 0 or max_edge <= 0:
        raise ValueError(
            f"Dimensions must be positive, got {width}x{height} (max_edge={max_edge})."
        )

    scale = max_edge / max(width, height)
    new_w = max(1, int(round(width * scale)))
    new_h = max(1, int(round(height * scale)))
    return new_w, new_h


def resize_to_max_edge(frame: np.ndarray, max_edge: int) -> np.ndarray:
    """Resize a raster so its longer edge is max_edge pixels (nearest-neighbor)."""
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot resize an empty frame. "
            "Ensure the image was decoded successfully."
        )

    h, w = frame.shape[:2]
    new_w, new_h = scale_dimensions(w, h, max_edge)
    if (new_w, new_h) == (w, h):
        return frame
    return cv2.resize(frame, (new_w, new_h), interpolation=cv2.INTER_NEAREST)


def load_image(path: PathLike) -> np.ndarray:
    """Read an image file as an RGB uint8 array.

    The file is read by Python and decoded from memory, so any name the
    filesystem returns (including undecodable bytes) can be opened.

    Raises:
        OSError: If the file cannot be read.
        DecodeError: If OpenCV cannot decode the file contents.
    """
    with open(path, "rb") as f:
        buffer = np.frombuffer(f.read(), dtype=np.uint8)

    if buffer.size == 0:
        raise DecodeError(f"Can't decode empty file at '{os.fspath(path)}'")

    try:
        frame = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
    except cv2.error as e:
        raise DecodeError(f"Can't decode image at '{os.fspath(path)}': {e}") from e
    if frame is None:
        raise DecodeError(f"Can't decode image at '{os.fspath(path)}'")
    return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)


class OpenCvDecoder:
    """ImageDecoder backed by cv2.imdecode and cv2.resize.

    Formats OpenCV cannot read (HEIC on most builds) raise DecodeError and
    are handled by the dispatcher's failure policy.
    """

    def decode(self, path: PathLike, max_edge: int) -> np.ndarray:
        frame = load_image(path)
        try:
            return resize_to_max_edge(frame, max_edge)
        except (ValueError, cv2.error) as e:
            raise DecodeError(f"Can't resize image at '{os.fspath(path)}': {e}") from e


def preprocess(frame: np.ndarray, config: ModelConfig) -> np.ndarray:
    """Convert an RGB raster into a DNN input blob.

    Args:
        frame: Input image as an RGB numpy array (H, W, 3).
        config: ModelConfig providing input_size, scale_factor, and mean_values.

    Returns:
        A 4D numpy array of shape (1, 3, H, W) with dtype float32,
        ready to be passed to net.setInput().

    Raises:
        ValueError: If the frame is empty or has unexpected dimensions.
    """
    if frame is None or frame.size == 0:
        raise ValueError(
            "Cannot preprocess an empty frame. "
            "Ensure the input source is providing valid frames."
        )

    blob = cv2.dnn.blobFromImage(
        image=frame,
        scalefactor=config.scale_factor,
        size=config.input_size,
        mean=config.mean_values,
        swapRB=True,   # Raster is RGB, the Caffe model expects BGR
        crop=False,
    )

    return blob
