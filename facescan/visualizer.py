"""
Preview rendering for the face scan pipeline.

Responsibility:
    Draw bounding boxes onto rasters, compose a batch of rasters into a
    single mosaic, and push mosaics to a display sink. Preview is a
    presentation side effect; detection results never depend on it.

Non-goals:
    - No file writing.
    - No detection or model logic.
"""

import logging
import math
import threading
from typing import Protocol, Sequence, Tuple

import cv2
import numpy as np

from facescan.config import VisualizationConfig
from facescan.errors import RenderError
from facescan.records import Detection

logger = logging.getLogger(__name__)

# Hard-coded rendering constants (cosmetic internals, not user-facing)
_FONT = cv2.FONT_HERSHEY_SIMPLEX
_FONT_SCALE = 0.5
_FONT_THICKNESS = 1
_LABEL_PADDING = 4
_WINDOW_NAME = "Face Scan"


class DisplaySink(Protocol):
    """Capability: show a composed BGR mosaic. Failures raise RenderError."""

    def show(self, mosaic: np.ndarray) -> None:
        ...


def draw_detections(
    frame: np.ndarray,
    detections: Sequence[Detection],
    config: VisualizationConfig,
) -> np.ndarray:
    """Draw bounding boxes and confidence labels onto a BGR frame.

    Args:
        frame: Input BGR image (not modified; a copy is returned).
        detections: Detections to render.
        config: Visualization parameters (color, thickness, labels).

    Returns:
        A new BGR numpy array with detections drawn.
    """
    annotated = frame.copy()

    for det in detections:
        box = det.bbox
        cv2.rectangle(
            annotated,
            (box.x, box.y),
            (box.x2, box.y2),
            color=config.box_color,
            thickness=config.thickness,
        )

        if not config.show_confidence or det.confidence is None:
            continue

        label = f"{det.confidence:.2f}"
        (text_w, text_h), _ = cv2.getTextSize(label, _FONT, _FONT_SCALE, _FONT_THICKNESS)

        # Label above the box, or below if too close to top
        label_y = box.y - _LABEL_PADDING
        if label_y - text_h - _LABEL_PADDING < 0:
            label_y = box.y2 + text_h + _LABEL_PADDING

        cv2.rectangle(
            annotated,
            (box.x, label_y - text_h - _LABEL_PADDING),
            (box.x + text_w + _LABEL_PADDING, label_y + _LABEL_PADDING),
            color=config.box_color,
            thickness=cv2.FILLED,
        )
        cv2.putText(
            annotated,
            label,
            (box.x + _LABEL_PADDING // 2, label_y),
            _FONT,
            _FONT_SCALE,
            (0, 0, 0),
            _FONT_THICKNESS,
            cv2.LINE_AA,
        )

    return annotated


def _fit_tile(frame: np.ndarray, tile_size: int) -> np.ndarray:
    """Letterbox a BGR frame into a square black tile."""
    tile = np.zeros((tile_size, tile_size, 3), dtype=np.uint8)
    h, w = frame.shape[:2]
    scale = tile_size / max(h, w)
    new_w, new_h = max(1, int(w * scale)), max(1, int(h * scale))
    resized = cv2.resize(frame, (new_w, new_h), interpolation=cv2.INTER_AREA)
    top = (tile_size - new_h) // 2
    left = (tile_size - new_w) // 2
    tile[top:top + new_h, left:left + new_w] = resized
    return tile


def compose_mosaic(
    items: Sequence[Tuple[np.ndarray, Sequence[Detection]]],
    config: VisualizationConfig,
) -> np.ndarray:
    """Compose (RGB raster, detections) pairs into one annotated BGR mosaic.

    Tiles are laid out row-major, config.mosaic_columns per row; unused
    cells stay black.

    Raises:
        ValueError: If items is empty.
    """
    if not items:
        raise ValueError("Cannot compose a mosaic from zero images.")

    size = config.tile_size
    columns = min(config.mosaic_columns, len(items))
    rows = math.ceil(len(items) / columns)
    mosaic = np.zeros((rows * size, columns * size, 3), dtype=np.uint8)

    for index, (raster, detections) in enumerate(items):
        bgr = cv2.cvtColor(raster, cv2.COLOR_RGB2BGR)
        tile = _fit_tile(draw_detections(bgr, detections, config), size)
        row, col = divmod(index, columns)
        mosaic[row * size:(row + 1) * size, col * size:(col + 1) * size] = tile

    return mosaic


class OpenCvDisplaySink:
    """DisplaySink drawing into a single OpenCV window.

    HighGUI must be driven from a single thread: BatchDispatcher calls
    show() only from the thread running run(). The lock keeps show() and
    close() exclusive.
    """

    def __init__(self, window_name: str = _WINDOW_NAME, wait_ms: int = 1) -> None:
        self._window_name = window_name
        self._wait_ms = wait_ms
        self._lock = threading.Lock()

    def show(self, mosaic: np.ndarray) -> None:
        with self._lock:
            try:
                cv2.imshow(self._window_name, mosaic)
                cv2.waitKey(self._wait_ms)
            except cv2.error as e:
                raise RenderError(f"Failed to render preview: {e}") from e

    def close(self) -> None:
        with self._lock:
            try:
                cv2.destroyWindow(self._window_name)
            except cv2.error as e:
                logger.debug("Preview window already closed: %s", e)

