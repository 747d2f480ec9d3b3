"""
Face detectors used by the scan pipeline.

Public contract:
    FaceDetector.detect(raster: np.ndarray) -> list[Detection]

Two interchangeable implementations are provided and selected once at
startup by build_detector():
    - HaarFaceDetector: OpenCV's bundled frontal-face Haar cascade. Needs no
      model download; reports no confidence (Detection.confidence is None).
    - SsdFaceDetector: SSD-ResNet10 via OpenCV DNN. Needs the Caffe model
      files; reports a confidence per face.

Constraints:
    - Input must be an RGB uint8 numpy array (H, W, 3).
    - detect() may be called concurrently from several worker threads.
      Each thread lazily gets its own network/classifier instance, since
      OpenCV's objects are not safe to share across threads.

Non-goals:
    - No file reading or decoding.
    - No visualization or output writing.
"""

import logging
import threading
from typing import List, Optional, Protocol

import cv2
import numpy as np

from facescan.config import AppConfig, DetectionConfig, ModelConfig, load_config
from facescan.errors import InferenceError
from facescan.model_loader import load_cascade, load_model
from facescan.postprocessor import postprocess, rects_to_detections
from facescan.preprocessor import preprocess
from facescan.records import Detection

logger = logging.getLogger(__name__)


class FaceDetector(Protocol):
    """Capability: locate faces in an RGB raster."""

    def detect(self, raster: np.ndarray) -> List[Detection]:
        ...


def validate_raster(raster: np.ndarray) -> None:
    """Validate that a raster meets the detector input contract.

    Raises:
        TypeError: If raster is not a numpy ndarray.
        ValueError: If raster is empty or has wrong dimensions.
    """
    if not isinstance(raster, np.ndarray):
        raise TypeError(
            f"Expected raster to be a numpy ndarray, "
            f"got {type(raster).__name__}. "
            f"Use an ImageDecoder to obtain rasters."
        )

    if raster.size == 0:
        raise ValueError(
            "Raster is empty (zero size). "
            "Ensure the image was decoded successfully."
        )

    if raster.ndim != 3:
        raise ValueError(
            f"Expected a 3-dimensional raster (H, W, C), "
            f"got {raster.ndim} dimensions with shape {raster.shape}. "
            f"Grayscale images must be converted to RGB first."
        )

    if raster.shape[2] != 3:
        raise ValueError(
            f"Expected 3 channels (RGB), got {raster.shape[2]} channels."
        )


class _ThreadLocalModel:
    """Holds one model instance per thread, created on first use."""

    def __init__(self, factory, initial=None) -> None:
        self._factory = factory
        self._local = threading.local()
        if initial is not None:
            self._local.model = initial

    def get(self):
        model = getattr(self._local, "model", None)
        if model is None:
            model = self._factory()
            self._local.model = model
        return model


class SsdFaceDetector:
    """Face detector using SSD-ResNet10 via OpenCV DNN.

    The constructor loads the model once to fail fast on missing files;
    worker threads load their own copies on first detect() call.
    """

    def __init__(
        self,
        model_config: Optional[ModelConfig] = None,
        confidence_threshold: float = 0.5,
    ) -> None:
        """Initialize the detector and load the model.

        Raises:
            FileNotFoundError: If model files are missing.
            RuntimeError: If the requested backend is unavailable.
        """
        self._model_config = model_config or ModelConfig()
        self._confidence_threshold = confidence_threshold

        self._nets = _ThreadLocalModel(
            lambda: load_model(self._model_config),
            initial=load_model(self._model_config),
        )

        logger.info(
            "SSD detector initialized (backend=%s, confidence_threshold=%.2f)",
            self._model_config.backend,
            confidence_threshold,
        )

    def detect(self, raster: np.ndarray) -> List[Detection]:
        """Detect faces in a single RGB raster.

        Returns:
            Detections sorted by confidence (descending); empty if none.

        Raises:
            TypeError, ValueError: If the raster violates the input contract.
            InferenceError: If the network fails.
        """
        validate_raster(raster)

        blob = preprocess(raster, self._model_config)
        try:
            net = self._nets.get()
            net.setInput(blob)
            output = net.forward()
        except cv2.error as e:
            raise InferenceError(f"SSD inference failed: {e}") from e

        h, w = raster.shape[:2]
        return postprocess(
            network_output=output,
            frame_width=w,
            frame_height=h,
            confidence_threshold=self._confidence_threshold,
        )


class HaarFaceDetector:
    """Face detector using OpenCV's frontal-face Haar cascade.

    Haar cascades produce no score, so every Detection has confidence None.
    """

    def __init__(self, config: Optional[DetectionConfig] = None) -> None:
        """Load the cascade.

        Raises:
            FileNotFoundError: If the bundled cascade file is missing.
            RuntimeError: If the cascade cannot be parsed.
        """
        self._config = config or DetectionConfig()

        self._cascades = _ThreadLocalModel(load_cascade, initial=load_cascade())

        logger.info(
            "Haar detector initialized (scale_factor=%.2f, min_neighbors=%d)",
            self._config.haar_scale_factor,
            self._config.haar_min_neighbors,
        )

    def detect(self, raster: np.ndarray) -> List[Detection]:
        validate_raster(raster)

        try:
            gray = cv2.cvtColor(raster, cv2.COLOR_RGB2GRAY)
            rects = self._cascades.get().detectMultiScale(
                gray,
                scaleFactor=self._config.haar_scale_factor,
                minNeighbors=self._config.haar_min_neighbors,
                minSize=tuple(self._config.haar_min_size),
            )
        except cv2.error as e:
            raise InferenceError(f"Haar cascade detection failed: {e}") from e

        return rects_to_detections(rects)


def build_detector(config: Optional[AppConfig] = None) -> FaceDetector:
    """Build the detector named by config.detection.detector.

    Args:
        config: Application configuration. If None, safe defaults are used.

    Raises:
        ValueError: If the detector name is unknown.
        FileNotFoundError, RuntimeError: If the model cannot be loaded.
    """
    if config is None:
        config = load_config()

    name = config.detection.detector
    if name == "haar":
        return HaarFaceDetector(config.detection)
    if name == "ssd":
        return SsdFaceDetector(config.model, config.detection.confidence_threshold)
    raise ValueError(f"Unknown detector: '{name}'. Expected 'haar' or 'ssd'.")
