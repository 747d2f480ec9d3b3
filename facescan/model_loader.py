"""
Model loading for the face detectors.

Responsibility:
    Load detection models from disk, configure the compute backend, and
    return ready-to-infer OpenCV objects (cv2.dnn.Net for the SSD model,
    cv2.CascadeClassifier for the Haar cascade).

Non-goals:
    - No preprocessing, inference, or raster-level logic.
    - No automatic model downloading.
    - No fallback to alternative models.

Failure behavior:
    - Missing model files raise FileNotFoundError with the exact
      missing path and expected location.
    - Incompatible backend or unloadable cascade raises RuntimeError.
"""

import logging
from pathlib import Path

import cv2

from facescan.config import ModelConfig, get_project_root

logger = logging.getLogger(__name__)

_HAAR_CASCADE_FILE = "haarcascade_frontalface_default.xml"


def load_model(config: ModelConfig) -> cv2.dnn.Net:
    """Load and configure the SSD face detection model.

    Args:
        config: ModelConfig containing file paths and backend preference.

    Returns:
        A configured cv2.dnn.Net ready for inference.

    Raises:
        FileNotFoundError: If prototxt or weights file does not exist.
        RuntimeError: If the requested backend is unavailable.
    """
    project_root = get_project_root()

    prototxt = Path(config.prototxt_path)
    weights = Path(config.weights_path)

    # Resolve relative paths against project root
    if not prototxt.is_absolute():
        prototxt = project_root / prototxt
    if not weights.is_absolute():
        weights = project_root / weights

    if not prototxt.is_file():
        raise FileNotFoundError(
            f"Model prototxt not found.\n"
            f"  Expected: {prototxt}\n"
            f"  Provide the file or update 'model.prototxt_path' in your config."
        )

    if not weights.is_file():
        raise FileNotFoundError(
            f"Model weights not found.\n"
            f"  Expected: {weights}\n"
            f"  Download the weights file and place it at the path above,\n"
            f"  or update 'model.weights_path' in your config."
        )

    logger.debug("Loading model: prototxt=%s, weights=%s", prototxt, weights)
    net = cv2.dnn.readNetFromCaffe(str(prototxt), str(weights))

    if config.backend == "cuda":
        try:
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)
        except cv2.error as e:
            raise RuntimeError(
                f"Failed to set CUDA backend. Ensure OpenCV was built with "
                f"CUDA support (opencv-contrib-python or custom build).\n"
                f"  OpenCV error: {e}"
            ) from e
    else:
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)

    return net


def load_cascade() -> "cv2.CascadeClassifier":
    """Load the frontal-face Haar cascade bundled with opencv-python.

    Raises:
        FileNotFoundError: If the cascade file is not shipped with this OpenCV build.
        RuntimeError: If the cascade file exists but cannot be parsed.
    """
    cascade_path = Path(cv2.data.haarcascades) / _HAAR_CASCADE_FILE
    if not cascade_path.is_file():
        raise FileNotFoundError(
            f"Haar cascade not found.\n"
            f"  Expected: {cascade_path}\n"
            f"  Install opencv-python (which bundles cv2.data) or use the 'ssd' detector."
        )

    classifier = cv2.CascadeClassifier(str(cascade_path))
    if classifier.empty():
        raise RuntimeError(f"Failed to load Haar cascade from {cascade_path}.")
    return classifier
