"""
Configuration management for the face scan pipeline.

Provides a layered configuration system with the following precedence
(highest to lowest):

    CLI arguments > Environment variables > YAML config file > Defaults

Design constraints:
    - The system MUST run with zero configuration (safe defaults only).
    - Missing or invalid values fail early and loudly.
    - No scanning, detection logic, or model loading belongs here.

Non-goals:
    - No dynamic reloading.
    - No database-backed or remote configuration.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Project root resolution
# ---------------------------------------------------------------------------
# Resolved relative to this file's location: facescan/config.py → project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def get_project_root() -> Path:
    """Return the resolved project root directory."""
    return _PROJECT_ROOT


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScanConfig:
    """Directory traversal configuration.

    Attributes:
        extensions: Allowlist of image extensions, lower-case, without dot.
        max_depth: Maximum directory depth below each root to descend into.
        follow_symlinks: Whether symlinked directories are traversed.
    """

    extensions: Tuple[str, ...] = ("jpg", "jpeg", "heic")
    max_depth: int = 64
    follow_symlinks: bool = False


@dataclass(frozen=True)
class ModelConfig:
    """SSD model configuration (used by the 'ssd' detector only).

    Attributes:
        prototxt_path: Path to the .prototxt network definition (relative to project root).
        weights_path: Path to the .caffemodel weights file (relative to project root).
        backend: Compute backend, 'cpu' or 'cuda'.
        input_size: Spatial dimensions (width, height) for the DNN input blob.
        mean_values: Per-channel mean subtraction values (BGR order).
        scale_factor: Pixel value scale factor applied during blob creation.
    """

    prototxt_path: str = "models/deploy.prototxt"
    weights_path: str = "models/res10_300x300_ssd_iter_140000.caffemodel"
    backend: str = "cpu"
    input_size: Tuple[int, int] = (300, 300)
    mean_values: Tuple[float, float, float] = (104.0, 177.0, 123.0)
    scale_factor: float = 1.0


@dataclass(frozen=True)
class DetectionConfig:
    """Detector selection and thresholds.

    Attributes:
        detector: Detection backend, 'haar' (bundled with OpenCV) or 'ssd'.
        confidence_threshold: Minimum confidence to accept an SSD detection.
        haar_scale_factor: Image pyramid scale step for the Haar cascade.
        haar_min_neighbors: Neighbor count required to keep a Haar candidate.
        haar_min_size: Smallest face (width, height) the Haar cascade reports.
    """

    detector: str = "haar"
    confidence_threshold: float = 0.5
    haar_scale_factor: float = 1.1
    haar_min_neighbors: int = 5
    haar_min_size: Tuple[int, int] = (30, 30)


@dataclass(frozen=True)
class DispatchConfig:
    """Batch dispatch configuration.

    Attributes:
        workers: Worker pool size; also the batch size.
        failure_policy: 'best_effort' drops failed images and continues,
                        'fail_fast' aborts the run on the first failure.
        max_edge: Longer edge, in pixels, images are resized to before detection.
        deduplicate: Detect only the first file of each distinct content hash.
    """

    workers: int = 4
    failure_policy: str = "best_effort"
    max_edge: int = 512
    deduplicate: bool = False


@dataclass(frozen=True)
class OutputConfig:
    """Output behavior configuration.

    Attributes:
        mode: Output mode(s). Supports multiple comma-separated values:
              'summary', 'preview', 'save_json', 'save_csv'.
              Example: "summary,save_json"
        save_path: Directory where output artifacts are written.
    """

    mode: str = "summary"
    save_path: str = "output/"

    @property
    def modes(self) -> set:
        return set(m.strip() for m in self.mode.split(","))


@dataclass(frozen=True)
class VisualizationConfig:
    """Preview mosaic rendering parameters.

    Attributes:
        box_color: BGR color tuple for bounding boxes.
        thickness: Line thickness in pixels.
        show_confidence: Whether to render the confidence score label.
        tile_size: Edge length of each square mosaic tile.
        mosaic_columns: Number of tiles per mosaic row.
    """

    box_color: Tuple[int, int, int] = (0, 255, 0)
    thickness: int = 2
    show_confidence: bool = True
    tile_size: int = 256
    mosaic_columns: int = 4


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration.

    Aggregates all sub-configurations into a single, frozen object.
    """

    scan: ScanConfig = field(default_factory=ScanConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

_VALID_BACKENDS = {"cpu", "cuda"}
_VALID_DETECTORS = {"haar", "ssd"}
_VALID_FAILURE_POLICIES = {"best_effort", "fail_fast"}
_VALID_OUTPUT_MODES = {"summary", "preview", "save_json", "save_csv"}


def validate_config(config: AppConfig) -> None:
    """Validate configuration values. Raises ValueError on invalid state."""

    if not config.scan.extensions:
        raise ValueError("scan.extensions must contain at least one extension.")

    if any(ext != ext.lower() or ext.startswith(".") for ext in config.scan.extensions):
        raise ValueError(
            f"scan.extensions must be lower-case and without a leading dot, "
            f"got {config.scan.extensions}."
        )

    if config.scan.max_depth < 0:
        raise ValueError(
            f"scan.max_depth must be zero or positive, got {config.scan.max_depth}."
        )

    if config.model.backend not in _VALID_BACKENDS:
        raise ValueError(
            f"Invalid model.backend: '{config.model.backend}'. "
            f"Must be one of {_VALID_BACKENDS}."
        )

    if config.detection.detector not in _VALID_DETECTORS:
        raise ValueError(
            f"Invalid detection.detector: '{config.detection.detector}'. "
            f"Must be one of {_VALID_DETECTORS}."
        )

    if config.dispatch.failure_policy not in _VALID_FAILURE_POLICIES:
        raise ValueError(
            f"Invalid dispatch.failure_policy: '{config.dispatch.failure_policy}'. "
            f"Must be one of {_VALID_FAILURE_POLICIES}."
        )

    invalid_modes = config.output.modes - _VALID_OUTPUT_MODES
    if invalid_modes:
        raise ValueError(
            f"Invalid output.mode(s): {invalid_modes}. "
            f"Valid modes: {_VALID_OUTPUT_MODES}. "
            f"Use comma-separated values for multiple outputs."
        )

    if not (0.0 <= config.detection.confidence_threshold <= 1.0):
        raise ValueError(
            f"detection.confidence_threshold must be in [0.0, 1.0], "
            f"got {config.detection.confidence_threshold}."
        )

    if config.detection.haar_scale_factor <= 1.0:
        raise ValueError(
            f"detection.haar_scale_factor must be greater than 1.0, "
            f"got {config.detection.haar_scale_factor}."
        )

    if config.dispatch.workers < 1:
        raise ValueError(
            f"dispatch.workers must be at least 1, got {config.dispatch.workers}."
        )

    if config.dispatch.max_edge <= 0:
        raise ValueError(
            f"dispatch.max_edge must be positive, got {config.dispatch.max_edge}."
        )

    if len(config.model.input_size) != 2:
        raise ValueError(
            f"model.input_size must be a (width, height) tuple, "
            f"got {config.model.input_size}."
        )

    if any(d <= 0 for d in config.model.input_size):
        raise ValueError(
            f"model.input_size dimensions must be positive, "
            f"got {config.model.input_size}."
        )

    if config.model.scale_factor <= 0:
        raise ValueError(
            f"model.scale_factor must be positive, "
            f"got {config.model.scale_factor}."
        )

    if config.visualization.tile_size <= 0 or config.visualization.mosaic_columns <= 0:
        raise ValueError(
            f"visualization.tile_size and visualization.mosaic_columns must be positive, "
            f"got {config.visualization.tile_size} and {config.visualization.mosaic_columns}."
        )


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------

def _parse_tuple(value, expected_len: int, cast_type=float):
    """Convert a list from YAML into a tuple of the expected type and length."""
    if isinstance(value, (list, tuple)):
        if len(value) != expected_len:
            raise ValueError(
                f"Expected {expected_len} values, got {len(value)}: {value}"
            )
        return tuple(cast_type(v) for v in value)
    return value


def _parse_bool(value) -> bool:
    """Accept YAML booleans as well as env-style strings ('true', '0', ...)."""
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _parse_extensions(value) -> Tuple[str, ...]:
    """Accept a YAML list or a comma-separated string; normalize case and dots."""
    if isinstance(value, str):
        value = value.split(",")
    return tuple(str(v).strip().lower().lstrip(".") for v in value if str(v).strip())


def _build_scan_config(raw: dict) -> ScanConfig:
    """Build ScanConfig from a raw YAML dict."""
    kwargs = {}
    if "extensions" in raw:
        kwargs["extensions"] = _parse_extensions(raw["extensions"])
    if "max_depth" in raw:
        kwargs["max_depth"] = int(raw["max_depth"])
    if "follow_symlinks" in raw:
        kwargs["follow_symlinks"] = _parse_bool(raw["follow_symlinks"])
    return ScanConfig(**kwargs)


def _build_model_config(raw: dict) -> ModelConfig:
    """Build ModelConfig from a raw YAML dict."""
    kwargs = {}
    if "prototxt_path" in raw:
        kwargs["prototxt_path"] = str(raw["prototxt_path"])
    if "weights_path" in raw:
        kwargs["weights_path"] = str(raw["weights_path"])
    if "backend" in raw:
        kwargs["backend"] = str(raw["backend"]).lower()
    if "input_size" in raw:
        kwargs["input_size"] = _parse_tuple(raw["input_size"], 2, int)
    if "mean_values" in raw:
        kwargs["mean_values"] = _parse_tuple(raw["mean_values"], 3, float)
    if "scale_factor" in raw:
        kwargs["scale_factor"] = float(raw["scale_factor"])
    return ModelConfig(**kwargs)


def _build_detection_config(raw: dict) -> DetectionConfig:
    """Build DetectionConfig from a raw YAML dict."""
    kwargs = {}
    if "detector" in raw:
        kwargs["detector"] = str(raw["detector"]).lower()
    if "confidence_threshold" in raw:
        kwargs["confidence_threshold"] = float(raw["confidence_threshold"])
    if "haar_scale_factor" in raw:
        kwargs["haar_scale_factor"] = float(raw["haar_scale_factor"])
    if "haar_min_neighbors" in raw:
        kwargs["haar_min_neighbors"] = int(raw["haar_min_neighbors"])
    if "haar_min_size" in raw:
        kwargs["haar_min_size"] = _parse_tuple(raw["haar_min_size"], 2, int)
    return DetectionConfig(**kwargs)


def _build_dispatch_config(raw: dict) -> DispatchConfig:
    """Build DispatchConfig from a raw YAML dict."""
    kwargs = {}
    if "workers" in raw:
        kwargs["workers"] = int(raw["workers"])
    if "failure_policy" in raw:
        kwargs["failure_policy"] = str(raw["failure_policy"]).lower()
    if "max_edge" in raw:
        kwargs["max_edge"] = int(raw["max_edge"])
    if "deduplicate" in raw:
        kwargs["deduplicate"] = _parse_bool(raw["deduplicate"])
    return DispatchConfig(**kwargs)


def _build_output_config(raw: dict) -> OutputConfig:
    """Build OutputConfig from a raw YAML dict."""
    kwargs = {}
    if "mode" in raw:
        kwargs["mode"] = str(raw["mode"]).lower()
    if "save_path" in raw:
        kwargs["save_path"] = str(raw["save_path"])
    return OutputConfig(**kwargs)


def _build_visualization_config(raw: dict) -> VisualizationConfig:
    """Build VisualizationConfig from a raw YAML dict."""
    kwargs = {}
    if "box_color" in raw:
        kwargs["box_color"] = _parse_tuple(raw["box_color"], 3, int)
    if "thickness" in raw:
        kwargs["thickness"] = int(raw["thickness"])
    if "show_confidence" in raw:
        kwargs["show_confidence"] = _parse_bool(raw["show_confidence"])
    if "tile_size" in raw:
        kwargs["tile_size"] = int(raw["tile_size"])
    if "mosaic_columns" in raw:
        kwargs["mosaic_columns"] = int(raw["mosaic_columns"])
    return VisualizationConfig(**kwargs)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------

_ENV_PREFIX = "FACE_SCAN_"


def _apply_env_overrides(raw: dict) -> dict:
    """Apply environment variable overrides to the raw config dict.

    Environment variables follow the pattern:
        FACE_SCAN_DISPATCH_WORKERS=8
        FACE_SCAN_DISPATCH_FAILURE_POLICY=fail_fast

    The variable name maps to the nested config key by replacing
    underscores after the section name with dots.
    """
    env_map = {
        f"{_ENV_PREFIX}SCAN_EXTENSIONS": ("scan", "extensions"),
        f"{_ENV_PREFIX}SCAN_MAX_DEPTH": ("scan", "max_depth"),
        f"{_ENV_PREFIX}SCAN_FOLLOW_SYMLINKS": ("scan", "follow_symlinks"),
        f"{_ENV_PREFIX}MODEL_BACKEND": ("model", "backend"),
        f"{_ENV_PREFIX}DETECTION_DETECTOR": ("detection", "detector"),
        f"{_ENV_PREFIX}DETECTION_CONFIDENCE_THRESHOLD": ("detection", "confidence_threshold"),
        f"{_ENV_PREFIX}DISPATCH_WORKERS": ("dispatch", "workers"),
        f"{_ENV_PREFIX}DISPATCH_FAILURE_POLICY": ("dispatch", "failure_policy"),
        f"{_ENV_PREFIX}DISPATCH_MAX_EDGE": ("dispatch", "max_edge"),
        f"{_ENV_PREFIX}DISPATCH_DEDUPLICATE": ("dispatch", "deduplicate"),
        f"{_ENV_PREFIX}OUTPUT_MODE": ("output", "mode"),
        f"{_ENV_PREFIX}OUTPUT_SAVE_PATH": ("output", "save_path"),
    }

    for env_var, (section, key) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            raw.setdefault(section, {})[key] = value
            logger.debug("Config override from env: %s=%s", env_var, value)

    return raw


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate application configuration.

    Precedence (highest → lowest):
        Environment variables > YAML file > Hard-coded defaults

    Args:
        config_path: Path to a YAML configuration file. If None,
                     the system runs entirely on defaults (safe for
                     programmatic usage).

    Returns:
        A validated, frozen AppConfig instance.

    Raises:
        FileNotFoundError: If config_path is provided but does not exist.
        ValueError: If any configuration value is invalid.
        yaml.YAMLError: If the YAML file is malformed.
    """
    raw: dict = {}

    # --- Layer 1: YAML file ---
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.is_absolute():
            resolved = _PROJECT_ROOT / resolved

        if not resolved.is_file():
            raise FileNotFoundError(
                f"Configuration file not found: {resolved}. "
                f"Provide a valid path or omit to use defaults."
            )

        logger.info("Loading config from: %s", resolved)
        with open(resolved, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    # --- Layer 2: Environment variable overrides ---
    raw = _apply_env_overrides(raw)

    # --- Build typed configs ---
    config = AppConfig(
        scan=_build_scan_config(raw.get("scan", {})),
        model=_build_model_config(raw.get("model", {})),
        detection=_build_detection_config(raw.get("detection", {})),
        dispatch=_build_dispatch_config(raw.get("dispatch", {})),
        output=_build_output_config(raw.get("output", {})),
        visualization=_build_visualization_config(raw.get("visualization", {})),
    )

    # --- Validate ---
    validate_config(config)

    logger.debug("Configuration loaded: %s", config)
    return config
