"""
Exception types for the face scan pipeline.

Per-item errors (DecodeError, InferenceError) are raised by the capability
implementations and handled by the dispatcher according to its failure
policy. DetectionFailedError is what the dispatcher raises in fail-fast mode.
"""


class FaceScanError(Exception):
    """Base class for all pipeline errors."""


class DecodeError(FaceScanError):
    """An image file could not be decoded (corrupt or unsupported format)."""


class InferenceError(FaceScanError):
    """The detection backend failed on a raster."""


class RenderError(FaceScanError):
    """The display sink failed to render a preview. Never fatal."""


class DetectionFailedError(FaceScanError):
    """A per-image failure that aborted the run (fail-fast policy).

    Attributes:
        path: Source path of the image that failed.
        cause: The underlying per-item exception.
    """

    def __init__(self, path: str, cause: BaseException) -> None:
        self.path = path
        self.cause = cause
        super().__init__(f"Detection failed for '{path}': {cause}")
