"""
Face Scan: parallel face detection over photo collections.

Public API:
    - ScanPipeline: Runs scan → detect → aggregate over root directories.
    - ScanReport: Summary and per-image results of one run.
    - build_detector: Builds the configured face detector.
    - ImageRecord, Detection, DetectionResult: Data records.

Usage:
    from facescan import ScanPipeline

    report = ScanPipeline().run(["photos/"])
    for line in report.summary_lines():
        print(line)
"""

from facescan.aggregator import ScanReport
from facescan.detector import build_detector
from facescan.pipeline import ScanPipeline
from facescan.records import BoundingBox, Detection, DetectionResult, ImageRecord

__all__ = [
    "ScanPipeline",
    "ScanReport",
    "build_detector",
    "BoundingBox",
    "Detection",
    "DetectionResult",
    "ImageRecord",
]
