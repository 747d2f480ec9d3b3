"""
Serialization for the face scan pipeline.

Responsibility:
    Export a ScanReport to structured file formats (JSON, CSV) for
    downstream consumption or offline analysis.

Non-goals:
    - No rendering, display, or detection logic.
    - No streaming output; complete files are written once the run is done.
"""

import csv
import json
import logging
from pathlib import Path

from facescan.aggregator import ScanReport

logger = logging.getLogger(__name__)

CSV_FIELDS = [
    "source_path",
    "content_hash",
    "detection_id",
    "x",
    "y",
    "width",
    "height",
    "confidence",
]


def save_json(report: ScanReport, output_path: str) -> None:
    """Export a report to a JSON file.

    Output schema:
        {
            "images": [
                {
                    "id": ..., "source_path": ..., "content_hash": ..., "timestamp": ...,
                    "detections": [
                        {"id": ..., "x": ..., "y": ..., "width": ..., "height": ..., "confidence": ...}
                    ]
                }
            ],
            "failures": [{"path": ..., "reason": ...}],
            "total_files": N,
            "total_faces": M,
            ...
        }

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    payload = report.to_dict()
    payload["images"].sort(key=lambda image: image["source_path"])

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info(
        "JSON output saved: %s (%d images, %d faces)",
        output_path, report.file_count, report.face_count,
    )


def save_csv(report: ScanReport, output_path: str) -> None:
    """Export a report to a CSV file with one row per detected face.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    # File names that are not valid UTF-8 are written with backslash escapes
    with open(output_path, "w", newline="", encoding="utf-8", errors="backslashreplace") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()

        total = 0
        for result in sorted(report.results, key=lambda r: r.source_path):
            for det in result.detections:
                row = det.to_dict()
                writer.writerow({
                    "source_path": result.source_path,
                    "content_hash": result.content_hash,
                    "detection_id": row.pop("id"),
                    **row,
                })
                total += 1

    logger.info("CSV output saved: %s (%d rows)", output_path, total)


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
