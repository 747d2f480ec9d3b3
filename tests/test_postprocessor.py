"""
Tests for the postprocessing module.
"""

import numpy as np
import pytest

from facescan.postprocessor import postprocess, rects_to_detections


def test_postprocess_valid_detection():
    """Test parsing a valid detection tensor."""
    # [batch, class, conf, x1, y1, x2, y2], top-left quarter
    tensor = np.array([[[[0, 1, 0.95, 0.0, 0.0, 0.5, 0.5]]]], dtype=np.float32)

    detections = postprocess(
        network_output=tensor,
        frame_width=640,
        frame_height=480,
        confidence_threshold=0.5,
    )

    assert len(detections) == 1
    det = detections[0]
    assert det.confidence == pytest.approx(0.95, abs=1e-5)
    assert (det.bbox.x, det.bbox.y) == (0, 0)
    assert det.bbox.width == 320  # 0.5 * 640
    assert det.bbox.height == 240  # 0.5 * 480


def test_postprocess_confidence_filtering():
    """Test that low-confidence detections are ignored."""
    tensor = np.array([[[[0, 1, 0.4, 0.0, 0.0, 0.5, 0.5]]]], dtype=np.float32)

    detections = postprocess(
        network_output=tensor,
        frame_width=640,
        frame_height=480,
        confidence_threshold=0.5,
    )
    assert len(detections) == 0


def test_postprocess_clamping():
    """Test coordinate clamping to frame boundaries."""
    tensor = np.array([[[[0, 1, 0.9, -0.1, -0.1, 1.2, 1.2]]]], dtype=np.float32)

    detections = postprocess(
        network_output=tensor,
        frame_width=100,
        frame_height=100,
        confidence_threshold=0.5,
    )

    assert len(detections) == 1
    box = detections[0].bbox
    assert (box.x, box.y, box.x2, box.y2) == (0, 0, 99, 99)


def test_postprocess_degenerate_box():
    """Test that zero-area or inverted boxes are skipped."""
    tensor = np.array([[[[0, 1, 0.9, 0.5, 0.5, 0.4, 0.4]]]], dtype=np.float32)

    detections = postprocess(
        network_output=tensor,
        frame_width=100,
        frame_height=100,
        confidence_threshold=0.5,
    )
    assert len(detections) == 0


def test_postprocess_sorted_with_unique_ids():
    tensor = np.array([[[
        [0, 1, 0.6, 0.0, 0.0, 0.2, 0.2],
        [0, 1, 0.9, 0.5, 0.5, 0.7, 0.7],
    ]]], dtype=np.float32)

    detections = postprocess(tensor, 100, 100, 0.5)

    assert [round(d.confidence, 1) for d in detections] == [0.9, 0.6]
    assert detections[0].id != detections[1].id


def test_rects_to_detections_keep_order_without_confidence():
    """Rectangle detectors report no score and keep their own order."""
    rects = np.array([[40, 10, 20, 20], [5, 5, 10, 12]])

    detections = rects_to_detections(rects)

    assert [(d.bbox.x, d.bbox.y, d.bbox.width, d.bbox.height) for d in detections] == [
        (40, 10, 20, 20),
        (5, 5, 10, 12),
    ]
    assert all(d.confidence is None for d in detections)
    assert rects_to_detections(()) == []
