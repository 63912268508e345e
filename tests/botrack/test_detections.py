from __future__ import annotations

import numpy as np
import pytest

from botrack import Detection, check_frame, clip_detections


def test_detection_normalizes_fields():
    det = Detection(tlwh=np.array([1, 2, 3, 4]), confidence=np.float32(0.5), class_id=np.int64(2))

    assert det.tlwh == (1.0, 2.0, 3.0, 4.0)
    assert isinstance(det.confidence, float)
    assert isinstance(det.class_id, int)
    assert np.allclose(det.xyxy, [1.0, 2.0, 4.0, 6.0])


def test_detection_rejects_bad_box():
    with pytest.raises(ValueError):
        Detection(tlwh=(1, 2, 3), confidence=0.5)


def test_from_array():
    rows = np.array([[0, 0, 10, 10, 0.9, 1], [5, 5, 10, 10, 0.3, 2]])
    embeddings = np.eye(2)

    dets = Detection.from_array(rows, embeddings)

    assert len(dets) == 2
    assert dets[1].class_id == 2
    assert dets[1].confidence == pytest.approx(0.3)
    assert np.allclose(dets[0].embedding, [1.0, 0.0])
    assert Detection.from_array(np.zeros((0, 6))) == []


def test_clip_detections_returns_copies(make_detection):
    det = make_detection(-5, -3, 500, 400)

    (clipped,) = clip_detections([det], (240, 320))

    assert clipped is not det
    assert det.tlwh == (-5.0, -3.0, 500.0, 400.0)
    assert clipped.tlwh == (0.0, 0.0, 319.0, 239.0)
    assert clipped.confidence == det.confidence


@pytest.mark.parametrize(
    "frame",
    [None, [[0, 0]], np.zeros((0, 10, 3)), np.zeros(5), np.zeros((2, 2, 2, 2))],
    ids=("none", "list", "empty", "vector", "4d"),
)
def test_check_frame_invalid(frame):
    with pytest.raises(ValueError):
        check_frame(frame)


def test_check_frame(frame):
    assert check_frame(frame) == (240, 320)
    assert check_frame(frame[..., 0]) == (240, 320)
