r"""
Common set-up for all tests.

Defines fixtures for synthetic frames and detections.
"""

from __future__ import annotations

import typing as T

import numpy as np
import pytest

from botrack import Detection

FRAME_SIZE: T.Final = (240, 320)


@pytest.fixture()
def frame() -> np.ndarray:
    """
    A blank BGR frame.
    """
    return np.zeros((*FRAME_SIZE, 3), dtype=np.uint8)


@pytest.fixture()
def textured_frame() -> np.ndarray:
    """
    A BGR frame with random blobs, such that camera motion can be estimated.
    """
    rng = np.random.default_rng(42)
    small = rng.integers(0, 255, (FRAME_SIZE[0] // 8, FRAME_SIZE[1] // 8), dtype=np.uint8)
    gray = np.kron(small, np.ones((8, 8), dtype=np.uint8))
    return np.repeat(gray[..., None], 3, axis=2)


@pytest.fixture()
def make_detection() -> T.Callable[..., Detection]:
    def _make(
        x: float,
        y: float,
        w: float = 20.0,
        h: float = 20.0,
        confidence: float = 0.9,
        class_id: int = 0,
        embedding: T.Sequence[float] | None = None,
    ) -> Detection:
        return Detection(
            tlwh=(x, y, w, h),
            confidence=confidence,
            class_id=class_id,
            embedding=None if embedding is None else np.asarray(embedding, dtype=np.float32),
        )

    return _make
