r"""
Tests for ``botrack.gmc``.
"""

from __future__ import annotations

import numpy as np
import pytest

from botrack import GlobalMotionCompensation, GMCMethod


@pytest.mark.parametrize(
    ["name", "method"],
    [
        ("orb", GMCMethod.ORB),
        ("SIFT", GMCMethod.SIFT),
        ("ecc", GMCMethod.ECC),
        ("sparseOptFlow", GMCMethod.SPARSE_OPT_FLOW),
        ("sparse_opt_flow", GMCMethod.SPARSE_OPT_FLOW),
        ("none", GMCMethod.NONE),
        (None, GMCMethod.NONE),
        (GMCMethod.ECC, GMCMethod.ECC),
    ],
)
def test_parse_method(name, method):
    assert GMCMethod.parse(name) is method


def test_parse_unknown_method():
    with pytest.raises(ValueError):
        GMCMethod.parse("optical-magic")
    with pytest.raises(ValueError):
        GlobalMotionCompensation("optical-magic")


@pytest.mark.parametrize("method", ["orb", "sift", "ecc", "sparseOptFlow", "none"])
def test_first_frame_is_identity(method, textured_frame):
    gmc = GlobalMotionCompensation(method)
    H = gmc.apply(textured_frame)

    assert H.shape == (2, 3)
    assert np.allclose(H, np.eye(2, 3))


@pytest.mark.parametrize("method", ["orb", "sparseOptFlow", "ecc"])
def test_static_scene(method, textured_frame):
    gmc = GlobalMotionCompensation(method)
    gmc.apply(textured_frame)
    H = gmc.apply(textured_frame)

    assert H.shape == (2, 3)
    assert np.allclose(H, np.eye(2, 3), atol=0.5)


def test_translation_recovered(textured_frame):
    gmc = GlobalMotionCompensation("sparseOptFlow", downscale=1)
    shifted = np.roll(textured_frame, shift=4, axis=1)

    gmc.apply(textured_frame)
    H = gmc.apply(shifted)

    assert H[0, 2] == pytest.approx(4.0, abs=1.0)
    assert H[1, 2] == pytest.approx(0.0, abs=1.0)


def test_blank_frames_are_identity(frame):
    gmc = GlobalMotionCompensation("sparseOptFlow")
    gmc.apply(frame)
    H = gmc.apply(frame)

    assert np.allclose(H, np.eye(2, 3))


def test_reset(textured_frame):
    gmc = GlobalMotionCompensation("sparseOptFlow")
    gmc.apply(textured_frame)
    gmc.reset()

    assert gmc.prev_frame is None
    assert np.allclose(gmc.apply(np.roll(textured_frame, 8, axis=0)), np.eye(2, 3))
