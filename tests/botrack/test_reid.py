r"""
Tests for ``botrack.reid``.
"""

from __future__ import annotations

import numpy as np
import pytest
import torch
import torch.nn as nn

from botrack import AppearanceExtractor, ReIDModel


class _MeanColor(nn.Module):
    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x.mean(dim=(2, 3))


@pytest.fixture()
def model() -> ReIDModel:
    return ReIDModel(_MeanColor(), input_size=(32, 16), batch_size=2)


def test_protocol(model):
    assert isinstance(model, AppearanceExtractor)


def test_extract(model, frame):
    frame[0:50, 0:50] = (255, 0, 0)
    frame[100:150, 100:150] = (0, 0, 255)
    tlwh = np.array([[0, 0, 50, 50], [100, 100, 50, 50], [0, 0, 50, 50]], dtype=np.float64)

    feats = model.extract(frame, tlwh)

    assert feats.shape == (3, 3)
    assert feats.dtype == np.float32
    assert np.allclose(np.linalg.norm(feats, axis=1), 1.0, atol=1e-5)
    assert np.allclose(feats[0], feats[2])
    assert not np.allclose(feats[0], feats[1])


def test_extract_out_of_frame(model, frame):
    feats = model.extract(frame, np.array([[-20, -20, 10, 10], [310, 230, 40, 40]]))

    assert feats.shape == (2, 3)
    assert np.isfinite(feats).all()


def test_extract_empty(model, frame):
    assert model.extract(frame, np.zeros((0, 4))).shape[0] == 0
