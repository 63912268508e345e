r"""
Tests for ``botrack.stages``.
"""

from __future__ import annotations

import pytest
import torch
from hypothesis import given, settings
from hypothesis import strategies as st
from tensordict import TensorDict

from botrack import assignment, costs, stages
from botrack.consts import KEY_BOXES


def _boxes(xyxy) -> TensorDict:
    boxes = torch.tensor(xyxy, dtype=torch.float32).reshape(-1, 4)
    return TensorDict({KEY_BOXES: boxes}, batch_size=[boxes.shape[0]])


@pytest.fixture()
def stage() -> stages.Association:
    return stages.Association(costs.BoxIoU(), assignment.Jonker(0.5))


def test_association(stage):
    cs = _boxes([(0, 0, 10, 10), (50, 50, 60, 60), (200, 200, 210, 210)])
    ds = _boxes([(51, 51, 61, 61), (1, 0, 11, 10), (100, 100, 110, 110)])

    result = stage(cs, ds)

    assert isinstance(result, stages.AssociationResult)
    assert result.matches == ((0, 1), (1, 0))
    assert result.unmatched_tracks == (2,)
    assert result.unmatched_detections == (2,)
    assert len(result) == 2


@pytest.mark.parametrize("shape", [(0, 2), (2, 0), (0, 0)])
def test_association_empty(stage, shape):
    cs = _boxes([(0, 0, 10, 10)] * shape[0])
    ds = _boxes([(0, 0, 10, 10)] * shape[1])

    result = stage(cs, ds)

    assert result == stages.AssociationResult.unmatched(*shape)


@settings(deadline=None, max_examples=30)
@given(
    num_cs=st.integers(min_value=0, max_value=6),
    num_ds=st.integers(min_value=0, max_value=6),
    seed=st.integers(min_value=0, max_value=2**16),
)
def test_association_partitions_inputs(num_cs, num_ds, seed):
    gen = torch.Generator().manual_seed(seed)

    def _random_boxes(num):
        xy = torch.rand((num, 2), generator=gen) * 100
        wh = torch.rand((num, 2), generator=gen) * 30 + 1
        return TensorDict({KEY_BOXES: torch.cat([xy, xy + wh], dim=1)}, batch_size=[num])

    stage = stages.Association(costs.BoxIoU(), assignment.Jonker(0.8))
    result = stage(_random_boxes(num_cs), _random_boxes(num_ds))

    rows = [i for i, _ in result.matches] + list(result.unmatched_tracks)
    cols = [j for _, j in result.matches] + list(result.unmatched_detections)
    assert sorted(rows) == list(range(num_cs))
    assert sorted(cols) == list(range(num_ds))
