from __future__ import annotations

import torch
from tensordict import TensorDictBase

from ..consts import KEY_SCORES
from .base_cost import Cost

__all__ = ["ScoreFusion", "fuse_score"]


class ScoreFusion(Cost):
    """
    Wraps a cost with range ``[0, 1]`` and weighs its similarity by the
    detection confidence, such that confident detections are cheaper to match.
    """

    def __init__(self, cost: Cost, field: str = KEY_SCORES):
        super().__init__(required_fields=[*cost.required_fields, field])

        self.cost = cost
        self.field = field

    def forward(self, cs: TensorDictBase, ds: TensorDictBase) -> torch.Tensor:
        cost_matrix = self.cost(cs, ds)
        if cost_matrix.numel() == 0:
            return cost_matrix
        return fuse_score(cost_matrix, ds.get(self.field))


def fuse_score(cost_matrix: torch.Tensor, scores: torch.Tensor) -> torch.Tensor:
    """
    Compute ``1 - (1 - cost) * score`` for every column.

    Parameters
    ----------
    cost_matrix
        Cost matrix (N x M) in range ``[0, 1]``.
    scores
        Detection confidences (M).
    """
    similarity = 1.0 - cost_matrix
    scores = scores.to(dtype=similarity.dtype, device=similarity.device)
    return 1.0 - similarity * scores.unsqueeze(0)
