r"""
Fusion of geometric and appearance costs.

The appearance cost is only trusted for pairs that are plausible in terms of
geometry. A candidate/detection pair is *trusted* when

- its IoU cost does not exceed the proximity threshold,
- its appearance cost does not exceed the appearance threshold, and
- the detection lies within the motion gate of the candidate (when gated).

Trusted pairs are scored with

.. math::

    C = \lambda C_{geo} + (1 - \lambda) C_{app}

while the appearance term of all other pairs is saturated, leaving only the
geometric cost. Enabling appearance hence never changes the cost of a pair
that fails the gates.
"""

from __future__ import annotations

import typing as T

import torch
from tensordict import TensorDictBase
from torch import Tensor

from ..consts import KEY_EMBEDDINGS, KEY_SCORES
from ..debug import check_debug_enabled
from .appearance import EmbeddingDistance
from .base_cost import Cost
from .iou import BoxIoU
from .motion import MotionGate
from .score import fuse_score

__all__ = ["FusedCost", "fuse_iou_with_embedding"]


class FusedCost(Cost):
    """
    Cost used for the association of high-confidence detections, combining the
    score-weighted IoU cost with the appearance cost.
    """

    proximity_thresh: T.Final[float]
    appearance_thresh: T.Final[float]
    fusion_lambda: T.Final[float]
    with_score: T.Final[bool]

    def __init__(
        self,
        proximity_thresh: float = 0.5,
        appearance_thresh: float = 0.25,
        fusion_lambda: float = 0.98,
        with_score: bool = True,
        motion_gate: MotionGate | None = None,
    ):
        super().__init__(required_fields=[])

        if not 0.0 <= fusion_lambda <= 1.0:
            msg = f"Fusion weight must be in range [0, 1]! Got: {fusion_lambda}"
            raise ValueError(msg)

        self.iou = BoxIoU()
        self.appearance = EmbeddingDistance()
        self.motion_gate = motion_gate

        self.proximity_thresh = proximity_thresh
        self.appearance_thresh = appearance_thresh
        self.fusion_lambda = fusion_lambda
        self.with_score = with_score

        self.required_fields = sorted(
            set(self.iou.required_fields)
            | ({KEY_SCORES} if with_score else set())
            | (set(motion_gate.required_fields) if motion_gate is not None else set())
        )

    def geometric(self, cs: TensorDictBase, ds: TensorDictBase) -> T.Tuple[Tensor, Tensor]:
        """
        Returns the raw IoU cost and the (score-fused) geometric cost.
        """
        iou_cost = self.iou(cs, ds)
        if self.with_score and iou_cost.numel() > 0:
            return iou_cost, fuse_score(iou_cost, ds.get(KEY_SCORES))
        return iou_cost, iou_cost

    def forward(self, cs: TensorDictBase, ds: TensorDictBase) -> Tensor:
        iou_cost, geo_cost = self.geometric(cs, ds)
        if geo_cost.numel() == 0:
            return geo_cost
        if KEY_EMBEDDINGS not in cs.keys() or KEY_EMBEDDINGS not in ds.keys():
            return geo_cost

        # Cosine distance lies in [0, 2], halve to match the geometric range
        app_cost = self.appearance(cs, ds) / 2.0

        trusted = (iou_cost <= self.proximity_thresh) & (
            app_cost <= self.appearance_thresh
        )
        if self.motion_gate is not None:
            trusted &= self.motion_gate(cs, ds).to(trusted.device)

        if check_debug_enabled():
            print(
                f"Fusing appearance: {int(trusted.sum())}/{trusted.numel()} "
                "pairs pass the proximity, appearance and motion gates"
            )

        return fuse_iou_with_embedding(geo_cost, app_cost, trusted, self.fusion_lambda)


def fuse_iou_with_embedding(
    geo_cost: Tensor, app_cost: Tensor, trusted: Tensor, fusion_lambda: float
) -> Tensor:
    """
    Combine geometric and appearance costs.

    Parameters
    ----------
    geo_cost
        Geometric cost matrix (N x M).
    app_cost
        Appearance cost matrix (N x M).
    trusted
        Boolean mask (N x M) of pairs for which the appearance cost is trusted.
    fusion_lambda
        Weight of the geometric cost.

    Returns
    -------
        Fused cost matrix (N x M).
    """
    app_cost = torch.where(trusted, app_cost, torch.ones_like(app_cost))
    fused = fusion_lambda * geo_cost + (1.0 - fusion_lambda) * app_cost
    return torch.where(trusted, fused, geo_cost)
