"""
IoU-related assignment cost matrices.
"""

from __future__ import annotations

import numpy.typing as NP
import torch
from torch import Tensor
from torchvision.ops import box_iou

from ..consts import KEY_BOXES
from .base_cost import FieldCost

__all__ = ["BoxIoU", "iou_distance"]


class BoxIoU(FieldCost):
    """
    Computes the ``1 - IoU`` cost matrix between two sets of ``xyxy`` boxes.
    """

    def __init__(self, field: str = KEY_BOXES):
        super().__init__(field=field)

    def compute(self, cs: Tensor, ds: Tensor) -> Tensor:
        return iou_distance(cs, ds)


def iou_distance(cs: Tensor | NP.ArrayLike, ds: Tensor | NP.ArrayLike) -> Tensor:
    """
    Compute the IoU cost between ``xyxy`` boxes. Pairs of degenerate (zero-area)
    boxes have no overlap, i.e. the maximal cost of 1.

    Parameters
    ----------
    cs
        Boxes (N x 4).
    ds
        Boxes (M x 4).

    Returns
    -------
        Cost matrix (N x M) in range ``[0, 1]``.
    """
    cs = torch.as_tensor(cs, dtype=torch.float32).reshape(-1, 4)
    ds = torch.as_tensor(ds, dtype=torch.float32, device=cs.device).reshape(-1, 4)
    if cs.shape[0] == 0 or ds.shape[0] == 0:
        return torch.zeros((cs.shape[0], ds.shape[0]), dtype=torch.float32, device=cs.device)

    iou = torch.nan_to_num(box_iou(cs, ds), nan=0.0)
    return 1.0 - iou
