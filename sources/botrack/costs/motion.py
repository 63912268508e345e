from __future__ import annotations

import typing as T

import numpy as np
import torch
from tensordict import TensorDictBase

from ..consts import CHI2INV95, KEY_COVARIANCE, KEY_MEAN, KEY_XYWH
from ..kalman import KalmanFilter
from .base_cost import Cost

__all__ = ["MotionGate"]


class MotionGate(Cost):
    """
    Returns a matrix where each candidate/detection pair that lies within the
    gating radius of the candidate's predicted motion state is set to `True`,
    and all other pairs to `False`.

    The gating radius is the 0.95 quantile of the chi-square distribution of
    the squared Mahalanobis distance in measurement space.
    """

    only_position: T.Final[bool]
    threshold: T.Final[float]

    def __init__(self, kalman_filter: KalmanFilter, only_position: bool = False):
        super().__init__(required_fields=[KEY_MEAN, KEY_COVARIANCE, KEY_XYWH])

        self.kalman_filter = kalman_filter
        self.only_position = only_position
        self.threshold = CHI2INV95[2 if only_position else 4]

    def distance(self, cs: TensorDictBase, ds: TensorDictBase) -> torch.Tensor:
        """
        Squared Mahalanobis distance matrix (N x M).
        """
        cs_num, ds_num = cs.batch_size[0], ds.batch_size[0]
        if cs_num == 0 or ds_num == 0:
            return torch.zeros((cs_num, ds_num), dtype=torch.float64)

        means = cs.get(KEY_MEAN).cpu().numpy()
        covariances = cs.get(KEY_COVARIANCE).cpu().numpy()
        measurements = ds.get(KEY_XYWH).cpu().numpy()

        dist = np.full((cs_num, ds_num), np.inf)
        for i, (mean, cov) in enumerate(zip(means, covariances)):
            # Degenerate boxes have a singular covariance and are never gated in
            try:
                dist[i] = self.kalman_filter.gating_distance(
                    mean, cov, measurements, only_position=self.only_position
                )
            except np.linalg.LinAlgError:
                continue
        return torch.from_numpy(dist)

    def forward(self, cs: TensorDictBase, ds: TensorDictBase) -> torch.Tensor:
        return self.distance(cs, ds) <= self.threshold
