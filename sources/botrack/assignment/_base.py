from __future__ import annotations

import typing as T
from abc import abstractmethod

import torch

__all__ = ["Assignment", "AssignmentResult"]

AssignmentResult: T.TypeAlias = T.Tuple[torch.Tensor, torch.Tensor, torch.Tensor]


class Assignment(torch.nn.Module):
    """
    Solves a linear assignment problem (LAP) over a cost matrix, where only
    pairs with a cost below ``threshold`` may be matched.
    """

    threshold: float

    def __init__(self, threshold: float = torch.inf):
        super().__init__()

        self.threshold = float(threshold)

    def extra_repr(self) -> str:
        return f"threshold={self.threshold}"

    def forward(self, cost_matrix: torch.Tensor) -> AssignmentResult:
        """
        Solve the cost matrix

        Parameters
        ----------
        cost_matrix
            Cost matrix (NxM) to solve

        Returns
        -------
            Tuple of matches (K x 2) as row-column pairs, unmatched rows and
            unmatched columns. Indices refer to the ordering of the input.
        """
        if cost_matrix.ndim != 2:
            msg = f"Cost matrix must be 2-dimensional! Got shape {tuple(cost_matrix.shape)}"
            raise ValueError(msg)
        if min(cost_matrix.shape) == 0:
            return self._no_match(cost_matrix)

        cost_matrix = cost_matrix.detach()
        cost_matrix = torch.where(cost_matrix < self.threshold, cost_matrix, torch.inf)

        return self._assign(cost_matrix)

    @staticmethod
    def _no_match(cost_matrix: torch.Tensor) -> AssignmentResult:
        cs_num, ds_num = cost_matrix.shape
        device = cost_matrix.device
        return (
            torch.empty((0, 2), dtype=torch.long, device=device),
            torch.arange(cs_num, dtype=torch.long, device=device),
            torch.arange(ds_num, dtype=torch.long, device=device),
        )

    @abstractmethod
    def _assign(self, cost_matrix: torch.Tensor) -> AssignmentResult:
        """
        Solve a non-empty cost matrix, where entries that may not be matched
        are set to infinity.
        """
        raise NotImplementedError
