"""
Greedy assignment is a simple assignment algorithm that greedily assigns
detections to tracks, by selecting the best match at each step. This
algorithm is not guaranteed to find the optimal solution, but it is fast
and simple to implement.
"""

from __future__ import annotations

import typing as T

import torch
import typing_extensions as TX

from ._base import Assignment

__all__ = ["Greedy", "greedy_assignment"]


class Greedy(Assignment):
    """
    See :func:`.greedy_assignment` for details.
    """

    @TX.override
    def _assign(
        self, cost_matrix: torch.Tensor
    ) -> T.Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        return greedy_assignment(cost_matrix)


@torch.no_grad()
def greedy_assignment(
    cost_matrix: torch.Tensor,
) -> T.Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    """
    Assign pairs of rows and columns in order of increasing cost, until no
    finite entries remain. Ties are broken by row, then by column.

    Parameters
    ----------
    cost_matrix : torch.Tensor
        A 2D tensor representing the cost matrix, infinite entries may not be
        matched.

    Returns
    -------
    matches : torch.Tensor
        A tensor containing the indices of matched row-column pairs.
    unmatched_rows : torch.Tensor
        A tensor containing the indices of unmatched rows.
    unmatched_cols : torch.Tensor
        A tensor containing the indices of unmatched columns.
    """
    device = cost_matrix.device
    cost_matrix = cost_matrix.clone().to(torch.float64)
    N, M = cost_matrix.shape

    row_free = torch.ones(N, dtype=torch.bool, device=device)
    col_free = torch.ones(M, dtype=torch.bool, device=device)
    matches = []

    while True:
        min_val, idx = torch.min(cost_matrix.flatten(), dim=0)
        if not torch.isfinite(min_val):
            break
        row, col = int(idx) // M, int(idx) % M
        matches.append((row, col))

        row_free[row] = False
        col_free[col] = False
        cost_matrix[row, :] = torch.inf
        cost_matrix[:, col] = torch.inf

    matches.sort()
    return (
        torch.tensor(matches, dtype=torch.long, device=device).reshape(-1, 2),
        row_free.nonzero().flatten(),
        col_free.nonzero().flatten(),
    )
