r"""
Various utilities for working with assignment problems.
"""

from __future__ import annotations

import numpy as np
import numpy.typing as NP
import torch
from torch import Tensor

__all__ = [
    "gather_total_cost",
    "finite_cost_array",
    "tie_break_offsets",
    "collect_assignment",
]


def gather_total_cost(cost_matrix: Tensor, assignment: Tensor) -> Tensor:
    """
    Gather the total cost of an assignment. The amounts to summing all the assigned
    items from the cost matrix.

    Parameters
    ----------
    cost_matrix: Tensor[N, M]
        The cost matrix.
    assignment: Tensor[K, 2]
        The assignment tensor of row-column pairs.

    Returns
    -------
    Tensor[*]
        The total cost of the assignment.
    """

    return cost_matrix[assignment[:, 0], assignment[:, 1]].sum()


def finite_cost_array(cost_matrix: Tensor) -> tuple[NP.NDArray[np.float64], NP.NDArray[np.bool_]]:
    """
    Convert a cost matrix to a contiguous ``float64`` array where infinite entries
    are replaced by a finite value that exceeds any feasible assignment, as the
    solver backends do not accept non-finite costs.

    Returns
    -------
        The finite cost array and the mask of originally finite entries.
    """
    cm = np.ascontiguousarray(cost_matrix.cpu().numpy(), dtype=np.float64)
    valid = np.isfinite(cm)
    if valid.any():
        span = float(np.abs(cm[valid]).max())
    else:
        span = 0.0
    fill = (span + 1.0) * (min(cm.shape) + 1)
    return np.where(valid, cm, fill), valid


def tie_break_offsets(valid: NP.NDArray[np.bool_], scale: float = 1e-9) -> NP.NDArray[np.float64]:
    """
    Offsets below ``scale`` that make solvers resolve equal-cost alternatives
    in input order: earlier rows are matched first, and each earlier row gets
    the lowest available column. Only valid entries are offset.
    """
    num_rows, num_cols = valid.shape
    if valid.size == 0:
        return np.zeros(valid.shape, dtype=np.float64)

    i = np.arange(num_rows, dtype=np.float64)[:, None]
    j = np.arange(num_cols, dtype=np.float64)[None, :]
    rank = j * (num_rows - i) + i * (num_rows * num_cols + 1)
    offsets = rank * (scale / (rank.max() + 1.0))
    return np.where(valid, offsets, 0.0)


def collect_assignment(
    rows: NP.ArrayLike, cols: NP.ArrayLike, valid: NP.NDArray[np.bool_], device: torch.device
) -> tuple[Tensor, Tensor, Tensor]:
    """
    Build the assignment result from candidate row-column pairs, dropping
    pairs that were not valid in the original cost matrix.
    """
    rows = np.asarray(rows, dtype=np.int64).reshape(-1)
    cols = np.asarray(cols, dtype=np.int64).reshape(-1)
    keep = valid[rows, cols]
    rows, cols = rows[keep], cols[keep]

    order = np.argsort(rows, kind="stable")
    matches = np.stack((rows[order], cols[order]), axis=1).reshape(-1, 2)

    num_rows, num_cols = valid.shape
    unmatched_rows = np.setdiff1d(np.arange(num_rows), rows)
    unmatched_cols = np.setdiff1d(np.arange(num_cols), cols)

    return (
        torch.from_numpy(matches).to(device=device, dtype=torch.long),
        torch.from_numpy(unmatched_rows).to(device=device, dtype=torch.long),
        torch.from_numpy(unmatched_cols).to(device=device, dtype=torch.long),
    )
