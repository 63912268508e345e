"""
Hungarian algorithm for solving the assignment problem, using the SciPy
implementation.
"""

from __future__ import annotations

import typing as T

import scipy.optimize
import typing_extensions as TX
from torch import Tensor

from ._base import Assignment
from ._utils import collect_assignment, finite_cost_array, tie_break_offsets

__all__ = ["Hungarian", "hungarian_assignment"]


class Hungarian(Assignment):
    r"""
    Implements the Hungarian algorithm for solving a linear assignment problem.
    """

    @TX.override
    def _assign(self, cost_matrix: Tensor) -> T.Tuple[Tensor, Tensor, Tensor]:
        return hungarian_assignment(cost_matrix)


def hungarian_assignment(cost_matrix: Tensor) -> T.Tuple[Tensor, Tensor, Tensor]:
    """
    Perform linear assignment using the SciPy implementation. Infinite entries
    are never matched.
    """
    cm, valid = finite_cost_array(cost_matrix)
    row_ind, col_ind = scipy.optimize.linear_sum_assignment(cm + tie_break_offsets(valid))

    return collect_assignment(row_ind, col_ind, valid, cost_matrix.device)
