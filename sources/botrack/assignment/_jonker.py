from __future__ import annotations

import typing as T

import torch
import typing_extensions as TX
from lap import lapjv

from ._base import Assignment
from ._utils import collect_assignment, finite_cost_array, tie_break_offsets

__all__ = ["Jonker", "jonker_volgenant_assignment"]


class Jonker(Assignment):
    """
    Uses the Jonker-Volgenant algorithm to solve the linear assignment problem.
    """

    @TX.override
    def _assign(
        self, cost_matrix: torch.Tensor
    ) -> T.Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        return jonker_volgenant_assignment(cost_matrix, self.threshold)


def jonker_volgenant_assignment(
    cost_matrix: torch.Tensor, threshold: float = torch.inf
) -> T.Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    """
    Perform linear assignment with the ``lap`` implementation of the
    Jonker-Volgenant algorithm. Entries that are not finite or not below
    ``threshold`` are never matched.
    """
    device = cost_matrix.device
    cm, valid = finite_cost_array(cost_matrix)
    valid &= cm < threshold
    offsets = tie_break_offsets(valid)

    # Jonker algorithm, i.e. linear sum assignment (rows) -> (cols)
    if threshold < torch.inf:
        _, x, _ = lapjv(
            cm + offsets, extend_cost=True, cost_limit=threshold + float(offsets.max())
        )
    else:
        _, x, _ = lapjv(cm + offsets, extend_cost=True)

    rows = [ix for ix, mx in enumerate(x) if mx >= 0]
    cols = [x[ix] for ix in rows]

    return collect_assignment(rows, cols, valid, device)
