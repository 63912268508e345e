from __future__ import annotations

import typing as T

import typing_extensions as TX
from tensordict import TensorDictBase

if T.TYPE_CHECKING:
    from ..assignment import Assignment
    from ..costs import Cost

from ..debug import check_debug_enabled
from .base_stage import AssociationResult, Stage

__all__ = ["Association"]


class Association(Stage):
    """
    An association stage matches candidate tracks to detections by solving the
    assignment problem over a cost matrix computed via a :class:`.Cost` module.
    """

    def __init__(self, cost: Cost, assignment: Assignment, name: str = "association") -> None:
        super().__init__(required_fields=cost.required_fields)

        self.cost = cost
        self.assignment = assignment
        self.name = name

    @TX.override
    def forward(self, cs: TensorDictBase, ds: TensorDictBase) -> AssociationResult:
        cs_num, ds_num = cs.batch_size[0], ds.batch_size[0]
        if check_debug_enabled():
            print(f"[{self.name}] associating {cs_num} candidates / {ds_num} detections")

        if cs_num == 0 or ds_num == 0:
            return AssociationResult.unmatched(cs_num, ds_num)

        cost_matrix = self.cost(cs, ds)
        matches, cs_fail_idx, ds_fail_idx = self.assignment(cost_matrix)

        result = AssociationResult(
            matches=tuple((int(i), int(j)) for i, j in matches.tolist()),
            unmatched_tracks=tuple(int(i) for i in cs_fail_idx.tolist()),
            unmatched_detections=tuple(int(j) for j in ds_fail_idx.tolist()),
        )

        if check_debug_enabled():
            print(
                f"[{self.name}] matched {len(result)} pairs, "
                f"{len(result.unmatched_tracks)} candidates and "
                f"{len(result.unmatched_detections)} detections remain"
            )

        return result
