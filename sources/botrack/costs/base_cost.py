from __future__ import annotations

import typing as T
from abc import abstractmethod

import torch
from tensordict import TensorDictBase

__all__ = ["Cost", "FieldCost"]


class Cost(torch.nn.Module):
    """
    A cost module computes an assignment cost matrix between track candidates
    and detections.
    """

    required_fields: T.Final[list[str]]

    def __init__(self, required_fields: T.Iterable[str]):
        super().__init__()

        self.required_fields = sorted(set(required_fields))

    @abstractmethod
    def forward(self, cs: TensorDictBase, ds: TensorDictBase) -> torch.Tensor:
        """
        Computes the assignment costs between track candidates and current
        detections.

        This is an abstract method that should be overwritten.

        Parameters
        ----------
        cs
            Candidate tracks (N).
        ds
            Detections (M).

        Returns
        -------
            Cost matrix (N x M).
        """
        raise NotImplementedError

    def extra_repr(self) -> str:
        return f"fields=[{', '.join(self.required_fields)}]"


class FieldCost(Cost):
    """
    A cost computed from a single field that is present on both the candidates
    and the detections.
    """

    field: T.Final[str]

    def __init__(self, field: str):
        super().__init__(required_fields=[field])

        self.field = field

    def forward(self, cs: TensorDictBase, ds: TensorDictBase) -> torch.Tensor:
        cs_num, ds_num = cs.batch_size[0], ds.batch_size[0]
        if cs_num == 0 or ds_num == 0:
            return torch.zeros((cs_num, ds_num), dtype=torch.float32, device=cs.device)
        return self.compute(cs.get(self.field), ds.get(self.field))

    @abstractmethod
    def compute(self, cs: torch.Tensor, ds: torch.Tensor) -> torch.Tensor:
        """
        Computes the assignment costs from the values of a single field.

        Parameters
        ----------
        cs
            Candidate (N) values for a single field.
        ds
            Detection (M) values for a single field.

        Returns
        -------
            Cost matrix (N x M).
        """
        raise NotImplementedError
