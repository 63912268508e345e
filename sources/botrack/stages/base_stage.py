from __future__ import annotations

import dataclasses
import typing as T
from abc import abstractmethod

import torch
import typing_extensions as TX
from tensordict import TensorDictBase

__all__ = ["Stage", "AssociationResult"]


@dataclasses.dataclass(frozen=True)
class AssociationResult:
    """
    Outcome of a stage. All indices refer to the ordering of the candidates and
    detections passed to the stage.
    """

    matches: T.Tuple[T.Tuple[int, int], ...] = ()
    unmatched_tracks: T.Tuple[int, ...] = ()
    unmatched_detections: T.Tuple[int, ...] = ()

    @classmethod
    def unmatched(cls, num_tracks: int, num_detections: int) -> AssociationResult:
        return cls(
            matches=(),
            unmatched_tracks=tuple(range(num_tracks)),
            unmatched_detections=tuple(range(num_detections)),
        )

    def __len__(self) -> int:
        return len(self.matches)


class Stage(torch.nn.Module):
    """
    Base class for association stages in a :class:`..MultiStageTracker`.

    Inputs to a stage are column views of the candidate tracks and of the
    detections.
    """

    def __init__(self, required_fields: T.Iterable[str] = ()):
        super().__init__()

        self.required_fields = list(required_fields)

    @TX.override
    def extra_repr(self) -> str:
        req = ", ".join(self.required_fields)
        return f"fields=[{req}]"

    @abstractmethod
    @TX.override
    def forward(self, cs: TensorDictBase, ds: TensorDictBase) -> AssociationResult:
        raise NotImplementedError
