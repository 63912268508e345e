from __future__ import annotations

import typing as T

import torch
from torch import Tensor

from ..consts import KEY_EMBEDDINGS
from .base_cost import FieldCost

__all__ = ["EmbeddingDistance", "cosine_distance"]

DEFAULT_EPS: T.Final = 1e-8


class EmbeddingDistance(FieldCost):
    """
    Computes the cosine distance between the (smoothed) track embeddings and the
    detection embeddings. The distance is clamped at 0, so the range is
    ``[0, 2]``.
    """

    eps: T.Final[float]

    def __init__(self, field: str = KEY_EMBEDDINGS, eps: float = DEFAULT_EPS):
        super().__init__(field=field)

        self.eps = eps

    def compute(self, cs: Tensor, ds: Tensor) -> Tensor:
        return cosine_distance(cs, ds, eps=self.eps).clamp_(min=0.0)


def _stable_norm(t: Tensor, eps: float) -> Tensor:
    return t / torch.linalg.vector_norm(t, dim=1, keepdim=True).clamp(min=eps)


def cosine_distance(a: Tensor, b: Tensor, eps: float = DEFAULT_EPS) -> Tensor:
    """
    Cosine distance between all rows of ``a`` and ``b``.

    ```
    csim(a,b) = dot(a, b) / (norm(a) * norm(b))
              = dot(a / norm(a), b / norm(b))
    ```

    Clamp with min(eps) for numerical stability. The final dot
    product is computed via transposed matrix multiplication (see `torch.mm`).
    """
    a = a.to(torch.float32)
    b = b.to(dtype=torch.float32, device=a.device)
    return 1.0 - torch.mm(_stable_norm(a, eps), _stable_norm(b, eps).T)
