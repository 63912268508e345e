"""
Detection records consumed by the tracker at every frame.
"""

from __future__ import annotations

import dataclasses
import typing as T

import numpy as np
import numpy.typing as NP

from .boxes import tlwh_to_xyxy

__all__ = ["Detection", "clip_detections", "check_frame"]


@dataclasses.dataclass(frozen=True, eq=False)
class Detection:
    """
    A single detection made at the current frame.

    Parameters
    ----------
    tlwh
        Bounding box as ``(top left x, top left y, width, height)`` in pixels.
    confidence
        Detection confidence in ``[0, 1]``.
    class_id
        Detected category.
    embedding
        Optional precomputed appearance embedding.
    """

    tlwh: T.Tuple[float, float, float, float]
    confidence: float
    class_id: int = 0
    embedding: NP.NDArray[np.float32] | None = None

    def __post_init__(self):
        tlwh = tuple(float(v) for v in self.tlwh)
        if len(tlwh) != 4:
            msg = f"Expected a box with 4 coordinates, got {len(tlwh)}: {self.tlwh}"
            raise ValueError(msg)
        object.__setattr__(self, "tlwh", tlwh)
        object.__setattr__(self, "confidence", float(self.confidence))
        object.__setattr__(self, "class_id", int(self.class_id))
        if self.embedding is not None:
            object.__setattr__(
                self, "embedding", np.asarray(self.embedding, dtype=np.float32).ravel()
            )

    @property
    def xyxy(self) -> NP.NDArray[np.float64]:
        return tlwh_to_xyxy(self.tlwh)

    @classmethod
    def from_array(
        cls,
        rows: NP.ArrayLike,
        embeddings: NP.ArrayLike | None = None,
    ) -> list[Detection]:
        """
        Build detections from an ``(N, 6)`` array with rows
        ``[x, y, w, h, confidence, class_id]`` and optionally an ``(N, D)``
        array of embeddings.
        """
        rows = np.asarray(rows, dtype=np.float64).reshape(-1, 6)
        if embeddings is None:
            embs: T.Sequence[NP.NDArray | None] = [None] * len(rows)
        else:
            embs = np.asarray(embeddings, dtype=np.float32).reshape(len(rows), -1)

        return [
            cls(
                tlwh=tuple(row[:4]),
                confidence=row[4],
                class_id=int(row[5]),
                embedding=emb,
            )
            for row, emb in zip(rows, embs)
        ]


def check_frame(frame: T.Any) -> T.Tuple[int, int]:
    """
    Validate an image buffer, returning its ``(height, width)``.

    Raises
    ------
    ValueError
        If the frame is missing, is not an image array or has no pixels.
    """
    if frame is None:
        raise ValueError("Frame is missing!")
    if not isinstance(frame, np.ndarray):
        msg = f"Frame must be a numpy array, got {type(frame).__name__}!"
        raise ValueError(msg)
    if frame.ndim not in (2, 3) or frame.size == 0:
        msg = f"Frame must be a non-empty HxW or HxWxC image, got shape {frame.shape}!"
        raise ValueError(msg)
    return int(frame.shape[0]), int(frame.shape[1])


def clip_detections(
    detections: T.Iterable[Detection], frame_size: T.Tuple[int, int]
) -> list[Detection]:
    """
    Clamp detection boxes to the frame bounds. The inputs are left untouched,
    clamped copies are returned in the same order.

    Parameters
    ----------
    detections
        Detections at the current frame.
    frame_size
        The ``(height, width)`` of the frame.
    """
    height, width = frame_size
    clipped = []
    for det in detections:
        x, y, w, h = det.tlwh
        tlwh = (
            max(0.0, x),
            max(0.0, y),
            min(float(width - 1), w),
            min(float(height - 1), h),
        )
        clipped.append(dataclasses.replace(det, tlwh=tlwh))
    return clipped
