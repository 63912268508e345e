r"""
Conversions between the bounding box formats used by the tracker.

- ``tlwh``: top-left x, top-left y, width, height (detector output format)
- ``xyxy``: min x, min y, max x, max y (a.k.a. ``tlbr``, used for IoU)
- ``xywh``: center x, center y, width, height (motion model measurement)
"""

from __future__ import annotations

import numpy as np
import numpy.typing as NP

__all__ = ["tlwh_to_xyxy", "tlwh_to_xywh", "xywh_to_tlwh"]


def tlwh_to_xyxy(tlwh: NP.ArrayLike) -> NP.NDArray[np.float64]:
    ret = np.array(tlwh, dtype=np.float64)
    ret[..., 2:] += ret[..., :2]
    return ret


def tlwh_to_xywh(tlwh: NP.ArrayLike) -> NP.NDArray[np.float64]:
    ret = np.array(tlwh, dtype=np.float64)
    ret[..., :2] += ret[..., 2:] / 2
    return ret


def xywh_to_tlwh(xywh: NP.ArrayLike) -> NP.NDArray[np.float64]:
    ret = np.array(xywh, dtype=np.float64)
    ret[..., :2] -= ret[..., 2:] / 2
    return ret
