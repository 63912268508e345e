"""
Appearance embeddings for re-identification (ReID).

The tracker only depends on the :class:`AppearanceExtractor` protocol, any
object that maps the detected boxes of a frame to one embedding per box can be
plugged in. :class:`ReIDModel` adapts a PyTorch network to that protocol.
"""

from __future__ import annotations

import os
import typing as T

import cv2
import numpy as np
import numpy.typing as NP
import torch

from .debug import check_debug_enabled

__all__ = ["AppearanceExtractor", "ReIDModel"]

IMAGENET_MEAN: T.Final = (0.485, 0.456, 0.406)
IMAGENET_STD: T.Final = (0.229, 0.224, 0.225)


@T.runtime_checkable
class AppearanceExtractor(T.Protocol):
    def extract(self, frame: NP.NDArray, tlwh: NP.NDArray) -> NP.NDArray[np.float32]:
        """
        Compute embeddings for the boxes ``tlwh`` (N x 4) in ``frame``.

        Returns
        -------
            Embeddings (N x D).
        """
        ...


class ReIDModel:
    """
    Wraps a ReID network that maps a batch of normalized RGB patches
    (B x 3 x H x W) to embeddings (B x D).

    Parameters
    ----------
    model
        The network, or a path to a TorchScript file.
    input_size
        Patch size ``(height, width)`` the network expects.
    device
        Device to run the network on.
    half
        Run the network in half precision (CUDA only).
    batch_size
        Maximum amount of patches per forward pass.
    """

    def __init__(
        self,
        model: torch.nn.Module | str | os.PathLike,
        input_size: T.Tuple[int, int] = (256, 128),
        device: torch.device | str = "cpu",
        half: bool = False,
        batch_size: int = 32,
    ):
        self.device = torch.device(device)
        if isinstance(model, (str, os.PathLike)):
            model = torch.jit.load(os.fspath(model), map_location=self.device)

        self.half = bool(half) and self.device.type == "cuda"
        self.model = model.to(self.device).eval()
        if self.half:
            self.model = self.model.half()

        self.input_size = tuple(input_size)
        self.batch_size = batch_size

        self._mean = torch.tensor(IMAGENET_MEAN, device=self.device).view(1, 3, 1, 1)
        self._std = torch.tensor(IMAGENET_STD, device=self.device).view(1, 3, 1, 1)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(input_size={self.input_size}, "
            f"device={self.device}, half={self.half})"
        )

    def _crop(self, frame: NP.NDArray, box: NP.NDArray) -> NP.NDArray[np.uint8]:
        height, width = frame.shape[:2]
        x, y, w, h = box
        x1 = int(np.clip(np.floor(x), 0, width - 1))
        y1 = int(np.clip(np.floor(y), 0, height - 1))
        x2 = int(np.clip(np.ceil(x + w), x1 + 1, width))
        y2 = int(np.clip(np.ceil(y + h), y1 + 1, height))

        patch = frame[y1:y2, x1:x2]
        if patch.ndim == 2:
            patch = cv2.cvtColor(patch, cv2.COLOR_GRAY2RGB)
        else:
            patch = cv2.cvtColor(patch, cv2.COLOR_BGR2RGB)
        return cv2.resize(patch, (self.input_size[1], self.input_size[0]))

    def _preprocess(self, patches: T.Sequence[NP.NDArray]) -> torch.Tensor:
        batch = torch.from_numpy(np.stack(patches)).to(self.device)
        batch = batch.permute(0, 3, 1, 2).float().div_(255.0)
        batch = (batch - self._mean) / self._std
        return batch.half() if self.half else batch

    @torch.no_grad()
    def extract(self, frame: NP.NDArray, tlwh: NP.NDArray) -> NP.NDArray[np.float32]:
        boxes = np.asarray(tlwh, dtype=np.float64).reshape(-1, 4)
        if len(boxes) == 0:
            return np.zeros((0, 0), dtype=np.float32)

        features = []
        for start in range(0, len(boxes), self.batch_size):
            patches = [self._crop(frame, box) for box in boxes[start : start + self.batch_size]]
            out = self.model(self._preprocess(patches))
            if isinstance(out, (tuple, list)):
                out = out[0]
            out = torch.nn.functional.normalize(out.float().flatten(1), dim=1)
            features.append(out.cpu().numpy())

        feats = np.concatenate(features, axis=0).astype(np.float32)
        if check_debug_enabled():
            print(f"Extracted {feats.shape[0]} embeddings of size {feats.shape[1]}")
        return feats
