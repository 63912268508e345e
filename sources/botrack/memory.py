r"""
This module defines the `TrackMemory` class, the container that owns every
track followed by the tracker.

Tracks are stored once, keyed by their ID. The *tracked*, *lost* and *removed*
collections are views that follow from the state of each track, so moving a
track between collections is a side effect of its state transition.
"""

from __future__ import annotations

import typing as T
from collections import deque

import numpy as np
import torch
from tensordict import TensorDict

from .consts import (
    KEY_BOXES,
    KEY_CATEGORIES,
    KEY_COVARIANCE,
    KEY_EMBEDDINGS,
    KEY_MEAN,
    KEY_SCORES,
    KEY_XYWH,
)
from .debug import check_debug_enabled
from .track import Track, TrackState

__all__ = ["TrackMemory", "collate_tracks"]


class TrackMemory:
    """
    A memory that stores tracks and mints their IDs.

    Properties
    ----------
    max_id
        The maximum ID that can be assigned to a track (fixed).
    count
        The amount of IDs that have been assigned.
    """

    max_id: T.Final[int]

    def __init__(self, max_id: int = 2**31 - 1, removed_history: int = 1000):
        assert max_id > 0, max_id
        assert removed_history >= 0, removed_history

        self.max_id = int(max_id)
        self.count = 0
        self._tracks: dict[int, Track] = {}
        self._removed: deque[Track] = deque([], maxlen=removed_history)

    def __len__(self) -> int:
        """
        Return the number of tracks that are tracked or lost.
        """
        return len(self._tracks)

    def __contains__(self, track: Track) -> bool:
        return self._tracks.get(track.track_id) is track

    def next_id(self) -> int:
        """
        Mint a new track ID. IDs are never reused.
        """
        if self.count >= self.max_id:
            msg = (
                f"Attempted to assign ID {self.count + 1} which is larger than the "
                f"maximum allowed ID {self.max_id}!"
            )
            raise RuntimeError(msg)
        self.count += 1
        return self.count

    def add(self, track: Track) -> None:
        """
        Take ownership of a newly activated track.
        """
        if track.track_id <= 0:
            msg = f"Only activated tracks can be stored, got {track!r}"
            raise ValueError(msg)
        if track.track_id in self._tracks:
            msg = f"Track ID {track.track_id} is already in memory!"
            raise KeyError(msg)
        self._tracks[track.track_id] = track

    def purge(self) -> list[Track]:
        """
        Drop all tracks that have been marked removed from the memory, moving
        them to the history of removed tracks.
        """
        removed = [t for t in self._tracks.values() if t.state == TrackState.REMOVED]
        for track in removed:
            del self._tracks[track.track_id]
            self._removed.append(track)

        if check_debug_enabled() and len(removed) > 0:
            print(f"Purged tracks: {[t.track_id for t in removed]}")

        return removed

    def select(self, state: TrackState) -> list[Track]:
        """
        All tracks in the given state, in order of activation.
        """
        if state == TrackState.REMOVED:
            return list(self._removed)
        return [t for t in self._tracks.values() if t.state == state]

    @property
    def tracked(self) -> list[Track]:
        return self.select(TrackState.TRACKED)

    @property
    def lost(self) -> list[Track]:
        return self.select(TrackState.LOST)

    @property
    def removed(self) -> list[Track]:
        return self.select(TrackState.REMOVED)

    def reset(self) -> None:
        """
        Drop all tracks and restart the ID count.
        """
        if check_debug_enabled():
            print("Resetting memory")
        self.count = 0
        self._tracks.clear()
        self._removed.clear()


def collate_tracks(tracks: T.Sequence[Track], *, with_embeddings: bool) -> TensorDict:
    """
    Gather the fields of a list of tracks into a column-wise ``TensorDict`` that
    the cost modules operate on.

    The motion state is included only when every track has one, embeddings only
    when requested and every track has one.
    """
    num = len(tracks)
    fields: dict[str, torch.Tensor] = {
        KEY_BOXES: torch.as_tensor(
            np.asarray([t.tlbr for t in tracks], dtype=np.float32).reshape(num, 4)
        ),
        KEY_XYWH: torch.as_tensor(
            np.asarray([t.xywh for t in tracks], dtype=np.float64).reshape(num, 4)
        ),
        KEY_SCORES: torch.tensor([t.score for t in tracks], dtype=torch.float32),
        KEY_CATEGORIES: torch.tensor([t.class_id for t in tracks], dtype=torch.long),
    }

    if num > 0 and all(t.mean is not None for t in tracks):
        fields[KEY_MEAN] = torch.as_tensor(np.stack([t.mean for t in tracks]))
        fields[KEY_COVARIANCE] = torch.as_tensor(np.stack([t.covariance for t in tracks]))

    if with_embeddings and num > 0 and all(t.smooth_feat is not None for t in tracks):
        fields[KEY_EMBEDDINGS] = torch.as_tensor(np.stack([t.smooth_feat for t in tracks]))

    return TensorDict(fields, batch_size=[num])
