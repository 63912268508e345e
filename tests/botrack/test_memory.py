r"""
Tests for ``botrack.memory``.
"""
from __future__ import annotations

import pytest
import torch

from botrack import KalmanFilter, Track, TrackMemory, TrackState, collate_tracks
from botrack.consts import (
    KEY_BOXES,
    KEY_COVARIANCE,
    KEY_EMBEDDINGS,
    KEY_MEAN,
    KEY_SCORES,
    KEY_XYWH,
)


def _activated(memory: TrackMemory, tlwh=(0, 0, 10, 10), feat=None) -> Track:
    t = Track(tlwh, 0.9, feat=feat)
    t.activate(KalmanFilter(), 1, memory.next_id())
    memory.add(t)
    return t


def test_next_id_increments():
    memory = TrackMemory()

    assert [memory.next_id() for _ in range(3)] == [1, 2, 3]


def test_next_id_exhausted():
    memory = TrackMemory(max_id=2)
    memory.next_id()
    memory.next_id()

    with pytest.raises(RuntimeError):
        memory.next_id()


def test_add_requires_id():
    memory = TrackMemory()

    with pytest.raises(ValueError):
        memory.add(Track((0, 0, 1, 1), 0.5))


def test_add_duplicate_id():
    memory = TrackMemory()
    t = _activated(memory)

    other = Track((0, 0, 1, 1), 0.5)
    other.activate(KalmanFilter(), 1, t.track_id)
    with pytest.raises(KeyError):
        memory.add(other)


def test_collections_follow_state():
    memory = TrackMemory()
    a, b, c = (_activated(memory) for _ in range(3))

    b.mark_lost()
    c.mark_removed()

    assert memory.tracked == [a]
    assert memory.lost == [b]
    assert memory.removed == []

    purged = memory.purge()

    assert purged == [c]
    assert memory.removed == [c]
    assert c not in memory
    assert len(memory) == 2

    # Partition: every stored track is in exactly one collection
    ids = [t.track_id for t in (*memory.tracked, *memory.lost, *memory.removed)]
    assert sorted(ids) == [1, 2, 3]


def test_removed_history_is_bounded():
    memory = TrackMemory(removed_history=2)
    for _ in range(4):
        _activated(memory).mark_removed()
        memory.purge()

    assert [t.track_id for t in memory.removed] == [3, 4]


def test_reset():
    memory = TrackMemory()
    _activated(memory).mark_lost()

    memory.reset()

    assert len(memory) == 0
    assert memory.lost == []
    assert memory.next_id() == 1


def test_collate_tracks():
    memory = TrackMemory()
    tracks = [_activated(memory, (i * 10, 0, 10, 20), feat=[1.0, 0.0]) for i in range(3)]

    td = collate_tracks(tracks, with_embeddings=True)

    assert td.batch_size == torch.Size([3])
    assert td.get(KEY_BOXES).shape == (3, 4)
    assert torch.allclose(td.get(KEY_BOXES)[1], torch.tensor([10.0, 0.0, 20.0, 20.0]))
    assert td.get(KEY_XYWH).shape == (3, 4)
    assert td.get(KEY_SCORES).shape == (3,)
    assert td.get(KEY_MEAN).shape == (3, 8)
    assert td.get(KEY_COVARIANCE).shape == (3, 8, 8)
    assert td.get(KEY_EMBEDDINGS).shape == (3, 2)


def test_collate_optional_fields():
    detections = [Track((0, 0, 10, 10), 0.9)]

    td = collate_tracks(detections, with_embeddings=True)

    assert KEY_MEAN not in td.keys()
    assert KEY_EMBEDDINGS not in td.keys()

    empty = collate_tracks([], with_embeddings=True)
    assert empty.batch_size == torch.Size([0])
    assert empty.get(KEY_BOXES).shape == (0, 4)


def test_state_enum():
    assert {s.name for s in TrackState} == {"NEW", "TRACKED", "LOST", "REMOVED"}
