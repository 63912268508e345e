from __future__ import annotations

import dataclasses

import pytest

from botrack import TrackerConfig


def test_defaults():
    cfg = TrackerConfig()

    assert cfg.track_high_thresh == pytest.approx(0.6)
    assert cfg.new_track_thresh == pytest.approx(0.7)
    assert cfg.match_thresh == pytest.approx(0.8)
    assert cfg.max_time_lost == 30
    assert not cfg.with_reid
    assert cfg.track_low_thresh == pytest.approx(0.1)
    assert cfg.kalman_dt == pytest.approx(1.0)


def test_max_time_lost_scales_with_frame_rate():
    assert TrackerConfig(frame_rate=15, track_buffer=30).max_time_lost == 15
    assert TrackerConfig(frame_rate=60, track_buffer=30).max_time_lost == 60


def test_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        TrackerConfig().match_thresh = 0.1  # type: ignore[misc]


@pytest.mark.parametrize(
    "overrides",
    [
        {"match_thresh": 1.5},
        {"track_high_thresh": -0.1},
        {"track_low_thresh": 0.7, "track_high_thresh": 0.6},
        {"frame_rate": 0},
        {"track_buffer": -1},
        {"gmc_method": "unknown"},
        {"kalman_dt": 0.0},
    ],
)
def test_invalid_values(overrides):
    with pytest.raises(ValueError):
        TrackerConfig(**overrides)


def test_from_dict():
    cfg = TrackerConfig.from_dict({"track_buffer": 60, "gmc_method": "none"})

    assert cfg.track_buffer == 60
    assert cfg.gmc_method == "none"

    with pytest.raises(KeyError):
        TrackerConfig.from_dict({"track_bufer": 60})


def test_replace():
    cfg = TrackerConfig()

    assert cfg.replace() is cfg
    assert cfg.replace(match_thresh=0.5).match_thresh == pytest.approx(0.5)
    assert cfg.match_thresh == pytest.approx(0.8)
