"""
Tracker configuration.
"""

from __future__ import annotations

import dataclasses
import typing as T

from .consts import LOW_CONFIDENCE_FLOOR
from .gmc import GMCMethod

__all__ = ["TrackerConfig"]

_UNIT_FIELDS: T.Final = (
    "track_high_thresh",
    "track_low_thresh",
    "new_track_thresh",
    "match_thresh",
    "second_match_thresh",
    "unconfirmed_match_thresh",
    "proximity_thresh",
    "appearance_thresh",
    "fusion_lambda",
)


@dataclasses.dataclass(frozen=True)
class TrackerConfig:
    """
    Parameters of the :class:`botrack.MultiStageTracker`.

    Attributes
    ----------
    track_high_thresh
        Detections with at least this confidence are associated in the first
        stage.
    track_low_thresh
        Detections at or below this confidence are dropped, the remainder below
        ``track_high_thresh`` is associated in the second stage.
    new_track_thresh
        Minimum confidence of an unmatched detection to start a new track.
    track_buffer
        Amount of frames (at 30 FPS) a lost track is kept for re-activation.
    match_thresh
        Maximum cost of a match in the first stage.
    second_match_thresh
        Maximum cost of a match in the second stage.
    unconfirmed_match_thresh
        Maximum cost of a match between unconfirmed tracks and detections.
    proximity_thresh
        Maximum IoU cost of a pair for which appearance is trusted.
    appearance_thresh
        Maximum appearance cost of a pair for which appearance is trusted.
    gmc_method
        Camera motion compensation method, see :class:`botrack.gmc.GMCMethod`.
    gmc_downscale
        Downscale factor of frames used for camera motion compensation.
    frame_rate
        Frame rate of the sequence.
    fusion_lambda
        Weight of the geometric cost in the fused cost.
    fuse_score
        Weigh the IoU similarity by the detection confidence.
    with_reid
        Use appearance embeddings, either extracted by the appearance model or
        supplied with every detection.
    feature_history
        Length of the appearance history of each track.
    max_id
        Largest track ID that may be assigned.
    kalman_dt
        Time step of the motion model between consecutive frames, e.g.
        ``1 / frame_rate`` to express velocities per second.
    """

    track_high_thresh: float = 0.6
    track_low_thresh: float = LOW_CONFIDENCE_FLOOR
    new_track_thresh: float = 0.7
    track_buffer: int = 30
    match_thresh: float = 0.8
    second_match_thresh: float = 0.5
    unconfirmed_match_thresh: float = 0.7
    proximity_thresh: float = 0.5
    appearance_thresh: float = 0.25
    gmc_method: str = GMCMethod.SPARSE_OPT_FLOW.value
    gmc_downscale: int = 2
    frame_rate: int = 30
    fusion_lambda: float = 0.98
    fuse_score: bool = True
    with_reid: bool = False
    feature_history: int = 50
    max_id: int = 2**31 - 1
    kalman_dt: float = 1.0

    def __post_init__(self):
        for name in _UNIT_FIELDS:
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                msg = f"Configuration value {name!r} must be in range [0, 1]! Got: {value}"
                raise ValueError(msg)
        if self.track_low_thresh > self.track_high_thresh:
            msg = (
                f"Low threshold {self.track_low_thresh} exceeds high threshold "
                f"{self.track_high_thresh}!"
            )
            raise ValueError(msg)
        for name in ("track_buffer", "frame_rate", "gmc_downscale", "feature_history", "max_id"):
            value = getattr(self, name)
            if value <= 0:
                msg = f"Configuration value {name!r} must be positive! Got: {value}"
                raise ValueError(msg)

        if not self.kalman_dt > 0:
            msg = f"Configuration value 'kalman_dt' must be positive! Got: {self.kalman_dt}"
            raise ValueError(msg)

        GMCMethod.parse(self.gmc_method)

    @property
    def max_time_lost(self) -> int:
        """
        Amount of frames after which a lost track is removed.
        """
        return int(self.frame_rate / 30.0 * self.track_buffer)

    @classmethod
    def from_dict(cls, mapping: T.Mapping[str, T.Any]) -> TrackerConfig:
        """
        Build a configuration from a mapping, e.g. a parsed configuration file.

        Raises
        ------
        KeyError
            If the mapping contains keys that are not configuration fields.
        """
        names = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(mapping) - names)
        if len(unknown) > 0:
            msg = f"Unknown tracker configuration keys: {unknown}"
            raise KeyError(msg)
        return cls(**mapping)

    def replace(self, **overrides: T.Any) -> TrackerConfig:
        if len(overrides) == 0:
            return self
        return self.from_dict({**dataclasses.asdict(self), **overrides})
