from __future__ import annotations

import typing as T
from collections import deque
from enum import Enum

import numpy as np
import numpy.typing as NP

from .boxes import tlwh_to_xywh, tlwh_to_xyxy, xywh_to_tlwh
from .costs.iou import iou_distance
from .kalman import KalmanFilter

__all__ = [
    "TrackState",
    "Track",
    "joint_tracks",
    "sub_tracks",
    "remove_duplicate_tracks",
]


class TrackState(Enum):
    NEW = 1
    TRACKED = 2
    LOST = 3
    REMOVED = 4


class Track:
    """
    A single object followed across frames.

    Tracks are created in the ``NEW`` state from a detection. A track only
    receives an ID once it is activated by the tracker, because benchmarks often
    limit the maximum amount of track IDs, so short-lived candidates should not
    consume them.
    """

    def __init__(
        self,
        tlwh: NP.ArrayLike,
        score: float,
        class_id: int = 0,
        feat: NP.ArrayLike | None = None,
        feature_history: int = 50,
        smooth: float = 0.9,
    ):
        self.state = TrackState.NEW
        self.track_id = 0
        self.is_activated = False
        self.start_frame = 0
        self.frame_id = 0
        self.time_lost = 0
        self.tracklet_len = 0
        self.score = float(score)
        self.class_id = int(class_id)

        # Bounding box, used until the motion model takes over
        self._tlwh = np.asarray(tlwh, dtype=np.float64)

        # Motion state
        self.kalman_filter: KalmanFilter | None = None
        self.mean: NP.NDArray[np.float64] | None = None
        self.covariance: NP.NDArray[np.float64] | None = None

        # Appearance state
        self.smooth = smooth
        self.smooth_feat: NP.NDArray[np.float32] | None = None
        self.curr_feat: NP.NDArray[np.float32] | None = None
        self.features: deque = deque([], maxlen=feature_history)
        if feat is not None:
            self.update_features(feat)

    @property
    def end_frame(self) -> int:
        return self.frame_id

    def update_features(self, feat: NP.ArrayLike) -> None:
        """
        Smooth the appearance embedding towards a new observation.
        """
        feat = np.asarray(feat, dtype=np.float32).ravel()
        if self.smooth_feat is not None and self.smooth_feat.shape != feat.shape:
            raise ValueError(
                f"Shape of smoothed features {self.smooth_feat.shape} is not "
                f"equal to new features {feat.shape}."
            )

        feat = feat / max(float(np.linalg.norm(feat)), 1e-12)
        self.curr_feat = feat
        if self.smooth_feat is None:
            self.smooth_feat = feat
        else:
            smooth_feat = self.smooth * self.smooth_feat + (1 - self.smooth) * feat
            self.smooth_feat = smooth_feat / max(float(np.linalg.norm(smooth_feat)), 1e-12)
        self.features.append(feat)

    # ------- #
    # Motion  #
    # ------- #

    def _prepare_predict(self) -> NP.NDArray[np.float64]:
        assert self.mean is not None
        mean_state = self.mean.copy()
        if self.state != TrackState.TRACKED:
            mean_state[6] = 0
            mean_state[7] = 0
        return mean_state

    def predict(self) -> None:
        if self.state == TrackState.REMOVED:
            return
        assert self.kalman_filter is not None

        self.mean, self.covariance = self.kalman_filter.predict(
            self._prepare_predict(), self.covariance
        )

    @staticmethod
    def multi_predict(tracks: T.Sequence[Track], kalman_filter: KalmanFilter) -> None:
        """
        Predict the motion state of multiple tracks in a single vectorized step.
        Removed tracks are skipped.
        """
        tracks = [t for t in tracks if t.state != TrackState.REMOVED]
        if len(tracks) == 0:
            return

        multi_mean = np.asarray([t._prepare_predict() for t in tracks])
        multi_covariance = np.asarray([t.covariance for t in tracks])
        multi_mean, multi_covariance = kalman_filter.multi_predict(
            multi_mean, multi_covariance
        )
        for track, mean, cov in zip(tracks, multi_mean, multi_covariance):
            track.mean = mean
            track.covariance = cov

    def apply_camera_motion(self, H: NP.ArrayLike) -> None:
        """
        Warp the motion state with the affine part of a homography ``H`` (2x3 or
        3x3) that maps the previous frame onto the current frame.
        """
        if self.mean is None or self.state == TrackState.REMOVED:
            return

        H = np.asarray(H, dtype=np.float64)
        R = H[:2, :2]
        R8x8 = np.kron(np.eye(4, dtype=np.float64), R)
        t = H[:2, 2]

        mean = R8x8.dot(self.mean)
        mean[:2] += t
        self.mean = mean
        self.covariance = R8x8.dot(self.covariance).dot(R8x8.transpose())

    @staticmethod
    def multi_gmc(tracks: T.Sequence[Track], H: NP.ArrayLike) -> None:
        for track in tracks:
            track.apply_camera_motion(H)

    # --------- #
    # Lifecycle #
    # --------- #

    def activate(self, kalman_filter: KalmanFilter, frame_id: int, track_id: int) -> None:
        """
        Start a new track, assigning to it ``track_id``. The track is only
        regarded as confirmed (``is_activated``) when it starts at the first
        frame of a sequence, otherwise it must be matched once more.
        """
        self.kalman_filter = kalman_filter
        self.track_id = track_id
        self.mean, self.covariance = kalman_filter.initiate(tlwh_to_xywh(self._tlwh))

        self.tracklet_len = 0
        self.time_lost = 0
        self.state = TrackState.TRACKED
        self.is_activated = frame_id == 1
        self.frame_id = frame_id
        self.start_frame = frame_id

    def _correct(self, new_track: Track) -> None:
        assert new_track.state == TrackState.NEW
        assert self.kalman_filter is not None

        self.mean, self.covariance = self.kalman_filter.update(
            self.mean, self.covariance, tlwh_to_xywh(new_track.tlwh)
        )
        if new_track.curr_feat is not None:
            self.update_features(new_track.curr_feat)

        self.score = new_track.score
        self.class_id = new_track.class_id
        self.time_lost = 0
        self.state = TrackState.TRACKED
        self.is_activated = True

    def update(self, new_track: Track, frame_id: int) -> None:
        """
        Join a track with a matched detection at a later frame. The current
        ``track_id`` is retained.

        Parameters
        ----------
        new_track
            Detection track to join with.
        frame_id
            Frame number.
        """
        assert (
            self.frame_id < frame_id
        ), f"Attempted to join track from frame {self.frame_id} to {frame_id}."

        self._correct(new_track)
        self.tracklet_len += 1
        self.frame_id = frame_id

    def re_activate(
        self, new_track: Track, frame_id: int, new_id: int | None = None
    ) -> None:
        """
        Resume a lost track with a matched detection. The original ID is kept
        unless ``new_id`` is given.
        """
        self._correct(new_track)
        self.tracklet_len = 0
        self.frame_id = frame_id
        if new_id is not None:
            self.track_id = new_id

    def mark_lost(self) -> None:
        if self.state != TrackState.TRACKED:
            msg = f"Only tracked tracks can be lost, {self!r} is {self.state.name}."
            raise RuntimeError(msg)
        self.state = TrackState.LOST

    def mark_removed(self) -> None:
        if self.state == TrackState.REMOVED:
            msg = f"Track {self!r} has already been removed."
            raise RuntimeError(msg)
        self.state = TrackState.REMOVED

    # -------- #
    # Geometry #
    # -------- #

    @property
    def tlwh(self) -> NP.NDArray[np.float64]:
        """
        Current position in bounding box format ``(top left x, top left y,
        width, height)``. Once the motion model is initiated, the mean location
        is returned.
        """
        if self.mean is None:
            return self._tlwh.copy()
        return xywh_to_tlwh(self.mean[:4])

    @property
    def tlbr(self) -> NP.NDArray[np.float64]:
        """
        Bounding box in format ``(min x, min y, max x, max y)``.
        """
        return tlwh_to_xyxy(self.tlwh)

    xyxy = tlbr

    @property
    def xywh(self) -> NP.NDArray[np.float64]:
        return tlwh_to_xywh(self.tlwh)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}({self.track_id}, {self.state.name}) "
            f"[{self.start_frame}:{self.end_frame}]"
        )


def joint_tracks(a: T.Iterable[Track], b: T.Iterable[Track]) -> list[Track]:
    """
    Concatenate two track lists, skipping tracks of ``b`` whose ID is in ``a``.
    """
    exists = set()
    res = []
    for t in a:
        exists.add(t.track_id)
        res.append(t)
    for t in b:
        if t.track_id not in exists:
            exists.add(t.track_id)
            res.append(t)
    return res


def sub_tracks(a: T.Iterable[Track], b: T.Iterable[Track]) -> list[Track]:
    """
    Tracks of ``a`` whose ID is not in ``b``.
    """
    ids = {t.track_id for t in b}
    return [t for t in a if t.track_id not in ids]


def remove_duplicate_tracks(
    tracks_a: T.Sequence[Track], tracks_b: T.Sequence[Track], max_cost: float
) -> T.Tuple[list[Track], list[Track]]:
    """
    Find pairs of tracks in ``a`` and ``b`` that overlap with an IoU cost below
    ``max_cost`` and keep only the longest-lived track of each pair.

    Returns
    -------
        The duplicates to drop from ``a`` and from ``b``.
    """
    if len(tracks_a) == 0 or len(tracks_b) == 0:
        return [], []

    pdist = iou_distance(
        np.stack([t.tlbr for t in tracks_a]), np.stack([t.tlbr for t in tracks_b])
    )
    dup_a, dup_b = [], []
    for p, q in zip(*np.nonzero(pdist.numpy() < max_cost)):
        time_p = tracks_a[p].frame_id - tracks_a[p].start_frame
        time_q = tracks_b[q].frame_id - tracks_b[q].start_frame
        if time_p > time_q:
            dup_b.append(tracks_b[q])
        else:
            dup_a.append(tracks_a[p])
    return dup_a, dup_b
