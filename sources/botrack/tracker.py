r"""
This module implements the multi-stage tracker, which maps the detections made
at every frame of a sequence to tracks.

.. math::

    Tracker: Detections \rightarrow Tracks

Per frame, the tracker runs a cascade of association stages:

1. confident detections against all tracked and lost tracks, using the motion
   and (optionally) appearance cues;
2. low-confidence detections against the tracks left over from the first
   stage, using only overlap;
3. the confident detections left over from the first stage against the tracks
   that have not been confirmed yet.

Detections that remain start new tracks, tracks that remain are lost, and
tracks that are lost for too long are removed.
"""

from __future__ import annotations

import typing as T

import numpy as np
import numpy.typing as NP
import torch.nn as nn

from .assignment import Assignment, Jonker
from .config import TrackerConfig
from .consts import DUPLICATE_IOU_COST
from .costs import BoxIoU, FusedCost, MotionGate, ScoreFusion
from .debug import check_debug_enabled
from .detections import Detection, check_frame, clip_detections
from .gmc import GlobalMotionCompensation
from .kalman import KalmanFilter
from .memory import TrackMemory, collate_tracks
from .reid import AppearanceExtractor
from .stages import Association, AssociationResult
from .track import Track, TrackState, joint_tracks, remove_duplicate_tracks

__all__ = ["MultiStageTracker"]


class MultiStageTracker(nn.Module):
    """
    Multi-stage tracker that associates the detections at every frame with the
    tracks of previous frames.

    Parameters
    ----------
    config
        Tracker configuration, defaults to :class:`TrackerConfig`.
    appearance_model
        Extracts appearance embeddings from the frame. When omitted, embeddings
        are only used when ``config.with_reid`` is set, in which case every
        detection must carry its own embedding.
    assignment
        Factory of the assignment solver, called with the matching threshold of
        each stage. Defaults to :class:`Jonker`.
    **overrides
        Replace individual fields of ``config``.
    """

    def __init__(
        self,
        config: TrackerConfig | None = None,
        appearance_model: AppearanceExtractor | None = None,
        assignment: T.Callable[[float], Assignment] | None = None,
        **overrides: T.Any,
    ):
        super().__init__()

        self.config = (config or TrackerConfig()).replace(**overrides)
        self.appearance_model = appearance_model
        self.with_appearance = appearance_model is not None or self.config.with_reid

        if assignment is None:
            assignment = Jonker

        self.kalman_filter = KalmanFilter(dt=self.config.kalman_dt)
        self.gmc = GlobalMotionCompensation(
            self.config.gmc_method, downscale=self.config.gmc_downscale
        )
        self.memory = TrackMemory(max_id=self.config.max_id)

        self.stage_first = Association(
            FusedCost(
                proximity_thresh=self.config.proximity_thresh,
                appearance_thresh=self.config.appearance_thresh,
                fusion_lambda=self.config.fusion_lambda,
                with_score=self.config.fuse_score,
                motion_gate=MotionGate(self.kalman_filter) if self.with_appearance else None,
            ),
            assignment(self.config.match_thresh),
            name="first",
        )
        self.stage_second = Association(
            BoxIoU(), assignment(self.config.second_match_thresh), name="second"
        )
        self.stage_unconfirmed = Association(
            ScoreFusion(BoxIoU()) if self.config.fuse_score else BoxIoU(),
            assignment(self.config.unconfirmed_match_thresh),
            name="unconfirmed",
        )

        self.frame_id = 0

    @property
    def max_time_lost(self) -> int:
        return self.config.max_time_lost

    @property
    def tracked_tracks(self) -> list[Track]:
        return self.memory.tracked

    @property
    def lost_tracks(self) -> list[Track]:
        return self.memory.lost

    @property
    def removed_tracks(self) -> list[Track]:
        return self.memory.removed

    def reset(self) -> None:
        """
        Clear all tracks and restart the frame and ID counters, e.g. before
        tracking a new sequence.
        """
        self.frame_id = 0
        self.memory.reset()
        self.gmc.reset()

    def forward(self, detections: T.Iterable[Detection], frame: NP.NDArray) -> list[Track]:
        return self.track(detections, frame)

    def _check_embeddings(self, detections: T.Sequence[Detection]) -> None:
        if not self.with_appearance or self.appearance_model is not None:
            return
        missing = sum(1 for d in detections if d.embedding is None)
        if missing > 0:
            msg = (
                f"Appearance is enabled without an appearance model, but {missing} "
                "detection(s) have no embedding!"
            )
            raise ValueError(msg)

    def _detection_tracks(
        self, detections: T.Sequence[Detection], frame: NP.NDArray, with_features: bool = True
    ) -> list[Track]:
        feats: T.Sequence[NP.NDArray | None]
        if not (with_features and self.with_appearance) or len(detections) == 0:
            feats = [None] * len(detections)
        elif self.appearance_model is not None:
            tlwh = np.asarray([d.tlwh for d in detections], dtype=np.float64)
            feats = list(self.appearance_model.extract(frame, tlwh))
        else:
            feats = [d.embedding for d in detections]

        return [
            Track(
                d.tlwh,
                d.confidence,
                class_id=d.class_id,
                feat=f,
                feature_history=self.config.feature_history,
            )
            for d, f in zip(detections, feats)
        ]

    def _associate(
        self, stage: Association, candidates: T.Sequence[Track], detections: T.Sequence[Track]
    ) -> AssociationResult:
        cs = collate_tracks(candidates, with_embeddings=self.with_appearance)
        ds = collate_tracks(detections, with_embeddings=self.with_appearance)
        return stage(cs, ds)

    def _apply_matches(
        self,
        result: AssociationResult,
        candidates: T.Sequence[Track],
        detections: T.Sequence[Track],
    ) -> None:
        for i, j in result.matches:
            track, det = candidates[i], detections[j]
            if track.state == TrackState.TRACKED:
                track.update(det, self.frame_id)
            else:
                track.re_activate(det, self.frame_id)

    def track(self, detections: T.Iterable[Detection], frame: NP.NDArray) -> list[Track]:
        """
        Perform tracking on the detections of the next frame.

        Parameters
        ----------
        detections
            Detections made at the current frame.
        frame
            The current image, used for camera motion compensation and
            appearance extraction.

        Returns
        -------
            All tracks that are tracked at the current frame.

        Raises
        ------
        ValueError
            If the frame is not a valid image, or embeddings are required but
            missing. The tracker state is left untouched.
        """
        frame_size = check_frame(frame)
        cfg = self.config

        # Split detections by confidence, only the high confidence split needs embeddings
        detections = clip_detections(list(detections), frame_size)
        dets_high = [d for d in detections if d.confidence >= cfg.track_high_thresh]
        dets_low = [
            d for d in detections if cfg.track_low_thresh < d.confidence < cfg.track_high_thresh
        ]
        self._check_embeddings(dets_high)

        self.frame_id += 1
        new_high = self._detection_tracks(dets_high, frame)
        new_low = self._detection_tracks(dets_low, frame, with_features=False)

        # Tracks that were only seen in a single frame are unconfirmed
        unconfirmed: list[Track] = []
        confirmed: list[Track] = []
        for t in self.memory.tracked:
            (confirmed if t.is_activated else unconfirmed).append(t)

        # Predict the motion of the candidate pool and compensate camera motion
        pool = joint_tracks(confirmed, self.memory.lost)
        Track.multi_predict(pool, self.kalman_filter)
        H = self.gmc.apply(frame, dets_high)
        Track.multi_gmc(pool, H)
        Track.multi_gmc(unconfirmed, H)

        # First association, with confident detections
        first = self._associate(self.stage_first, pool, new_high)
        self._apply_matches(first, pool, new_high)

        # Second association, with low-confidence detections
        pool_left = [
            pool[i] for i in first.unmatched_tracks if pool[i].state == TrackState.TRACKED
        ]
        second = self._associate(self.stage_second, pool_left, new_low)
        self._apply_matches(second, pool_left, new_low)

        for i in second.unmatched_tracks:
            track = pool_left[i]
            if track.state != TrackState.LOST:
                track.mark_lost()

        # Unconfirmed tracks, with the confident detections that remain
        high_left = [new_high[j] for j in first.unmatched_detections]
        third = self._associate(self.stage_unconfirmed, unconfirmed, high_left)
        for i, j in third.matches:
            unconfirmed[i].update(high_left[j], self.frame_id)
        for i in third.unmatched_tracks:
            unconfirmed[i].mark_removed()

        # Start new tracks
        started = 0
        for j in third.unmatched_detections:
            det = high_left[j]
            if det.score < cfg.new_track_thresh:
                continue
            det.activate(self.kalman_filter, self.frame_id, self.memory.next_id())
            self.memory.add(det)
            started += 1

        # Remove tracks that have been lost for too long
        for track in self.memory.lost:
            track.time_lost = self.frame_id - track.end_frame
            if track.time_lost > self.max_time_lost:
                track.mark_removed()

        dup_tracked, dup_lost = remove_duplicate_tracks(
            self.memory.tracked, self.memory.lost, DUPLICATE_IOU_COST
        )
        for track in (*dup_tracked, *dup_lost):
            if track.state != TrackState.REMOVED:
                track.mark_removed()

        self.memory.purge()

        output = self.memory.tracked

        if check_debug_enabled():
            print(
                f"Frame {self.frame_id}: {len(dets_high)} high / {len(dets_low)} low "
                f"detections, {len(first) + len(second) + len(third)} matched, "
                f"{started} started, {len(output)} tracked, "
                f"{len(self.memory.lost)} lost"
            )

        return output
