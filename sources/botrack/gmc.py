r"""
Global motion compensation (GMC).

Estimates the motion of the camera between two consecutive frames as a 2x3
affine transformation (the affine part of the frame-to-frame homography), such
that the motion state of tracks can be warped into the coordinates of the
current frame before association.

The estimator keeps the previous frame (and its keypoints) as its only state.
"""

from __future__ import annotations

import enum as E
import typing as T

import cv2
import numpy as np
import numpy.typing as NP

from .debug import check_debug_enabled
from .detections import Detection

__all__ = ["GMCMethod", "GlobalMotionCompensation"]

Affine: T.TypeAlias = NP.NDArray[np.float32]


class GMCMethod(E.Enum):
    """
    Camera motion estimation algorithm.
    """

    ORB = "orb"
    SIFT = "sift"
    ECC = "ecc"
    SPARSE_OPT_FLOW = "sparseOptFlow"
    NONE = "none"

    @classmethod
    def parse(cls, method: GMCMethod | str | None) -> GMCMethod:
        """
        Resolve a method from its name (case-insensitive, with or without
        underscores).

        Raises
        ------
        ValueError
            If the name does not identify a method.
        """
        if method is None:
            return cls.NONE
        if isinstance(method, cls):
            return method

        key = str(method).replace("_", "").lower()
        for member in cls:
            if key in (member.value.lower(), member.name.replace("_", "").lower()):
                return member
        msg = (
            f"Unknown camera motion compensation method {method!r}! "
            f"Choose from: {[m.value for m in cls]}"
        )
        raise ValueError(msg)


def _identity() -> Affine:
    return np.eye(2, 3, dtype=np.float32)


class GlobalMotionCompensation:
    """
    Estimates the camera motion between consecutive frames.

    Parameters
    ----------
    method
        The estimation algorithm, see :class:`GMCMethod`.
    downscale
        Factor by which frames are downscaled before estimation.
    """

    def __init__(self, method: GMCMethod | str = GMCMethod.SPARSE_OPT_FLOW, downscale: int = 2):
        self.method = GMCMethod.parse(method)
        if downscale < 1:
            msg = f"Downscale factor must be at least 1! Got: {downscale}"
            raise ValueError(msg)
        self.downscale = int(downscale)

        if self.method == GMCMethod.ORB:
            self.detector = cv2.FastFeatureDetector_create(20)
            self.extractor = cv2.ORB_create()
            self.matcher = cv2.BFMatcher(cv2.NORM_HAMMING)
        elif self.method == GMCMethod.SIFT:
            self.detector = cv2.SIFT_create(nOctaveLayers=3, contrastThreshold=0.02, edgeThreshold=20)
            self.extractor = self.detector
            self.matcher = cv2.BFMatcher(cv2.NORM_L2)
        elif self.method == GMCMethod.ECC:
            self.warp_mode = cv2.MOTION_EUCLIDEAN
            self.criteria = (cv2.TERM_CRITERIA_EPS | cv2.TERM_CRITERIA_COUNT, 5000, 1e-6)
        elif self.method == GMCMethod.SPARSE_OPT_FLOW:
            self.feature_params = dict(
                maxCorners=1000,
                qualityLevel=0.01,
                minDistance=1,
                blockSize=3,
                useHarrisDetector=False,
                k=0.04,
            )

        self.reset()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(method={self.method.value}, downscale={self.downscale})"

    def reset(self) -> None:
        self.prev_frame: NP.NDArray | None = None
        self.prev_keypoints: T.Any = None
        self.prev_descriptors: NP.NDArray | None = None

    def apply(self, frame: NP.NDArray, detections: T.Sequence[Detection] = ()) -> Affine:
        """
        Estimate the camera motion from the previous frame to ``frame``.

        Parameters
        ----------
        frame
            The current image (BGR or grayscale).
        detections
            Detections at the current frame, their regions are excluded from
            keypoint detection where the method supports it.

        Returns
        -------
            A 2x3 affine matrix. The identity is returned for the first frame
            and whenever the motion cannot be estimated.
        """
        if self.method == GMCMethod.NONE:
            return _identity()
        if self.method == GMCMethod.ECC:
            return self._apply_ecc(frame)
        if self.method in (GMCMethod.ORB, GMCMethod.SIFT):
            return self._apply_features(frame, detections)
        return self._apply_sparse_optflow(frame)

    def _preprocess(self, frame: NP.NDArray, blur: bool = False) -> NP.NDArray:
        if frame.dtype != np.uint8:
            frame = np.clip(frame, 0, 255).astype(np.uint8)
        if frame.ndim == 3:
            frame = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        if self.downscale > 1:
            if blur:
                frame = cv2.GaussianBlur(frame, (3, 3), 1.5)
            height, width = frame.shape[:2]
            frame = cv2.resize(
                frame, (max(1, width // self.downscale), max(1, height // self.downscale))
            )
        return frame

    def _upscale(self, H: Affine) -> Affine:
        H = np.asarray(H, dtype=np.float32)
        if self.downscale > 1:
            H[0, 2] *= self.downscale
            H[1, 2] *= self.downscale
        return H

    def _estimate(self, prev_points: NP.NDArray, curr_points: NP.NDArray) -> Affine:
        if len(prev_points) <= 4:
            if check_debug_enabled():
                print("GMC: not enough matching points, using identity")
            return _identity()

        H, _ = cv2.estimateAffinePartial2D(prev_points, curr_points, method=cv2.RANSAC)
        if H is None:
            if check_debug_enabled():
                print("GMC: affine estimation failed, using identity")
            return _identity()
        return self._upscale(H)

    def _apply_ecc(self, raw_frame: NP.NDArray) -> Affine:
        frame = self._preprocess(raw_frame, blur=True)
        H = _identity()

        if self.prev_frame is None:
            self.prev_frame = frame.copy()
            return H

        try:
            _, H = cv2.findTransformECC(
                self.prev_frame, frame, H, self.warp_mode, self.criteria, None, 1
            )
            H = self._upscale(H)
        except cv2.error:
            if check_debug_enabled():
                print("GMC: ECC transform did not converge, using identity")
            H = _identity()

        self.prev_frame = frame.copy()
        return H

    def _apply_features(
        self, raw_frame: NP.NDArray, detections: T.Sequence[Detection]
    ) -> Affine:
        frame = self._preprocess(raw_frame)
        height, width = frame.shape[:2]

        # Ignore the border and the detected (moving) objects
        mask = np.zeros_like(frame)
        mask[int(0.02 * height) : int(0.98 * height), int(0.02 * width) : int(0.98 * width)] = 255
        for det in detections:
            x1, y1, x2, y2 = (det.xyxy / self.downscale).astype(np.int_)
            mask[max(0, y1) : max(0, y2), max(0, x1) : max(0, x2)] = 0

        keypoints = self.detector.detect(frame, mask)
        keypoints, descriptors = self.extractor.compute(frame, keypoints)

        if self.prev_frame is None or self.prev_descriptors is None or descriptors is None:
            self.prev_frame = frame.copy()
            self.prev_keypoints = keypoints
            self.prev_descriptors = descriptors
            return _identity()

        knn_matches = self.matcher.knnMatch(self.prev_descriptors, descriptors, 2)

        max_spatial_distance = 0.25 * np.array([width, height])
        matches, spatial_distances = [], []
        for pair in knn_matches:
            if len(pair) < 2:
                continue
            m, n = pair
            if m.distance >= 0.9 * n.distance:
                continue
            prev_pt = self.prev_keypoints[m.queryIdx].pt
            curr_pt = keypoints[m.trainIdx].pt
            spatial = (prev_pt[0] - curr_pt[0], prev_pt[1] - curr_pt[1])
            if abs(spatial[0]) < max_spatial_distance[0] and abs(spatial[1]) < max_spatial_distance[1]:
                spatial_distances.append(spatial)
                matches.append(m)

        prev_points, curr_points = [], []
        if len(matches) > 0:
            spatial_distances = np.asarray(spatial_distances)
            mean = np.mean(spatial_distances, axis=0)
            std = np.std(spatial_distances, axis=0)
            inliers = np.all((spatial_distances - mean) < 2.5 * std, axis=1)
            for m, inlier in zip(matches, inliers):
                if inlier:
                    prev_points.append(self.prev_keypoints[m.queryIdx].pt)
                    curr_points.append(keypoints[m.trainIdx].pt)

        H = self._estimate(
            np.asarray(prev_points, dtype=np.float32).reshape(-1, 2),
            np.asarray(curr_points, dtype=np.float32).reshape(-1, 2),
        )

        self.prev_frame = frame.copy()
        self.prev_keypoints = keypoints
        self.prev_descriptors = descriptors
        return H

    def _apply_sparse_optflow(self, raw_frame: NP.NDArray) -> Affine:
        frame = self._preprocess(raw_frame)
        keypoints = cv2.goodFeaturesToTrack(frame, mask=None, **self.feature_params)

        if self.prev_frame is None or self.prev_keypoints is None or keypoints is None:
            self.prev_frame = frame.copy()
            self.prev_keypoints = keypoints
            return _identity()

        matched, status, _ = cv2.calcOpticalFlowPyrLK(
            self.prev_frame, frame, self.prev_keypoints, None
        )
        found = status.reshape(-1).astype(bool)
        H = self._estimate(
            self.prev_keypoints.reshape(-1, 2)[found],
            matched.reshape(-1, 2)[found],
        )

        self.prev_frame = frame.copy()
        self.prev_keypoints = keypoints
        return H
