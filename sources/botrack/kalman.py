r"""
Constant-velocity Kalman filter over bounding boxes.

The 8-dimensional state space

.. math::

    (x, y, w, h, \dot{x}, \dot{y}, \dot{w}, \dot{h})

contains the box center :math:`(x, y)`, width :math:`w`, height :math:`h` and
their respective velocities. Box coordinates are taken as a direct observation
of the state, i.e. the measurement is :math:`(x, y, w, h)`.

The filter itself is stateless: every track owns its ``(mean, covariance)``
pair and passes it in.
"""

from __future__ import annotations

import typing as T

import numpy as np
import numpy.typing as NP
import scipy.linalg

__all__ = ["KalmanFilter"]

_NDIM: T.Final = 4

Mean: T.TypeAlias = NP.NDArray[np.float64]
Covariance: T.TypeAlias = NP.NDArray[np.float64]


class KalmanFilter:
    """
    Kalman filter for tracking bounding boxes in image space.

    Motion and observation uncertainty are chosen relative to the current box
    size, controlled by the position and velocity weights.
    """

    std_weight_position: T.Final[float]
    std_weight_velocity: T.Final[float]

    def __init__(
        self,
        dt: float = 1.0,
        std_weight_position: float = 1.0 / 20,
        std_weight_velocity: float = 1.0 / 160,
    ):
        if dt <= 0:
            msg = f"Time step must be positive! Got: {dt}"
            raise ValueError(msg)

        self.dt = dt
        self._motion_mat = np.eye(2 * _NDIM, 2 * _NDIM)
        for i in range(_NDIM):
            self._motion_mat[i, _NDIM + i] = dt
        self._update_mat = np.eye(_NDIM, 2 * _NDIM)

        self.std_weight_position = std_weight_position
        self.std_weight_velocity = std_weight_velocity

    def _position_std(self, w: NP.ArrayLike, h: NP.ArrayLike) -> list:
        return [
            self.std_weight_position * w,
            self.std_weight_position * h,
            self.std_weight_position * w,
            self.std_weight_position * h,
        ]

    def _velocity_std(self, w: NP.ArrayLike, h: NP.ArrayLike) -> list:
        return [
            self.std_weight_velocity * w,
            self.std_weight_velocity * h,
            self.std_weight_velocity * w,
            self.std_weight_velocity * h,
        ]

    def initiate(self, measurement: NP.ArrayLike) -> T.Tuple[Mean, Covariance]:
        """
        Create a track from an unassociated measurement.

        Parameters
        ----------
        measurement
            Bounding box coordinates ``(x, y, w, h)`` with center position
            ``(x, y)``, width ``w`` and height ``h``.

        Returns
        -------
            Mean vector (8 dimensional) and covariance matrix (8x8 dimensional)
            of the new track. Unobserved velocities are initialized to 0 mean.
        """
        mean_pos = np.asarray(measurement, dtype=np.float64)
        mean_vel = np.zeros_like(mean_pos)
        mean = np.r_[mean_pos, mean_vel]

        w, h = mean_pos[2], mean_pos[3]
        std = [2 * s for s in self._position_std(w, h)] + [
            10 * s for s in self._velocity_std(w, h)
        ]
        covariance = np.diag(np.square(std))
        return mean, covariance

    def predict(self, mean: Mean, covariance: Covariance) -> T.Tuple[Mean, Covariance]:
        """
        Run the prediction step for a single state.
        """
        w, h = mean[2], mean[3]
        motion_cov = np.diag(
            np.square(np.r_[self._position_std(w, h), self._velocity_std(w, h)])
        )

        mean = np.dot(self._motion_mat, mean)
        covariance = (
            np.linalg.multi_dot((self._motion_mat, covariance, self._motion_mat.T))
            + motion_cov
        )
        return mean, covariance

    def multi_predict(
        self, mean: Mean, covariance: Covariance
    ) -> T.Tuple[Mean, Covariance]:
        """
        Run the prediction step for a stack of states (vectorized version).

        Parameters
        ----------
        mean
            The Nx8 dimensional mean matrix of the object states.
        covariance
            The Nx8x8 dimensional covariance matrices of the object states.
        """
        w, h = mean[:, 2], mean[:, 3]
        sqr = np.square(np.r_[self._position_std(w, h), self._velocity_std(w, h)]).T
        motion_cov = np.stack([np.diag(s) for s in sqr])

        mean = np.dot(mean, self._motion_mat.T)
        left = np.dot(self._motion_mat, covariance).transpose((1, 0, 2))
        covariance = np.dot(left, self._motion_mat.T) + motion_cov
        return mean, covariance

    def project(self, mean: Mean, covariance: Covariance) -> T.Tuple[Mean, Covariance]:
        """
        Project the state distribution to measurement space.
        """
        innovation_cov = np.diag(np.square(self._position_std(mean[2], mean[3])))

        mean = np.dot(self._update_mat, mean)
        covariance = np.linalg.multi_dot(
            (self._update_mat, covariance, self._update_mat.T)
        )
        return mean, covariance + innovation_cov

    def update(
        self, mean: Mean, covariance: Covariance, measurement: NP.ArrayLike
    ) -> T.Tuple[Mean, Covariance]:
        """
        Run the correction step.

        Parameters
        ----------
        mean
            The predicted state's mean vector (8 dimensional).
        covariance
            The state's covariance matrix (8x8 dimensional).
        measurement
            The 4 dimensional measurement vector ``(x, y, w, h)``.

        Returns
        -------
            The measurement-corrected state distribution.
        """
        projected_mean, projected_cov = self.project(mean, covariance)

        chol_factor, lower = scipy.linalg.cho_factor(
            projected_cov, lower=True, check_finite=False
        )
        kalman_gain = scipy.linalg.cho_solve(
            (chol_factor, lower),
            np.dot(covariance, self._update_mat.T).T,
            check_finite=False,
        ).T
        innovation = np.asarray(measurement, dtype=np.float64) - projected_mean

        new_mean = mean + np.dot(innovation, kalman_gain.T)
        new_covariance = covariance - np.linalg.multi_dot(
            (kalman_gain, projected_cov, kalman_gain.T)
        )
        return new_mean, new_covariance

    def gating_distance(
        self,
        mean: Mean,
        covariance: Covariance,
        measurements: NP.ArrayLike,
        only_position: bool = False,
    ) -> NP.NDArray[np.float64]:
        """
        Compute the squared Mahalanobis distance between a state distribution
        and a set of measurements.

        A suitable distance threshold can be obtained from
        :data:`botrack.consts.CHI2INV95`, using 4 degrees of freedom (or 2 when
        ``only_position`` is set).

        Parameters
        ----------
        mean
            Mean vector over the state distribution (8 dimensional).
        covariance
            Covariance of the state distribution (8x8 dimensional).
        measurements
            An Nx4 matrix of N measurements in format ``(x, y, w, h)``.
        only_position
            Compute the distance with respect to the box center only.

        Returns
        -------
            Array of length N with the squared Mahalanobis distance of each
            measurement.
        """
        mean, covariance = self.project(mean, covariance)
        measurements = np.asarray(measurements, dtype=np.float64).reshape(-1, _NDIM)
        if only_position:
            mean, covariance = mean[:2], covariance[:2, :2]
            measurements = measurements[:, :2]

        d = measurements - mean
        cholesky_factor = np.linalg.cholesky(covariance)
        z = scipy.linalg.solve_triangular(
            cholesky_factor, d.T, lower=True, check_finite=False, overwrite_b=True
        )
        return np.sum(z * z, axis=0)
