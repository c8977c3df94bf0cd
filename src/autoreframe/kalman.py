"""
kalman.py
---------
Constant-velocity motion model for bounding boxes in [cx, cy, a, h] space.

State:  [cx, cy, a, h, vx, vy, va, vh]
Meas:   [cx, cy, a, h]

The numerical work is done by `filterpy.kalman.KalmanFilter`. A single
filter object is shared by all tracks of a tracker: each call loads the
track's (mean, covariance) into it, runs one step and hands copies back, so
per-track state stays with the track.
"""

from typing import Tuple

import numpy as np
from filterpy.kalman import KalmanFilter
from loguru import logger

from .config import STD_WEIGHT_POSITION, STD_WEIGHT_VELOCITY

NDIM = 4
DT = 1.0


def create_kalman_filter() -> KalmanFilter:
    """
    Builds a filterpy KalmanFilter with the constant-velocity transition (F)
    and position-only measurement (H) matrices.
    """
    kf = KalmanFilter(dim_x=2 * NDIM, dim_z=NDIM)
    # Transition matrix (F)
    kf.F = np.eye(2 * NDIM, dtype=np.float64)
    for i in range(NDIM):
        kf.F[i, NDIM + i] = DT
    # Measurement matrix (H)
    kf.H = np.eye(NDIM, 2 * NDIM, dtype=np.float64)
    return kf


class KalmanBoxFilter:
    """
    Height-scaled constant-velocity Kalman filter.

    Process and measurement noise are proportional to the current box height,
    so large (close) subjects are allowed to move more pixels per frame than
    small (far) ones.
    """

    def __init__(self, std_weight_position: float = STD_WEIGHT_POSITION,
                 std_weight_velocity: float = STD_WEIGHT_VELOCITY):
        self.std_weight_position = std_weight_position
        self.std_weight_velocity = std_weight_velocity
        self.kf = create_kalman_filter()

    def initiate(self, measurement: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Creates a track state from an unassociated measurement.

        Args:
            measurement: Box in [cx, cy, a, h] format.

        Returns:
            (mean, covariance): 8-vector with zero velocity and 8x8 diagonal covariance.
        """
        mean_pos = np.asarray(measurement, dtype=np.float64).reshape(NDIM)
        mean = np.r_[mean_pos, np.zeros_like(mean_pos)]

        h = mean_pos[3]
        wp, wv = self.std_weight_position, self.std_weight_velocity
        std = [
            2 * wp * h, 2 * wp * h, 1e-2, 2 * wp * h,
            10 * wv * h, 10 * wv * h, 1e-5, 10 * wv * h,
        ]
        covariance = np.diag(np.square(std))
        return mean, covariance

    def _process_noise(self, mean: np.ndarray) -> np.ndarray:
        h = mean[3]
        wp, wv = self.std_weight_position, self.std_weight_velocity
        std = [wp * h, wp * h, 1e-2, wp * h, wv * h, wv * h, 1e-5, wv * h]
        return np.diag(np.square(std))

    def _measurement_noise(self, mean: np.ndarray) -> np.ndarray:
        h = mean[3]
        wp = self.std_weight_position
        return np.diag(np.square([wp * h, wp * h, 1e-1, wp * h]))

    def _load(self, mean: np.ndarray, covariance: np.ndarray) -> None:
        self.kf.x = np.asarray(mean, dtype=np.float64).reshape(2 * NDIM, 1).copy()
        self.kf.P = np.asarray(covariance, dtype=np.float64).copy()

    def predict(self, mean: np.ndarray, covariance: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Runs the prediction step: mean' = F.mean, cov' = F.cov.F^T + Q."""
        self._load(mean, covariance)
        self.kf.predict(Q=self._process_noise(mean))
        return self.kf.x.reshape(-1).copy(), self.kf.P.copy()

    def update(self, mean: np.ndarray, covariance: np.ndarray,
               measurement: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Runs the correction step with a [cx, cy, a, h] measurement.

        If the innovation covariance cannot be inverted, or the update produces
        non-finite numbers, the predicted (mean, covariance) is returned as is.
        """
        z = np.asarray(measurement, dtype=np.float64).reshape(NDIM, 1)
        self._load(mean, covariance)
        try:
            self.kf.update(z, R=self._measurement_noise(mean))
        except np.linalg.LinAlgError as err:
            logger.debug(f"Singular innovation covariance, keeping predicted state: {err}")
            return np.asarray(mean, dtype=np.float64).copy(), np.asarray(covariance, dtype=np.float64).copy()

        new_mean = self.kf.x.reshape(-1).copy()
        new_cov = self.kf.P.copy()
        if not (np.all(np.isfinite(new_mean)) and np.all(np.isfinite(new_cov))):
            logger.debug("Non-finite Kalman update, keeping predicted state")
            return np.asarray(mean, dtype=np.float64).copy(), np.asarray(covariance, dtype=np.float64).copy()
        return new_mean, new_cov
