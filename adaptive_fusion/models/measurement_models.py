"""
Measurement models for the fusion filter.

Provides:
- Linear observation matrices for the wheel (vx, wz) and inertial
  (roll, pitch, yaw) corrections
- The indirect lidar twist: a body-frame velocity derived from two
  consecutive lidar odometry poses, with first-order propagation of both
  poses' covariances into the derived twist

All models are written against the 12-state layout in motion_models.
"""

from typing import Tuple

import numpy as np

from adaptive_fusion.coords.rotations import (
    euler_rate_matrix_inverse,
    euler_to_rotation_matrix,
)
from adaptive_fusion.utils.jacobians import (
    LIDAR_JACOBIAN_STEP,
    numerical_jacobian,
)
from adaptive_fusion.models.motion_models import N_STATES
from adaptive_fusion.utils.angles import angle_diff

N_WHEEL = 2
N_IMU_ATTITUDE = 3
N_LIDAR = 6

# Twist rows holding angular quantities
LIDAR_ANGLE_ROWS = (3, 4, 5)


def wheel_observation_matrix() -> np.ndarray:
    """
    Observation matrix for wheel odometry (2x12).

    Selects forward body velocity vx (state 6) and yaw rate wz (state 11).
    """
    H = np.zeros((N_WHEEL, N_STATES))
    H[0, 6] = 1.0
    H[1, 11] = 1.0
    return H


def inertial_observation_matrix() -> np.ndarray:
    """
    Observation matrix for the inertial orientation (3x12).

    Identity block on the roll, pitch, yaw states (3-5).
    """
    H = np.zeros((N_IMU_ATTITUDE, N_STATES))
    H[:, 3:6] = np.eye(N_IMU_ATTITUDE)
    return H


def lidar_twist_observation_matrix() -> np.ndarray:
    """
    Observation matrix for the derived lidar twist (6x12).

    Identity block on the body velocity states (6-11).
    """
    H = np.zeros((N_LIDAR, N_STATES))
    H[:, 6:12] = np.eye(N_LIDAR)
    return H


def indirect_lidar_twist(u: np.ndarray, u_prev: np.ndarray, dt: float) -> np.ndarray:
    """
    Body-frame twist implied by two consecutive lidar poses.

    Position delta is rotated into the previous pose's body frame with
    R(u_prev)ᵀ; the wrapped roll/pitch/yaw delta is mapped to body rates
    with the inverse Euler-rate matrix at u_prev's attitude. Both are
    divided by dt.

    Args:
        u: Current pose [x, y, z, roll, pitch, yaw].
        u_prev: Previous pose [x, y, z, roll, pitch, yaw].
        dt: Time between the two poses (seconds, > 0).

    Returns:
        Twist [vx, vy, vz, wx, wy, wz] in the previous body frame.

    Raises:
        ValueError: If dt is not positive or poses are not 6-vectors.

    Example:
        >>> pose = np.array([1.0, 2.0, 0.0, 0.0, 0.0, 0.5])
        >>> indirect_lidar_twist(pose, pose, 0.1)
        array([0., 0., 0., 0., 0., 0.])
    """
    u = np.asarray(u, dtype=float)
    u_prev = np.asarray(u_prev, dtype=float)
    if u.shape != (N_LIDAR,) or u_prev.shape != (N_LIDAR,):
        raise ValueError(
            f"Poses must have shape ({N_LIDAR},), got {u.shape} and {u_prev.shape}"
        )
    if dt <= 0.0:
        raise ValueError(f"dt must be positive, got {dt}")

    roll, pitch, yaw = u_prev[3:6]

    u_diff = np.zeros(N_LIDAR)
    u_diff[0:3] = u[0:3] - u_prev[0:3]
    u_diff[3:6] = angle_diff(u[3:6], u_prev[3:6])

    A = np.zeros((N_LIDAR, N_LIDAR))
    A[0:3, 0:3] = euler_to_rotation_matrix(roll, pitch, yaw).T
    A[3:6, 3:6] = euler_rate_matrix_inverse(roll, pitch)

    return A @ u_diff / dt


class LidarTwistMeasurement:
    """
    Derived twist measurement from lidar odometry with covariance propagation.

    The twist g(u, u_prev) depends on two noisy poses, so its covariance is

        Q = G R_cur Gᵀ + G_prev R_prev G_prevᵀ

    with G = ∂g/∂u and G_prev = ∂g/∂u_prev obtained by forward differences.

    Attributes:
        jacobian_step: Finite-difference step for G and G_prev.
    """

    def __init__(self, jacobian_step: float = LIDAR_JACOBIAN_STEP):
        self.jacobian_step = jacobian_step

    def h(self, u: np.ndarray, u_prev: np.ndarray, dt: float) -> np.ndarray:
        """Derived twist g(u, u_prev)."""
        return indirect_lidar_twist(u, u_prev, dt)

    def G(self, u: np.ndarray, u_prev: np.ndarray, dt: float) -> np.ndarray:
        """Jacobian of the twist with respect to the current pose (6x6)."""
        u_prev = np.asarray(u_prev, dtype=float)
        return numerical_jacobian(
            lambda pose: indirect_lidar_twist(pose, u_prev, dt),
            u,
            self.jacobian_step,
            angle_rows=LIDAR_ANGLE_ROWS,
        )

    def G_prev(self, u: np.ndarray, u_prev: np.ndarray, dt: float) -> np.ndarray:
        """Jacobian of the twist with respect to the previous pose (6x6)."""
        u = np.asarray(u, dtype=float)
        return numerical_jacobian(
            lambda pose: indirect_lidar_twist(u, pose, dt),
            u_prev,
            self.jacobian_step,
            angle_rows=LIDAR_ANGLE_ROWS,
        )

    def covariance(
        self,
        u: np.ndarray,
        u_prev: np.ndarray,
        dt: float,
        R_cur: np.ndarray,
        R_prev: np.ndarray,
    ) -> np.ndarray:
        """Propagated 6x6 covariance of the derived twist."""
        G = self.G(u, u_prev, dt)
        G_prev = self.G_prev(u, u_prev, dt)
        return G @ R_cur @ G.T + G_prev @ R_prev @ G_prev.T

    def derive(
        self,
        u: np.ndarray,
        u_prev: np.ndarray,
        dt: float,
        R_cur: np.ndarray,
        R_prev: np.ndarray,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Derived twist and its covariance.

        Args:
            u: Current lidar pose (6,).
            u_prev: Previous lidar pose (6,).
            dt: Time between poses (seconds).
            R_cur: Adaptive covariance of the current scan (6x6).
            R_prev: Adaptive covariance retained from the previous scan (6x6).

        Returns:
            Tuple of (twist (6,), Q (6x6)).
        """
        return self.h(u, u_prev, dt), self.covariance(u, u_prev, dt, R_cur, R_prev)
