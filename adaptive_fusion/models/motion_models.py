"""
Prediction model for the 12-state fusion filter.

State layout:
    x = [x, y, z, roll, pitch, yaw, vx, vy, vz, wx, wy, wz]
         └──── world-frame pose ───┘└──── body-frame twist ───┘

Dynamics (constant body velocity between corrections):
    pose' = pose + A(roll, pitch, yaw) @ twist * dt
    twist' = twist

    A = blockdiag(R(roll, pitch, yaw), J(roll, pitch))

where R is the ZYX rotation matrix (body -> world) and J the Euler-rate
matrix (body rates -> roll/pitch/yaw rates).
"""

from typing import Optional

import numpy as np

from adaptive_fusion.coords.rotations import (
    PITCH_SINGULARITY_MARGIN,
    clamp_pitch,
    euler_rate_matrix,
    euler_to_rotation_matrix,
)
from adaptive_fusion.utils.jacobians import (
    PREDICTION_JACOBIAN_STEP,
    numerical_jacobian,
)

N_STATES = 12

# Index groups into the state vector
POSITION = slice(0, 3)
ATTITUDE = slice(3, 6)
POSE = slice(0, 6)
LINEAR_VELOCITY = slice(6, 9)
ANGULAR_VELOCITY = slice(9, 12)
TWIST = slice(6, 12)
ANGLE_INDICES = (3, 4, 5)

# Initial per-state variance and velocity random-walk scale
INITIAL_VARIANCE = 0.1
PROCESS_NOISE_SCALE = 0.01


def initial_covariance(variance: float = INITIAL_VARIANCE) -> np.ndarray:
    """Initial 12x12 state covariance (diagonal)."""
    return variance * np.eye(N_STATES)


class BodyVelocityPoseModel:
    """
    Constant body-velocity pose model.

    Attributes:
        pitch_margin: Half-width (radians) of the band around ±90° pitch in
            which the Euler-rate matrix is evaluated at a clamped pitch.
        jacobian_step: Finite-difference step for F.
        Q_pred: Fixed 12x12 process noise, nonzero only on the velocity
            diagonal block.

    Example:
        >>> model = BodyVelocityPoseModel()
        >>> x = np.zeros(12); x[6] = 1.0  # 1 m/s forward
        >>> model.f(x, dt=0.5)[0]
        0.5
    """

    def __init__(
        self,
        pitch_margin: float = PITCH_SINGULARITY_MARGIN,
        jacobian_step: float = PREDICTION_JACOBIAN_STEP,
        Q_pred: Optional[np.ndarray] = None,
    ):
        self.pitch_margin = pitch_margin
        self.jacobian_step = jacobian_step

        if Q_pred is None:
            Q_pred = np.zeros((N_STATES, N_STATES))
            Q_pred[TWIST, TWIST] = PROCESS_NOISE_SCALE * initial_covariance()[TWIST, TWIST]
        Q_pred = np.asarray(Q_pred, dtype=float)
        if Q_pred.shape != (N_STATES, N_STATES):
            raise ValueError(f"Q_pred must be {N_STATES}x{N_STATES}, got {Q_pred.shape}")
        self.Q_pred = Q_pred

    def transition_matrix(self, x: np.ndarray) -> np.ndarray:
        """
        6x6 block-diagonal matrix A mapping body twist to pose rates.

        Args:
            x: State vector (12,).

        Returns:
            A = blockdiag(R, J) evaluated at the state's attitude.
        """
        roll, pitch, yaw = x[ATTITUDE]

        A = np.eye(6)
        A[0:3, 0:3] = euler_to_rotation_matrix(roll, pitch, yaw)
        A[3:6, 3:6] = euler_rate_matrix(roll, clamp_pitch(pitch, self.pitch_margin))
        return A

    def f(self, x: np.ndarray, dt: float) -> np.ndarray:
        """
        Propagate the state by dt seconds.

        Args:
            x: State vector (12,).
            dt: Elapsed time in seconds.

        Returns:
            Predicted state (12,). Angles are left unwrapped.
        """
        x = np.asarray(x, dtype=float)
        if x.shape != (N_STATES,):
            raise ValueError(f"State must have shape ({N_STATES},), got {x.shape}")

        x_next = x.copy()
        x_next[POSE] = x[POSE] + self.transition_matrix(x) @ x[TWIST] * dt
        return x_next

    def F(self, x: np.ndarray, dt: float) -> np.ndarray:
        """
        Numeric Jacobian ∂f/∂x evaluated at x (12x12).

        Attitude rows use the sin(Δ)/δ form to stay continuous across ±π.
        """
        return numerical_jacobian(
            lambda state: self.f(state, dt),
            x,
            self.jacobian_step,
            angle_rows=ANGLE_INDICES,
        )

    def Q(self) -> np.ndarray:
        """Process noise covariance added on every prediction."""
        return self.Q_pred.copy()
