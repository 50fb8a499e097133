"""
Extended Kalman Filter fusing inertial, wheel and lidar odometry.

State (12): world-frame pose [x, y, z, roll, pitch, yaw] followed by the
body-frame twist [vx, vy, vz, wx, wy, wz].

Implements:
    - Prediction with a constant body-velocity model
      x̂_k^- = f(x̂_{k-1}, dt)
      P_k^- = F P_{k-1} Fᵀ + Q_pred,  F = ∂f/∂x by forward differences
    - Wheel correction: z = [vx, wz], linear observation
    - Inertial correction: z = [roll, pitch, yaw], linear observation,
      wrapped innovation
    - Lidar correction: z = twist derived from two consecutive lidar poses,
      with covariance Q = G R_cur Gᵀ + G_prev R_prev G_prevᵀ

All corrections share one linear update:
    S = H P Hᵀ + R
    K = P Hᵀ S⁻¹
    x̂ = x̂ + K ν
    P = (I - K H) P (I - K H)ᵀ + K R Kᵀ   (Joseph form, default)
    P = P - K H P                          (legacy form)

A correction whose innovation covariance cannot be factorized, is badly
conditioned, or produces non-finite values is skipped: state and
covariance keep their predicted values and a RuntimeWarning is issued.
"""

import logging
import warnings
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np
from scipy.linalg import LinAlgError, cho_factor, cho_solve

from adaptive_fusion.coords.rotations import (
    PITCH_SINGULARITY_MARGIN,
    is_near_gimbal_lock,
)
from adaptive_fusion.estimators.base import StateEstimator
from adaptive_fusion.models.measurement_models import (
    LidarTwistMeasurement,
    inertial_observation_matrix,
    lidar_twist_observation_matrix,
    wheel_observation_matrix,
)
from adaptive_fusion.models.motion_models import (
    ATTITUDE,
    N_STATES,
    POSE,
    TWIST,
    BodyVelocityPoseModel,
    initial_covariance,
)
from adaptive_fusion.utils.angles import angle_diff

logger = logging.getLogger(__name__)

# Innovation covariances above this condition number are rejected
MAX_INNOVATION_CONDITION = 1e12

# Elapsed time assumed between lidar scans when stamps are unusable
LIDAR_NOMINAL_DT = 0.1

SENSORS = ("imu", "wheel", "lidar")


@dataclass(frozen=True)
class ImuBias:
    """
    Inertial bias placeholders.

    Carried alongside the filter but never estimated nor applied to any
    measurement.
    """

    accel: tuple = (1e-4, 1e-4, 1e-4)
    gyro: tuple = (1e-8, 1e-8, 1e-8)


@dataclass(frozen=True)
class IndirectTwist:
    """
    Twist derived from two consecutive lidar poses.

    Attributes:
        stamp: Timestamp of the current lidar pose (seconds), or None.
        twist: Derived body-frame twist [vx, vy, vz, wx, wy, wz].
        covariance: Propagated 6x6 covariance of the twist.
        dt: Elapsed time used for the derivation (seconds).
        applied: Whether the filter accepted it as a correction.
    """

    stamp: Optional[float]
    twist: np.ndarray
    covariance: np.ndarray
    dt: float
    applied: bool


class AdaptiveFusionEKF(StateEstimator):
    """
    EKF fusing inertial attitude, wheel odometry and lidar odometry.

    Attributes:
        motion_model: Prediction model (BodyVelocityPoseModel).
        lidar_model: Lidar twist derivation and covariance propagation.
        joseph_form: Use the Joseph covariance update (else P - K H P).
        lidar_nominal_dt: Fallback time between lidar scans (seconds).
        bias: Inertial bias placeholders (unused by the filter).
        update_counts: Per-sensor counts of applied and skipped corrections.

    Example:
        >>> ekf = AdaptiveFusionEKF()
        >>> ekf.predict(dt=0.005)
        >>> ekf.correct_wheel(np.array([0.5, 0.0]), np.diag([1e-3, 1e-3]))
        True
    """

    def __init__(
        self,
        x0: Optional[np.ndarray] = None,
        P0: Optional[np.ndarray] = None,
        motion_model: Optional[BodyVelocityPoseModel] = None,
        lidar_model: Optional[LidarTwistMeasurement] = None,
        joseph_form: bool = True,
        lidar_nominal_dt: float = LIDAR_NOMINAL_DT,
        pitch_margin: float = PITCH_SINGULARITY_MARGIN,
        max_condition: float = MAX_INNOVATION_CONDITION,
    ):
        """
        Initialize the fusion EKF.

        Args:
            x0: Initial state (12,). Defaults to zeros.
            P0: Initial covariance (12x12). Defaults to 0.1 * I.
            motion_model: Prediction model. Defaults to BodyVelocityPoseModel
                with the given pitch_margin.
            lidar_model: Lidar twist model. Defaults to LidarTwistMeasurement().
            joseph_form: Covariance update form.
            lidar_nominal_dt: Fallback time between lidar scans (seconds).
            pitch_margin: Band around ±90° pitch treated as gimbal lock.
            max_condition: Largest accepted condition number of S.

        Raises:
            ValueError: If dimensions are inconsistent or lidar_nominal_dt <= 0.
        """
        super().__init__(N_STATES)

        if x0 is None:
            x0 = np.zeros(N_STATES)
        if P0 is None:
            P0 = initial_covariance()

        self.state = np.asarray(x0, dtype=float).copy()
        self.covariance = np.asarray(P0, dtype=float).copy()

        if self.state.shape != (N_STATES,):
            raise ValueError(f"x0 shape {self.state.shape} must be ({N_STATES},)")
        if self.covariance.shape != (N_STATES, N_STATES):
            raise ValueError(
                f"P0 shape {self.covariance.shape} inconsistent with state_dim {N_STATES}"
            )
        if lidar_nominal_dt <= 0.0:
            raise ValueError(f"lidar_nominal_dt must be positive, got {lidar_nominal_dt}")

        self.pitch_margin = pitch_margin
        self.motion_model = motion_model or BodyVelocityPoseModel(pitch_margin=pitch_margin)
        self.lidar_model = lidar_model or LidarTwistMeasurement()
        self.joseph_form = joseph_form
        self.lidar_nominal_dt = lidar_nominal_dt
        self.max_condition = max_condition
        self.bias = ImuBias()

        # Last lidar pose, its adaptive covariance and stamp
        self.last_lidar_pose: Optional[np.ndarray] = None
        self.last_lidar_covariance: Optional[np.ndarray] = None
        self.last_lidar_stamp: Optional[float] = None

        self.update_counts: Dict[str, Dict[str, int]] = {
            sensor: {"applied": 0, "skipped": 0} for sensor in SENSORS
        }

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------
    def predict(self, dt: float) -> None:
        """
        Propagate state and covariance by dt seconds.

        The Jacobian F is evaluated at the pre-prediction state. Near
        ±90° pitch the Euler-rate matrix is evaluated at a clamped pitch
        and a RuntimeWarning is issued.

        Args:
            dt: Elapsed time since the previous prediction (seconds, >= 0).

        Raises:
            ValueError: If dt is negative or not finite.
        """
        if not np.isfinite(dt) or dt < 0.0:
            raise ValueError(f"dt must be finite and non-negative, got {dt}")

        x_pre = self.state.copy()

        if is_near_gimbal_lock(x_pre[4], self.pitch_margin):
            warnings.warn(
                f"Pitch {np.rad2deg(x_pre[4]):.3f} deg is within "
                f"{np.rad2deg(self.pitch_margin):.3f} deg of gimbal lock; "
                "Euler-rate matrix evaluated at clamped pitch.",
                RuntimeWarning,
            )

        F = self.motion_model.F(x_pre, dt)
        x_pred = self.motion_model.f(x_pre, dt)
        P_pred = F @ self.covariance @ F.T + self.motion_model.Q()

        if not (np.all(np.isfinite(x_pred)) and np.all(np.isfinite(P_pred))):
            warnings.warn(
                "Prediction produced non-finite values; state left unchanged.",
                RuntimeWarning,
            )
            return

        self.state = x_pred
        self.covariance = P_pred

    # ------------------------------------------------------------------
    # Corrections
    # ------------------------------------------------------------------
    def correct_wheel(self, z: np.ndarray, R: np.ndarray) -> bool:
        """
        Fuse wheel odometry [forward velocity, yaw rate].

        Args:
            z: Measurement [vx, wz] (2,).
            R: Measurement covariance (2x2).

        Returns:
            True if the correction was applied.
        """
        z = np.asarray(z, dtype=float)
        H = wheel_observation_matrix()
        innovation = z - H @ self.state
        return self._linear_update(innovation, H, np.asarray(R, dtype=float), "wheel")

    def correct_inertial(self, z_rpy: np.ndarray, R: np.ndarray) -> bool:
        """
        Fuse inertial orientation [roll, pitch, yaw].

        The innovation is wrapped to [-π, π] per axis.

        Args:
            z_rpy: Measured roll, pitch, yaw in radians (3,).
            R: Orientation covariance (3x3), already scaled by the inertial gain.

        Returns:
            True if the correction was applied.
        """
        z_rpy = np.asarray(z_rpy, dtype=float)
        H = inertial_observation_matrix()
        innovation = angle_diff(z_rpy, self.state[ATTITUDE])
        return self._linear_update(innovation, H, np.asarray(R, dtype=float), "imu")

    def correct_lidar(
        self,
        pose: np.ndarray,
        R_lidar: np.ndarray,
        stamp: Optional[float] = None,
    ) -> Optional[IndirectTwist]:
        """
        Fuse lidar odometry through a derived body-frame twist.

        The first pose only primes the retained pose. Every later pose is
        combined with the retained one into a twist observation of the
        velocity states; afterwards the current pose, its covariance and
        stamp replace the retained ones whether or not the update was
        accepted.

        Args:
            pose: Lidar pose [x, y, z, roll, pitch, yaw] (6,).
            R_lidar: Adaptive covariance of this scan (6x6).
            stamp: Pose timestamp (seconds). The elapsed time between
                stamps is used when positive, else lidar_nominal_dt.

        Returns:
            The derived IndirectTwist, or None for the priming pose.
        """
        pose = np.asarray(pose, dtype=float)
        R_lidar = np.asarray(R_lidar, dtype=float)

        if self.last_lidar_pose is None:
            self._retain_lidar(pose, R_lidar, stamp)
            logger.debug("Lidar pose retained as reference; no correction")
            return None

        dt = self.lidar_nominal_dt
        if stamp is not None and self.last_lidar_stamp is not None:
            elapsed = stamp - self.last_lidar_stamp
            if elapsed > 0.0:
                dt = elapsed
            else:
                logger.debug(f"Non-increasing lidar stamp (dt={elapsed:.4f}s); using nominal dt")

        twist, Q = self.lidar_model.derive(
            pose, self.last_lidar_pose, dt, R_lidar, self.last_lidar_covariance
        )

        if np.all(np.isfinite(twist)) and np.all(np.isfinite(Q)):
            H = lidar_twist_observation_matrix()
            applied = self._linear_update(twist - H @ self.state, H, Q, "lidar")
        else:
            self._skip("lidar", "derived twist is not finite")
            applied = False

        self._retain_lidar(pose, R_lidar, stamp)

        return IndirectTwist(stamp=stamp, twist=twist, covariance=Q, dt=dt, applied=applied)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    @property
    def pose(self) -> np.ndarray:
        """World-frame pose [x, y, z, roll, pitch, yaw]."""
        return self.state[POSE].copy()

    @property
    def twist(self) -> np.ndarray:
        """Body-frame twist [vx, vy, vz, wx, wy, wz]."""
        return self.state[TWIST].copy()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _retain_lidar(self, pose: np.ndarray, R_lidar: np.ndarray, stamp: Optional[float]) -> None:
        self.last_lidar_pose = pose.copy()
        self.last_lidar_covariance = R_lidar.copy()
        self.last_lidar_stamp = stamp

    def _skip(self, sensor: str, reason: str) -> None:
        self.update_counts[sensor]["skipped"] += 1
        warnings.warn(f"Skipped {sensor} correction: {reason}", RuntimeWarning)

    def _linear_update(
        self,
        innovation: np.ndarray,
        H: np.ndarray,
        R: np.ndarray,
        sensor: str,
    ) -> bool:
        """Kalman update shared by all corrections; returns False when skipped."""
        m = H.shape[0]
        if innovation.shape != (m,):
            raise ValueError(f"Innovation must have shape ({m},), got {innovation.shape}")
        if R.shape != (m, m):
            raise ValueError(f"R must have shape ({m}, {m}), got {R.shape}")

        P = self.covariance

        # Innovation covariance: S = H P Hᵀ + R
        S = H @ P @ H.T + R
        S = 0.5 * (S + S.T)

        if not (np.all(np.isfinite(S)) and np.all(np.isfinite(innovation))):
            self._skip(sensor, "non-finite innovation")
            return False

        condition = np.linalg.cond(S)
        if not np.isfinite(condition) or condition > self.max_condition:
            self._skip(sensor, f"ill-conditioned innovation covariance (cond={condition:.3e})")
            return False

        # Kalman gain: K = P Hᵀ S⁻¹, i.e. Kᵀ = S⁻¹ H P
        try:
            factor = cho_factor(S)
        except LinAlgError:
            self._skip(sensor, "innovation covariance is not positive definite")
            return False
        K = cho_solve(factor, H @ P).T

        x_new = self.state + K @ innovation

        if self.joseph_form:
            I_KH = np.eye(self.state_dim) - K @ H
            P_new = I_KH @ P @ I_KH.T + K @ R @ K.T
        else:
            P_new = P - K @ H @ P

        if not (np.all(np.isfinite(x_new)) and np.all(np.isfinite(P_new))):
            self._skip(sensor, "update produced non-finite values")
            return False

        self.state = x_new
        self.covariance = P_new
        self.update_counts[sensor]["applied"] += 1
        return True
