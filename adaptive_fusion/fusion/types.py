"""Data types exchanged with the sensor ingest and publish collaborators.

Sensor samples are immutable snapshots written by producer threads into
the measurement staging area; output records are built by the scheduler
from the filter state and handed to the publisher.

Conventions:
- Timestamps in seconds (float)
- Orientation quaternions [qw, qx, qy, qz]
- Euler angles [roll, pitch, yaw] in radians (ZYX)
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from adaptive_fusion.coords.rotations import euler_to_quat, quat_to_euler


def _as_vector(name: str, value, size: int) -> np.ndarray:
    # Private read-only copy; producers may reuse their buffers after put()
    arr = np.array(value, dtype=float)
    if arr.shape != (size,):
        raise ValueError(f"{name} must have shape ({size},), got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite, got {arr}")
    arr.flags.writeable = False
    return arr


def _as_covariance(name: str, value, size: int) -> np.ndarray:
    arr = np.array(value, dtype=float)
    if arr.shape == (size * size,):
        arr = arr.reshape(size, size)
    if arr.shape != (size, size):
        raise ValueError(f"{name} must have shape ({size}, {size}), got {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite")
    arr.flags.writeable = False
    return arr


def _check_stamp(t) -> None:
    if not isinstance(t, (float, int, np.floating, np.integer)):
        raise TypeError(f"Timestamp must be numeric, got {type(t)}")
    if t < 0:
        raise ValueError(f"Timestamp must be non-negative, got {t}")


@dataclass(frozen=True)
class ImuSample:
    """Inertial sample.

    Attributes:
        t: Timestamp in seconds.
        linear_acceleration: Specific force in body frame (3,), m/s².
        angular_velocity: Body angular rate (3,), rad/s.
        orientation_rpy: Orientation as [roll, pitch, yaw] (3,), rad.
        acceleration_covariance: 3x3 (or flat 9) covariance of the acceleration.
        angular_velocity_covariance: 3x3 (or flat 9) covariance of the rate.
        orientation_covariance: 3x3 (or flat 9) covariance of the orientation.

    Only the orientation (and its covariance) feeds the filter; the
    acceleration and rate blocks are carried for completeness.
    """

    t: float
    linear_acceleration: np.ndarray
    angular_velocity: np.ndarray
    orientation_rpy: np.ndarray
    acceleration_covariance: np.ndarray = field(default_factory=lambda: np.zeros((3, 3)))
    angular_velocity_covariance: np.ndarray = field(default_factory=lambda: np.zeros((3, 3)))
    orientation_covariance: np.ndarray = field(default_factory=lambda: np.eye(3) * 1e-3)

    def __post_init__(self) -> None:
        _check_stamp(self.t)
        # frozen dataclass: normalise fields through object.__setattr__
        object.__setattr__(self, "linear_acceleration",
                           _as_vector("linear_acceleration", self.linear_acceleration, 3))
        object.__setattr__(self, "angular_velocity",
                           _as_vector("angular_velocity", self.angular_velocity, 3))
        object.__setattr__(self, "orientation_rpy",
                           _as_vector("orientation_rpy", self.orientation_rpy, 3))
        object.__setattr__(self, "acceleration_covariance",
                           _as_covariance("acceleration_covariance", self.acceleration_covariance, 3))
        object.__setattr__(self, "angular_velocity_covariance",
                           _as_covariance("angular_velocity_covariance",
                                          self.angular_velocity_covariance, 3))
        object.__setattr__(self, "orientation_covariance",
                           _as_covariance("orientation_covariance", self.orientation_covariance, 3))

    @classmethod
    def from_quaternion(
        cls,
        t: float,
        linear_acceleration,
        angular_velocity,
        orientation,
        acceleration_covariance=None,
        angular_velocity_covariance=None,
        orientation_covariance=None,
    ) -> "ImuSample":
        """Build a sample from a [qw, qx, qy, qz] orientation."""
        kwargs = {}
        if acceleration_covariance is not None:
            kwargs["acceleration_covariance"] = acceleration_covariance
        if angular_velocity_covariance is not None:
            kwargs["angular_velocity_covariance"] = angular_velocity_covariance
        if orientation_covariance is not None:
            kwargs["orientation_covariance"] = orientation_covariance
        return cls(
            t=t,
            linear_acceleration=linear_acceleration,
            angular_velocity=angular_velocity,
            orientation_rpy=quat_to_euler(np.asarray(orientation, dtype=float)),
            **kwargs,
        )

    @property
    def covariance(self) -> np.ndarray:
        """Full 9x9 block-diagonal covariance [accel, gyro, orientation]."""
        E = np.zeros((9, 9))
        E[0:3, 0:3] = self.acceleration_covariance
        E[3:6, 3:6] = self.angular_velocity_covariance
        E[6:9, 6:9] = self.orientation_covariance
        return E

    def attitude_covariance(self, gain: float) -> np.ndarray:
        """Orientation covariance scaled by the inertial gain."""
        return gain * self.orientation_covariance


@dataclass(frozen=True)
class WheelSample:
    """Wheel odometry sample.

    Attributes:
        t: Timestamp in seconds.
        linear_velocity: Forward body velocity, m/s.
        yaw_rate: Body yaw rate, rad/s.
        linear_variance: Variance of linear_velocity.
        yaw_rate_variance: Variance of yaw_rate.
    """

    t: float
    linear_velocity: float
    yaw_rate: float
    linear_variance: float = 1e-3
    yaw_rate_variance: float = 1e-3

    def __post_init__(self) -> None:
        _check_stamp(self.t)
        values = (self.linear_velocity, self.yaw_rate, self.linear_variance, self.yaw_rate_variance)
        if not np.all(np.isfinite(values)):
            raise ValueError(f"Wheel sample values must be finite, got {values}")
        if self.linear_variance < 0 or self.yaw_rate_variance < 0:
            raise ValueError("Wheel variances must be non-negative")

    @property
    def measurement(self) -> np.ndarray:
        """Measurement vector [vx, wz]."""
        return np.array([self.linear_velocity, self.yaw_rate], dtype=float)

    def covariance(self, gain: float, yaw_rate_gain: float) -> np.ndarray:
        """Diagonal 2x2 covariance with the configured gains applied."""
        return np.diag([gain * self.linear_variance, yaw_rate_gain * self.yaw_rate_variance])


@dataclass(frozen=True)
class LidarOdometrySample:
    """Scan-matched lidar odometry sample.

    Attributes:
        t: Timestamp in seconds.
        pose: Absolute pose [x, y, z, roll, pitch, yaw] (6,).
        corner_features: Corner feature count used by the scan match.
        surf_features: Surface feature count used by the scan match.
    """

    t: float
    pose: np.ndarray
    corner_features: float
    surf_features: float

    def __post_init__(self) -> None:
        _check_stamp(self.t)
        object.__setattr__(self, "pose", _as_vector("pose", self.pose, 6))
        if not np.isfinite(self.corner_features) or not np.isfinite(self.surf_features):
            raise ValueError("Feature counts must be finite")
        if self.corner_features < 0 or self.surf_features < 0:
            raise ValueError(
                f"Feature counts must be non-negative, got corner={self.corner_features}, "
                f"surf={self.surf_features}"
            )

    @classmethod
    def from_quaternion(
        cls,
        t: float,
        position,
        orientation,
        corner_features: float,
        surf_features: float,
    ) -> "LidarOdometrySample":
        """Build a sample from a position and a [qw, qx, qy, qz] orientation."""
        position = _as_vector("position", position, 3)
        rpy = quat_to_euler(np.asarray(orientation, dtype=float))
        return cls(
            t=t,
            pose=np.concatenate([position, rpy]),
            corner_features=corner_features,
            surf_features=surf_features,
        )


@dataclass(frozen=True)
class FilteredOdometry:
    """Filtered estimate handed to the publisher.

    Attributes:
        stamp: Timestamp in seconds.
        frame_id: Parent (world) frame.
        child_frame_id: Body frame of the estimate.
        pose: [x, y, z, roll, pitch, yaw].
        orientation: Quaternion [qw, qx, qy, qz] of the pose attitude.
        pose_covariance: 6x6 block P[0:6, 0:6].
        twist: Body twist [vx, vy, vz, wx, wy, wz].
        twist_covariance: 6x6 block P[6:12, 6:12].
        source: Filter stage that produced it ('prediction', 'imu', 'wheel', 'lidar').
    """

    stamp: float
    frame_id: str
    child_frame_id: str
    pose: np.ndarray
    orientation: np.ndarray
    pose_covariance: np.ndarray
    twist: np.ndarray
    twist_covariance: np.ndarray
    source: str

    @classmethod
    def from_state(
        cls,
        state: np.ndarray,
        covariance: np.ndarray,
        stamp: float,
        frame_id: str,
        child_frame_id: str,
        source: str,
    ) -> "FilteredOdometry":
        """Snapshot a (12,) state and (12x12) covariance."""
        state = np.asarray(state, dtype=float)
        covariance = np.asarray(covariance, dtype=float)
        return cls(
            stamp=stamp,
            frame_id=frame_id,
            child_frame_id=child_frame_id,
            pose=state[0:6].copy(),
            orientation=euler_to_quat(*state[3:6]),
            pose_covariance=covariance[0:6, 0:6].copy(),
            twist=state[6:12].copy(),
            twist_covariance=covariance[6:12, 6:12].copy(),
            source=source,
        )

    @property
    def position(self) -> np.ndarray:
        return self.pose[0:3]

    @property
    def rpy(self) -> np.ndarray:
        return self.pose[3:6]

    def as_flat_covariances(self) -> Tuple[np.ndarray, np.ndarray]:
        """Pose and twist covariances as 36-element row-major arrays."""
        return self.pose_covariance.reshape(36), self.twist_covariance.reshape(36)


@dataclass(frozen=True)
class TwistDiagnostic:
    """Derived lidar twist with its propagated covariance.

    Attributes:
        stamp: Timestamp of the lidar sample (seconds), if known.
        frame_id: Parent frame.
        child_frame_id: Diagnostic frame.
        twist: Derived twist [vx, vy, vz, wx, wy, wz].
        covariance: 6x6 propagated covariance.
        applied: Whether the filter accepted the correction.
    """

    stamp: Optional[float]
    frame_id: str
    child_frame_id: str
    twist: np.ndarray
    covariance: np.ndarray
    applied: bool = True

    def as_flat_covariance(self) -> np.ndarray:
        """Covariance as a 36-element row-major array."""
        return self.covariance.reshape(36)
