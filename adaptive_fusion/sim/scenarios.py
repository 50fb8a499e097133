"""
Synthetic ground vehicle scenarios for the adaptive fusion filter.

A vehicle moves with a constant body twist (forward speed and yaw rate) on
a flat floor. From the ground truth three sensor streams are simulated at
their own rates:
    - Inertial: orientation (plus gravity-compensated specific force and
      body rate) with white noise
    - Wheel odometry: forward speed and yaw rate with white noise
    - Lidar odometry: absolute pose with white noise and random scan
      feature counts

Streams are lists of the sample types consumed by the fusion scheduler and
can be flattened to plain arrays for storage in .npz files.
"""

from typing import Dict, List, Optional

import numpy as np

from adaptive_fusion.coords.rotations import euler_to_rotation_matrix
from adaptive_fusion.fusion.types import ImuSample, LidarOdometrySample, WheelSample
from adaptive_fusion.utils.angles import wrap_angle_array

GRAVITY = 9.81

# Nominal stream rates (Hz)
IMU_RATE = 50.0
WHEEL_RATE = 20.0
LIDAR_RATE = 10.0


def generate_constant_twist_trajectory(
    duration: float,
    forward_speed: float = 0.0,
    yaw_rate: float = 0.0,
    initial_pose: Optional[np.ndarray] = None,
    dt: float = 0.01,
) -> Dict[str, np.ndarray]:
    """
    Ground truth of a planar vehicle driving with a constant body twist.

    Args:
        duration: Trajectory length in seconds.
        forward_speed: Body forward speed in m/s.
        yaw_rate: Body yaw rate in rad/s.
        initial_pose: [x, y, z, roll, pitch, yaw] at t=0. Defaults to zeros.
            Roll and pitch are held constant.
        dt: Sampling interval of the returned truth (seconds).

    Returns:
        Dictionary with 't' (N,), 'pose' (N, 6) and 'twist' (N, 6).
    """
    if duration < 0:
        raise ValueError(f"duration must be non-negative, got {duration}")
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")

    pose0 = np.zeros(6) if initial_pose is None else np.asarray(initial_pose, dtype=float)
    t = np.arange(0.0, duration + 0.5 * dt, dt)

    yaw = pose0[5] + yaw_rate * t
    if abs(yaw_rate) < 1e-9:
        x = pose0[0] + forward_speed * t * np.cos(pose0[5])
        y = pose0[1] + forward_speed * t * np.sin(pose0[5])
    else:
        radius = forward_speed / yaw_rate
        x = pose0[0] + radius * (np.sin(yaw) - np.sin(pose0[5]))
        y = pose0[1] - radius * (np.cos(yaw) - np.cos(pose0[5]))

    pose = np.zeros((len(t), 6))
    pose[:, 0] = x
    pose[:, 1] = y
    pose[:, 2] = pose0[2]
    pose[:, 3] = pose0[3]
    pose[:, 4] = pose0[4]
    pose[:, 5] = wrap_angle_array(yaw)

    twist = np.zeros((len(t), 6))
    twist[:, 0] = forward_speed
    twist[:, 5] = yaw_rate

    return {'t': t, 'pose': pose, 'twist': twist}


def _truth_at(truth: Dict[str, np.ndarray], t: float) -> np.ndarray:
    """Truth pose at time t (nearest truth sample)."""
    k = int(np.clip(np.searchsorted(truth['t'], t), 0, len(truth['t']) - 1))
    return truth['pose'][k]


def simulate_sensor_streams(
    truth: Dict[str, np.ndarray],
    imu_rate: float = IMU_RATE,
    wheel_rate: float = WHEEL_RATE,
    lidar_rate: float = LIDAR_RATE,
    imu_attitude_std: float = 0.005,
    wheel_speed_std: float = 0.02,
    wheel_yaw_rate_std: float = 0.005,
    lidar_position_std: float = 0.002,
    lidar_attitude_std: float = 0.001,
    corner_features: tuple = (300, 600),
    surf_features: tuple = (3000, 6000),
    seed: Optional[int] = None,
) -> List:
    """
    Simulate inertial, wheel and lidar samples from ground truth.

    Args:
        truth: Output of generate_constant_twist_trajectory.
        imu_rate, wheel_rate, lidar_rate: Stream rates in Hz.
        imu_attitude_std: Orientation noise std (rad).
        wheel_speed_std: Forward speed noise std (m/s).
        wheel_yaw_rate_std: Yaw rate noise std (rad/s).
        lidar_position_std: Lidar position noise std (m).
        lidar_attitude_std: Lidar attitude noise std (rad).
        corner_features: [low, high) range of simulated corner counts.
        surf_features: [low, high) range of simulated surface counts.
        seed: Random seed.

    Returns:
        Samples of all three streams sorted by timestamp.
    """
    rng = np.random.default_rng(seed)
    t_end = float(truth['t'][-1])
    v = float(truth['twist'][0, 0])
    wz = float(truth['twist'][0, 5])
    samples = []

    for t in np.arange(0.0, t_end + 1e-9, 1.0 / imu_rate):
        pose = _truth_at(truth, t)
        R_bw = euler_to_rotation_matrix(*pose[3:6]).T
        # Centripetal acceleration of the turn plus gravity reaction
        accel = np.array([0.0, v * wz, 0.0]) + R_bw @ np.array([0.0, 0.0, GRAVITY])
        samples.append(ImuSample(
            t=float(t),
            linear_acceleration=accel,
            angular_velocity=np.array([0.0, 0.0, wz]),
            orientation_rpy=wrap_angle_array(pose[3:6] + rng.normal(0.0, imu_attitude_std, 3)),
            orientation_covariance=np.eye(3) * imu_attitude_std**2,
        ))

    for t in np.arange(0.0, t_end + 1e-9, 1.0 / wheel_rate):
        samples.append(WheelSample(
            t=float(t),
            linear_velocity=v + rng.normal(0.0, wheel_speed_std),
            yaw_rate=wz + rng.normal(0.0, wheel_yaw_rate_std),
            linear_variance=wheel_speed_std**2,
            yaw_rate_variance=wheel_yaw_rate_std**2,
        ))

    for t in np.arange(0.0, t_end + 1e-9, 1.0 / lidar_rate):
        pose = _truth_at(truth, t).copy()
        pose[0:3] += rng.normal(0.0, lidar_position_std, 3)
        pose[3:6] = wrap_angle_array(pose[3:6] + rng.normal(0.0, lidar_attitude_std, 3))
        samples.append(LidarOdometrySample(
            t=float(t),
            pose=pose,
            corner_features=float(rng.integers(*corner_features)),
            surf_features=float(rng.integers(*surf_features)),
        ))

    samples.sort(key=lambda s: s.t)
    return samples


def static_scenario(duration: float = 10.0, seed: int = 42, **noise) -> Dict:
    """Vehicle at rest at the origin; all sensors report zero motion."""
    truth = generate_constant_twist_trajectory(duration)
    return {'truth': truth, 'samples': simulate_sensor_streams(truth, seed=seed, **noise)}


def circular_scenario(
    duration: float = 30.0,
    forward_speed: float = 1.0,
    yaw_rate: float = 0.2,
    seed: int = 42,
    **noise,
) -> Dict:
    """Vehicle driving a circle of radius forward_speed / yaw_rate."""
    truth = generate_constant_twist_trajectory(duration, forward_speed, yaw_rate)
    return {'truth': truth, 'samples': simulate_sensor_streams(truth, seed=seed, **noise)}


def streams_to_arrays(samples: List) -> Dict[str, np.ndarray]:
    """Flatten sample streams to arrays (for np.savez)."""
    imu = [s for s in samples if isinstance(s, ImuSample)]
    wheel = [s for s in samples if isinstance(s, WheelSample)]
    lidar = [s for s in samples if isinstance(s, LidarOdometrySample)]

    return {
        'imu_t': np.array([s.t for s in imu]),
        'imu_accel': np.array([s.linear_acceleration for s in imu]).reshape(-1, 3),
        'imu_gyro': np.array([s.angular_velocity for s in imu]).reshape(-1, 3),
        'imu_rpy': np.array([s.orientation_rpy for s in imu]).reshape(-1, 3),
        'imu_rpy_cov': np.array([s.orientation_covariance for s in imu]).reshape(-1, 3, 3),
        'wheel_t': np.array([s.t for s in wheel]),
        'wheel_meas': np.array([s.measurement for s in wheel]).reshape(-1, 2),
        'wheel_var': np.array(
            [[s.linear_variance, s.yaw_rate_variance] for s in wheel]
        ).reshape(-1, 2),
        'lidar_t': np.array([s.t for s in lidar]),
        'lidar_pose': np.array([s.pose for s in lidar]).reshape(-1, 6),
        'lidar_features': np.array(
            [[s.corner_features, s.surf_features] for s in lidar]
        ).reshape(-1, 2),
    }


def arrays_to_streams(arrays: Dict[str, np.ndarray]) -> List:
    """Rebuild time-sorted samples from streams_to_arrays output."""
    samples = []
    for k in range(len(arrays['imu_t'])):
        samples.append(ImuSample(
            t=float(arrays['imu_t'][k]),
            linear_acceleration=arrays['imu_accel'][k],
            angular_velocity=arrays['imu_gyro'][k],
            orientation_rpy=arrays['imu_rpy'][k],
            orientation_covariance=arrays['imu_rpy_cov'][k],
        ))
    for k in range(len(arrays['wheel_t'])):
        samples.append(WheelSample(
            t=float(arrays['wheel_t'][k]),
            linear_velocity=float(arrays['wheel_meas'][k, 0]),
            yaw_rate=float(arrays['wheel_meas'][k, 1]),
            linear_variance=float(arrays['wheel_var'][k, 0]),
            yaw_rate_variance=float(arrays['wheel_var'][k, 1]),
        ))
    for k in range(len(arrays['lidar_t'])):
        samples.append(LidarOdometrySample(
            t=float(arrays['lidar_t'][k]),
            pose=arrays['lidar_pose'][k],
            corner_features=float(arrays['lidar_features'][k, 0]),
            surf_features=float(arrays['lidar_features'][k, 1]),
        ))
    samples.sort(key=lambda s: s.t)
    return samples
