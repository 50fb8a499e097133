"""Rotation representations and Euler-angle kinematics.

This module provides the attitude helpers used by the fusion filter:
- Rotation matrices (3x3 orthogonal matrices, SO(3)) from roll/pitch/yaw
- Euler-rate matrix mapping body angular rates to roll/pitch/yaw rates
- Quaternion <-> Euler conversion for sensor ingest and published output

Conventions:
- Quaternions: [qw, qx, qy, qz] where qw is the scalar part
- Euler angles: [roll, pitch, yaw] in radians (ZYX/3-2-1 convention)
  - Roll: rotation about x-axis (φ)
  - Pitch: rotation about y-axis (θ)
  - Yaw: rotation about z-axis (ψ)
- Rotation matrices: 3x3 numpy arrays with R = Rz(ψ) Ry(θ) Rx(φ)

The Euler-rate matrix is singular at pitch = ±90° (gimbal lock). Callers
that integrate through it use is_near_gimbal_lock() / clamp_pitch().
"""

import numpy as np
from numpy.typing import NDArray

# Default distance from ±90° pitch treated as gimbal lock (radians)
PITCH_SINGULARITY_MARGIN = 1e-3


def euler_to_rotation_matrix(
    roll: float,
    pitch: float,
    yaw: float,
) -> NDArray[np.float64]:
    """Convert Euler angles to rotation matrix.

    Converts roll-pitch-yaw Euler angles (ZYX convention) to a 3x3
    rotation matrix that transforms vectors from body frame to
    world frame.

    Args:
        roll: Roll angle φ in radians (rotation about x-axis).
        pitch: Pitch angle θ in radians (rotation about y-axis).
        yaw: Yaw angle ψ in radians (rotation about z-axis).

    Returns:
        3x3 rotation matrix R such that v_world = R @ v_body.

    Example:
        >>> R = euler_to_rotation_matrix(0.0, 0.0, np.pi / 2)
        >>> v_world = R @ np.array([1.0, 0.0, 0.0])
        >>> print(f"Body x in world frame: {np.round(v_world, 6)}")  # [0, 1, 0]
    """
    cr = np.cos(roll)
    sr = np.sin(roll)
    cp = np.cos(pitch)
    sp = np.sin(pitch)
    cy = np.cos(yaw)
    sy = np.sin(yaw)

    # ZYX (3-2-1) Euler angle rotation matrix
    R = np.array(
        [
            [cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr],
            [sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr],
            [-sp, cp * sr, cp * cr],
        ],
        dtype=np.float64,
    )

    return R


def euler_rate_matrix(roll: float, pitch: float) -> NDArray[np.float64]:
    """Matrix mapping body angular rates to Euler-angle rates.

    [φ̇, θ̇, ψ̇]ᵀ = J(φ, θ) @ [ωx, ωy, ωz]ᵀ

    J does not depend on yaw. It contains tan(θ) and 1/cos(θ), so it is
    singular at θ = ±90°; no guard is applied here.

    Args:
        roll: Roll angle φ in radians.
        pitch: Pitch angle θ in radians.

    Returns:
        3x3 Euler-rate matrix J.
    """
    sr = np.sin(roll)
    cr = np.cos(roll)
    tp = np.tan(pitch)
    cp = np.cos(pitch)

    return np.array(
        [
            [1.0, sr * tp, cr * tp],
            [0.0, cr, -sr],
            [0.0, sr / cp, cr / cp],
        ],
        dtype=np.float64,
    )


def euler_rate_matrix_inverse(roll: float, pitch: float) -> NDArray[np.float64]:
    """Inverse of euler_rate_matrix(), mapping Euler-angle rates to body rates.

    [ωx, ωy, ωz]ᵀ = W(φ, θ) @ [φ̇, θ̇, ψ̇]ᵀ, with W = J⁻¹ written in closed
    form. Unlike J, W stays finite at θ = ±90° (it only loses rank there).

    Args:
        roll: Roll angle φ in radians.
        pitch: Pitch angle θ in radians.

    Returns:
        3x3 matrix W such that W @ euler_rate_matrix(roll, pitch) = I.
    """
    sr = np.sin(roll)
    cr = np.cos(roll)
    sp = np.sin(pitch)
    cp = np.cos(pitch)

    return np.array(
        [
            [1.0, 0.0, -sp],
            [0.0, cr, sr * cp],
            [0.0, -sr, cr * cp],
        ],
        dtype=np.float64,
    )


def is_near_gimbal_lock(pitch: float, margin: float = PITCH_SINGULARITY_MARGIN) -> bool:
    """Return True when pitch is within `margin` radians of ±90°."""
    return bool(abs(np.cos(pitch)) < np.sin(margin))


def clamp_pitch(pitch: float, margin: float = PITCH_SINGULARITY_MARGIN) -> float:
    """Move a pitch angle away from ±90° by at least `margin` radians.

    Pitch values outside the singular band are returned unchanged. Inside
    the band, the value is replaced by the nearest of ±(π/2 - margin),
    keeping the side of the singularity (and the wrapped branch) it was on.

    Args:
        pitch: Pitch angle in radians (unwrapped values allowed).
        margin: Half-width of the singular band in radians.

    Returns:
        Pitch angle usable in euler_rate_matrix().
    """
    if not is_near_gimbal_lock(pitch, margin):
        return pitch

    wrapped = np.arctan2(np.sin(pitch), np.cos(pitch))
    offset = pitch - wrapped
    sign = 1.0 if wrapped >= 0.0 else -1.0
    # Which side of the singularity: |wrapped| below or above π/2
    if abs(wrapped) <= np.pi / 2.0:
        clamped = sign * (np.pi / 2.0 - margin)
    else:
        clamped = sign * (np.pi / 2.0 + margin)
    return float(clamped + offset)


def euler_to_quat(
    roll: float,
    pitch: float,
    yaw: float,
) -> NDArray[np.float64]:
    """Convert Euler angles to quaternion.

    Args:
        roll: Roll angle φ in radians (rotation about x-axis).
        pitch: Pitch angle θ in radians (rotation about y-axis).
        yaw: Yaw angle ψ in radians (rotation about z-axis).

    Returns:
        Unit quaternion as numpy array [qw, qx, qy, qz].
    """
    cr = np.cos(roll / 2.0)
    sr = np.sin(roll / 2.0)
    cp = np.cos(pitch / 2.0)
    sp = np.sin(pitch / 2.0)
    cy = np.cos(yaw / 2.0)
    sy = np.sin(yaw / 2.0)

    qw = cr * cp * cy + sr * sp * sy
    qx = sr * cp * cy - cr * sp * sy
    qy = cr * sp * cy + sr * cp * sy
    qz = cr * cp * sy - sr * sp * cy

    return np.array([qw, qx, qy, qz], dtype=np.float64)


def quat_to_euler(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert quaternion to Euler angles.

    Extracts roll-pitch-yaw Euler angles (ZYX convention) from a
    quaternion. The quaternion is normalized first, so raw sensor
    quaternions with small norm errors are accepted.

    Args:
        q: Quaternion as numpy array [qw, qx, qy, qz].

    Returns:
        Euler angles as numpy array [roll, pitch, yaw] in radians.

    Raises:
        ValueError: If q is not a 4-element array or has zero norm.
    """
    q = np.asarray(q, dtype=np.float64)
    if q.shape != (4,):
        raise ValueError(f"Expected 4-element quaternion, got shape {q.shape}")

    norm = np.linalg.norm(q)
    if norm < 1e-12:
        raise ValueError("Quaternion has zero norm")
    qw, qx, qy, qz = q / norm

    sin_roll_cos_pitch = 2.0 * (qw * qx + qy * qz)
    cos_roll_cos_pitch = 1.0 - 2.0 * (qx * qx + qy * qy)
    roll = np.arctan2(sin_roll_cos_pitch, cos_roll_cos_pitch)

    sin_pitch = 2.0 * (qw * qy - qz * qx)
    # Clamp to avoid numerical issues with arcsin
    sin_pitch = np.clip(sin_pitch, -1.0, 1.0)
    pitch = np.arcsin(sin_pitch)

    sin_yaw_cos_pitch = 2.0 * (qw * qz + qx * qy)
    cos_yaw_cos_pitch = 1.0 - 2.0 * (qy * qy + qz * qz)
    yaw = np.arctan2(sin_yaw_cos_pitch, cos_yaw_cos_pitch)

    return np.array([roll, pitch, yaw], dtype=np.float64)
