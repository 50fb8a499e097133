"""Attitude and rotation helpers for the fusion filter.

Provides the ZYX Euler rotation matrix, the Euler-rate matrix (and its
closed-form inverse) used by the prediction and lidar twist models, and
quaternion/Euler conversions used at the sensor boundary.
"""

from adaptive_fusion.coords.rotations import (
    PITCH_SINGULARITY_MARGIN,
    clamp_pitch,
    euler_rate_matrix,
    euler_rate_matrix_inverse,
    euler_to_quat,
    euler_to_rotation_matrix,
    is_near_gimbal_lock,
    quat_to_euler,
)

__all__ = [
    "PITCH_SINGULARITY_MARGIN",
    "euler_to_rotation_matrix",
    "euler_rate_matrix",
    "euler_rate_matrix_inverse",
    "is_near_gimbal_lock",
    "clamp_pitch",
    "euler_to_quat",
    "quat_to_euler",
]
