"""
Angle wrapping for roll, pitch and yaw.

The filter stores attitude as unconstrained reals; every difference of two
attitudes (innovations, pose deltas, Jacobian columns) goes through these
helpers and lands in [-π, π].
"""

import numpy as np
from typing import Union


def wrap_angle(angle: float) -> float:
    """
    Map a single angle onto [-π, π].

    Args:
        angle: Angle in radians, any magnitude.

    Returns:
        Equivalent angle in [-π, π].

    Example:
        >>> round(wrap_angle(2.5 * np.pi), 6)
        1.570796
    """
    return float(np.arctan2(np.sin(angle), np.cos(angle)))


def wrap_angle_array(angles: np.ndarray) -> np.ndarray:
    """Element-wise wrap_angle for arrays of angles (radians)."""
    angles = np.asarray(angles, dtype=float)
    return np.arctan2(np.sin(angles), np.cos(angles))


def angle_diff(angle1: Union[float, np.ndarray],
               angle2: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Signed shortest rotation from angle2 to angle1.

    A yaw of 359° against 1° gives -2°, not 358°.

    Args:
        angle1: Minuend in radians, e.g. the measured or current attitude.
        angle2: Subtrahend in radians, e.g. the predicted or previous attitude.

    Returns:
        angle1 - angle2 wrapped to [-π, π]; an array when either input is one.
    """
    if isinstance(angle1, np.ndarray) or isinstance(angle2, np.ndarray):
        return wrap_angle_array(np.asarray(angle1) - np.asarray(angle2))
    return wrap_angle(angle1 - angle2)
