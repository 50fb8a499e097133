"""
Utility functions shared across the fusion package.

Provides angle wrapping and the finite-difference Jacobian engine used by
every estimator component, and the logging setup used by the
command-line tools.
"""

from .angles import wrap_angle, wrap_angle_array, angle_diff
from .jacobians import (
    LIDAR_JACOBIAN_STEP,
    PREDICTION_JACOBIAN_STEP,
    numerical_jacobian,
)
from .logging_config import setup_logging

__all__ = [
    'wrap_angle',
    'wrap_angle_array',
    'angle_diff',
    'numerical_jacobian',
    'PREDICTION_JACOBIAN_STEP',
    'LIDAR_JACOBIAN_STEP',
    'setup_logging',
]
