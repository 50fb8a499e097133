"""
Process and measurement models for the fusion filter.

Provides the constant body-velocity prediction model for the 12-state
pose/twist vector and the measurement models used by the inertial, wheel
and lidar corrections.
"""

from .motion_models import (
    ANGLE_INDICES,
    ATTITUDE,
    N_STATES,
    POSE,
    POSITION,
    TWIST,
    BodyVelocityPoseModel,
    initial_covariance,
)
from .measurement_models import (
    LidarTwistMeasurement,
    indirect_lidar_twist,
    inertial_observation_matrix,
    lidar_twist_observation_matrix,
    wheel_observation_matrix,
)

__all__ = [
    # State layout
    'N_STATES',
    'POSITION',
    'ATTITUDE',
    'POSE',
    'TWIST',
    'ANGLE_INDICES',
    # Motion model
    'BodyVelocityPoseModel',
    'initial_covariance',
    # Measurement models
    'wheel_observation_matrix',
    'inertial_observation_matrix',
    'lidar_twist_observation_matrix',
    'indirect_lidar_twist',
    'LidarTwistMeasurement',
]
