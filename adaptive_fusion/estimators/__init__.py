"""
State estimation for adaptive odometry fusion.

Available estimators:
    - StateEstimator: abstract recursive estimator interface
    - AdaptiveFusionEKF: 12-state EKF with inertial, wheel and lidar
      corrections
"""

from adaptive_fusion.estimators.base import StateEstimator
from adaptive_fusion.estimators.adaptive_ekf import (
    AdaptiveFusionEKF,
    ImuBias,
    IndirectTwist,
)

__all__ = [
    "StateEstimator",
    "AdaptiveFusionEKF",
    "ImuBias",
    "IndirectTwist",
]
