"""Adaptive multi-sensor odometry fusion.

This package fuses inertial, wheel and scan-matched lidar odometry into a
single 12-state pose/velocity estimate with an Extended Kalman Filter whose
lidar noise model adapts to scan quality:
- utils: Angle wrapping, numeric Jacobians and logging setup
- coords: Euler angle / rotation helpers
- estimators: The fusion EKF
- models: Prediction model and lidar twist measurement model
- fusion: Sample types, adaptive covariance, config, staging and scheduler
- sim: Synthetic sensor streams
- eval: Pose error metrics
"""

__version__ = "0.1.0"
