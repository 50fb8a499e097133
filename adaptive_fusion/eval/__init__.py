"""Evaluation metrics for fused odometry."""

from adaptive_fusion.eval.metrics import (
    compute_error_stats,
    compute_nees,
    compute_pose_errors,
    compute_rmse,
    interpolate_truth,
)

__all__ = [
    "compute_pose_errors",
    "interpolate_truth",
    "compute_rmse",
    "compute_error_stats",
    "compute_nees",
]
