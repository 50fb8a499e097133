"""
Evaluation metrics for fused odometry.

Pose errors treat the attitude components as angles (wrapped difference),
so a yaw estimate of 179° against a truth of -179° counts as a 2° error.
"""

from typing import Dict, Optional, Union

import numpy as np

from adaptive_fusion.utils.angles import angle_diff


def compute_pose_errors(truth: np.ndarray, estimated: np.ndarray) -> np.ndarray:
    """
    Compute pose errors [x, y, z, roll, pitch, yaw], estimated minus truth.

    Args:
        truth: True poses, shape (N, 6)
        estimated: Estimated poses, shape (N, 6)

    Returns:
        errors: Pose errors, shape (N, 6), attitude errors wrapped to [-π, π]

    Raises:
        ValueError: If inputs have incompatible shapes
    """
    truth = np.atleast_2d(np.asarray(truth, dtype=float))
    estimated = np.atleast_2d(np.asarray(estimated, dtype=float))

    if truth.shape != estimated.shape:
        raise ValueError(
            f"Shape mismatch: truth {truth.shape} vs estimated {estimated.shape}"
        )
    if truth.shape[1] != 6:
        raise ValueError(f"Poses must have 6 columns, got {truth.shape[1]}")

    errors = estimated - truth
    errors[:, 3:6] = angle_diff(estimated[:, 3:6], truth[:, 3:6])
    return errors


def interpolate_truth(truth: Dict[str, np.ndarray], t: np.ndarray) -> np.ndarray:
    """
    Interpolate ground-truth poses at times t.

    Attitude is interpolated on the unwrapped angle and wrapped back.

    Args:
        truth: Dictionary with 't' (M,) and 'pose' (M, 6)
        t: Query times, shape (N,)

    Returns:
        Poses at t, shape (N, 6)
    """
    t = np.asarray(t, dtype=float)
    out = np.zeros((len(t), 6))
    for i in range(6):
        column = truth['pose'][:, i]
        if i >= 3:
            column = np.unwrap(column)
        out[:, i] = np.interp(t, truth['t'], column)
    out[:, 3:6] = np.arctan2(np.sin(out[:, 3:6]), np.cos(out[:, 3:6]))
    return out


def compute_rmse(errors: np.ndarray, axis: Optional[int] = None) -> Union[float, np.ndarray]:
    """
    Compute Root Mean Square Error (RMSE).

    Args:
        errors: Error vectors, shape (N, d) or (N,)
        axis: None for a scalar RMSE, 0 for per-dimension RMSE

    Returns:
        rmse: RMSE value(s)
    """
    errors = np.asarray(errors)
    if axis is None:
        return float(np.sqrt(np.mean(errors**2)))
    return np.sqrt(np.mean(errors**2, axis=axis))


def compute_error_stats(errors: np.ndarray) -> Dict[str, float]:
    """
    Compute error statistics of error magnitudes.

    Args:
        errors: Error vectors, shape (N, d) or (N,)

    Returns:
        stats: Dictionary with keys 'mean', 'median', 'std', 'rmse',
               'p95', 'max'
    """
    errors = np.asarray(errors, dtype=float)
    if errors.ndim == 2:
        magnitudes = np.linalg.norm(errors, axis=1)
    else:
        magnitudes = np.abs(errors)

    if magnitudes.size == 0:
        raise ValueError("Cannot compute statistics of an empty error array")

    return {
        "mean": float(np.mean(magnitudes)),
        "median": float(np.median(magnitudes)),
        "std": float(np.std(magnitudes)),
        "rmse": float(np.sqrt(np.mean(magnitudes**2))),
        "p95": float(np.percentile(magnitudes, 95)),
        "max": float(np.max(magnitudes)),
    }


def compute_nees(errors: np.ndarray, covariances: np.ndarray) -> np.ndarray:
    """
    Compute Normalized Estimation Error Squared (NEES).

    NEES = eᵀ P⁻¹ e for each sample; samples with a singular covariance
    yield NaN.

    Args:
        errors: Estimation errors, shape (N, d)
        covariances: Covariance matrices, shape (N, d, d)

    Returns:
        nees: NEES values, shape (N,)
    """
    errors = np.asarray(errors, dtype=float)
    covariances = np.asarray(covariances, dtype=float)
    if covariances.shape != errors.shape + errors.shape[-1:]:
        raise ValueError(
            f"Covariance shape {covariances.shape} incompatible with errors {errors.shape}"
        )

    nees = np.zeros(len(errors))
    for i, (e, P) in enumerate(zip(errors, covariances)):
        try:
            nees[i] = e @ np.linalg.solve(P, e)
        except np.linalg.LinAlgError:
            nees[i] = np.nan
    return nees
