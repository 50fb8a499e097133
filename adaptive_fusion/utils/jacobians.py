"""
Finite-difference Jacobian engine.

The prediction model and the lidar twist measurement are linearized
numerically instead of through hand-derived Jacobians:

    J[:, i] = (f(x + δ eᵢ) - f(x)) / δ

Output rows that hold angles are formed from sin(Δ) / δ instead of Δ / δ,
so a perturbed output that crosses ±π does not produce a 2π jump.

The step δ belongs to the call site: 1e-4 for the prediction model and
1e-7 for the lidar twist function.
"""

from typing import Callable, Sequence

import numpy as np

# Step sizes used by the filter
PREDICTION_JACOBIAN_STEP = 1e-4
LIDAR_JACOBIAN_STEP = 1e-7


def numerical_jacobian(
    f: Callable[[np.ndarray], np.ndarray],
    x: np.ndarray,
    step: float,
    angle_rows: Sequence[int] = (),
) -> np.ndarray:
    """
    Compute the forward-difference Jacobian of f at x.

    Args:
        f: Vector function taking an (n,) array and returning an (m,) array.
        x: Linearization point (n,).
        step: Perturbation applied to one input dimension at a time.
        angle_rows: Output indices holding angles; these rows use
            sin(f(x + δ eᵢ) - f(x)) / δ.

    Returns:
        Jacobian matrix (m × n).

    Raises:
        ValueError: If step is not positive or x is not 1D.

    Example:
        >>> J = numerical_jacobian(lambda v: 2.0 * v, np.zeros(3), 1e-4)
        >>> np.allclose(J, 2.0 * np.eye(3))
        True
    """
    if step <= 0.0:
        raise ValueError(f"Jacobian step must be positive, got {step}")

    x = np.asarray(x, dtype=float)
    if x.ndim != 1:
        raise ValueError(f"Linearization point must be 1D, got shape {x.shape}")

    f0 = np.asarray(f(x), dtype=float)
    n_in = x.shape[0]
    n_out = f0.shape[0]
    rows = list(angle_rows)

    J = np.zeros((n_out, n_in))
    for i in range(n_in):
        x_plus = x.copy()
        x_plus[i] += step

        f1 = np.asarray(f(x_plus), dtype=float)
        delta = f1 - f0

        J[:, i] = delta / step
        if rows:
            J[rows, i] = np.sin(delta[rows]) / step

    return J
