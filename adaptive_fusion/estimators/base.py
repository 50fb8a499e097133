"""
Base classes for state estimators.

This module defines the abstract interface shared by the fusion filter and
any alternative estimator plugged into the scheduler.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np


class StateEstimator(ABC):
    """Abstract base class for recursive state estimators."""

    def __init__(self, state_dim: int):
        """
        Initialize state estimator.

        Args:
            state_dim: Dimension of the state vector.
        """
        self.state_dim = state_dim
        self.state: Optional[np.ndarray] = None
        self.covariance: Optional[np.ndarray] = None

    @abstractmethod
    def predict(self, dt: float) -> None:
        """
        Perform prediction step (time update).

        Args:
            dt: Elapsed time since the previous prediction, in seconds.
        """
        pass

    def get_state(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get current state estimate and covariance.

        Returns:
            Tuple of (state_vector, covariance_matrix), both copies.
        """
        if self.state is None or self.covariance is None:
            raise RuntimeError("Estimator not initialized.")
        return self.state.copy(), self.covariance.copy()

    def is_consistent(self, atol: float = 1e-9) -> bool:
        """
        Check that the covariance is symmetric with a positive diagonal.

        Args:
            atol: Absolute tolerance for the symmetry check.

        Returns:
            True if P is finite, symmetric within atol and has a positive diagonal.
        """
        if self.covariance is None:
            return False
        P = self.covariance
        return bool(
            np.all(np.isfinite(P))
            and np.allclose(P, P.T, atol=atol)
            and np.all(np.diag(P) > 0.0)
        )
