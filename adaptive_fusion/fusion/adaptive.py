"""Adaptive lidar odometry covariance driven by scan feature counts.

Scan matching reports how many corner and surface features it used. Few
features mean a poorly constrained match, so the pose noise is inflated:

    s_corner = (N_corner - min(f_corner, N_corner)) / N_corner + floor
    s_surf   = (N_surf   - min(f_surf,   N_surf))   / N_surf   + floor

Corner features mainly constrain x, y and yaw; surface features mainly
constrain z, roll and pitch. Each diagonal entry is

    R[i, i] = s_axis(i) * G_i * lidar_gain

This is a heuristic, not a statistically derived noise model. The scale
runs from floor (feature count at or above N) to 1 + floor (no features)
and never increases with the feature count.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class AdaptiveCovarianceParams:
    """Constants of the feature-count heuristic.

    Attributes:
        n_corner: Corner feature count at which trust saturates.
        n_surf: Surface feature count at which trust saturates.
        floor: Minimum scale added to every axis.
        gain_x, gain_y, gain_z: Per-axis position gains (m²).
        gain_roll, gain_pitch, gain_yaw: Per-axis attitude gains (rad²).
    """

    n_corner: float = 500.0
    n_surf: float = 5000.0
    floor: float = 0.005
    gain_x: float = 0.0022
    gain_y: float = 0.0016
    gain_z: float = 0.0048
    gain_roll: float = 0.0052
    gain_pitch: float = 0.005
    gain_yaw: float = 0.0044

    def __post_init__(self) -> None:
        if self.n_corner <= 0 or self.n_surf <= 0:
            raise ValueError(
                f"Saturation counts must be positive, got n_corner={self.n_corner}, "
                f"n_surf={self.n_surf}"
            )
        if self.floor < 0:
            raise ValueError(f"floor must be non-negative, got {self.floor}")

    @property
    def axis_gains(self) -> np.ndarray:
        """Per-axis gains ordered [x, y, z, roll, pitch, yaw]."""
        return np.array([
            self.gain_x, self.gain_y, self.gain_z,
            self.gain_roll, self.gain_pitch, self.gain_yaw,
        ])


class AdaptiveLidarCovariance:
    """Maps scan feature counts to a 6x6 diagonal lidar pose covariance.

    Usage:
        >>> model = AdaptiveLidarCovariance(lidar_gain=1000.0)
        >>> R = model.covariance(f_corner=250, f_surf=5000)
        >>> R.shape
        (6, 6)
    """

    # Which feature type informs each pose axis [x, y, z, roll, pitch, yaw]
    CORNER_AXES = (0, 1, 5)
    SURF_AXES = (2, 3, 4)

    def __init__(
        self,
        lidar_gain: float = 1000.0,
        params: AdaptiveCovarianceParams = AdaptiveCovarianceParams(),
    ):
        """Initialize the adaptive model.

        Args:
            lidar_gain: Global multiplier applied to every diagonal entry.
            params: Heuristic constants.

        Raises:
            ValueError: If lidar_gain is negative.
        """
        if lidar_gain < 0:
            raise ValueError(f"lidar_gain must be non-negative, got {lidar_gain}")
        self.lidar_gain = lidar_gain
        self.params = params

    def scales(self, f_corner: float, f_surf: float) -> np.ndarray:
        """Per-axis trust-reduction scales [x, y, z, roll, pitch, yaw].

        Args:
            f_corner: Corner feature count of the scan (>= 0).
            f_surf: Surface feature count of the scan (>= 0).

        Returns:
            Scales in [floor, 1 + floor], shape (6,).
        """
        if f_corner < 0 or f_surf < 0:
            raise ValueError(
                f"Feature counts must be non-negative, got corner={f_corner}, surf={f_surf}"
            )
        p = self.params
        s_corner = (p.n_corner - min(f_corner, p.n_corner)) / p.n_corner + p.floor
        s_surf = (p.n_surf - min(f_surf, p.n_surf)) / p.n_surf + p.floor

        s = np.empty(6)
        s[list(self.CORNER_AXES)] = s_corner
        s[list(self.SURF_AXES)] = s_surf
        return s

    def covariance(self, f_corner: float, f_surf: float) -> np.ndarray:
        """Diagonal 6x6 lidar pose covariance for one scan."""
        return np.diag(self.scales(f_corner, f_surf) * self.params.axis_gains * self.lidar_gain)

    def bounds(self) -> tuple:
        """Smallest and largest attainable covariances (rich and empty scans)."""
        p = self.params
        return (
            self.covariance(p.n_corner, p.n_surf),
            self.covariance(0.0, 0.0),
        )
