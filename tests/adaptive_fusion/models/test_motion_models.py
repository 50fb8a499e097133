"""
Unit tests for the constant body-velocity prediction model.

Run with: python -m pytest tests/adaptive_fusion/models/test_motion_models.py -v
"""

import numpy as np
import pytest

from adaptive_fusion.models import (
    N_STATES,
    BodyVelocityPoseModel,
    initial_covariance,
)


def central_difference_jacobian(f, x, epsilon=1e-6):
    x = np.asarray(x, dtype=float)
    J = np.zeros((len(f(x)), len(x)))
    for i in range(len(x)):
        x_plus = x.copy()
        x_minus = x.copy()
        x_plus[i] += epsilon
        x_minus[i] -= epsilon
        J[:, i] = (f(x_plus) - f(x_minus)) / (2 * epsilon)
    return J


class TestBodyVelocityPoseModel:
    """Test prediction function, Jacobian and process noise."""

    def setup_method(self):
        self.model = BodyVelocityPoseModel()

    def test_forward_motion_level(self):
        x = np.zeros(N_STATES)
        x[6] = 1.0
        x_next = self.model.f(x, 0.5)
        np.testing.assert_allclose(x_next[0:3], [0.5, 0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(x_next[6:12], x[6:12])

    def test_forward_motion_rotated_into_world(self):
        x = np.zeros(N_STATES)
        x[5] = np.pi / 2
        x[6] = 1.0
        x_next = self.model.f(x, 0.5)
        np.testing.assert_allclose(x_next[0:3], [0.0, 0.5, 0.0], atol=1e-12)

    def test_yaw_rate_integrates_into_yaw(self):
        x = np.zeros(N_STATES)
        x[11] = 0.2
        x_next = self.model.f(x, 0.5)
        np.testing.assert_allclose(x_next[3:6], [0.0, 0.0, 0.1], atol=1e-12)

    def test_velocity_unchanged(self):
        rng = np.random.default_rng(0)
        x = rng.uniform(-1.0, 1.0, N_STATES)
        np.testing.assert_array_equal(self.model.f(x, 0.05)[6:12], x[6:12])

    def test_zero_dt_is_identity(self):
        rng = np.random.default_rng(1)
        x = rng.uniform(-1.0, 1.0, N_STATES)
        np.testing.assert_array_equal(self.model.f(x, 0.0), x)
        np.testing.assert_allclose(self.model.F(x, 0.0), np.eye(N_STATES), atol=1e-6)

    def test_jacobian_matches_central_difference(self):
        x = np.array([1.0, -2.0, 0.5, 0.1, -0.2, 0.7, 0.8, 0.1, -0.05, 0.02, 0.03, 0.3])
        dt = 0.05
        F = self.model.F(x, dt)
        F_ref = central_difference_jacobian(lambda s: self.model.f(s, dt), x)
        assert F.shape == (N_STATES, N_STATES)
        np.testing.assert_allclose(F, F_ref, atol=1e-4)

    def test_process_noise(self):
        Q = self.model.Q()
        expected = np.zeros((N_STATES, N_STATES))
        expected[6:12, 6:12] = 0.001 * np.eye(6)
        np.testing.assert_allclose(Q, expected)

    def test_process_noise_returns_copy(self):
        Q = self.model.Q()
        Q[0, 0] = 99.0
        assert self.model.Q()[0, 0] == 0.0

    def test_custom_process_noise_shape_checked(self):
        with pytest.raises(ValueError):
            BodyVelocityPoseModel(Q_pred=np.eye(6))

    def test_wrong_state_shape_raises(self):
        with pytest.raises(ValueError):
            self.model.f(np.zeros(6), 0.1)

    def test_gimbal_lock_stays_finite(self):
        x = np.zeros(N_STATES)
        x[4] = np.pi / 2
        x[9:12] = [0.1, 0.2, 0.3]
        x_next = self.model.f(x, 0.01)
        assert np.all(np.isfinite(x_next))
        assert np.all(np.isfinite(self.model.F(x, 0.01)))


def test_initial_covariance():
    np.testing.assert_allclose(initial_covariance(), 0.1 * np.eye(N_STATES))
