"""
Unit tests for the adaptive fusion EKF.

Covers prediction, the three corrections, skipped updates on a singular
innovation covariance and the gimbal-lock diagnostic.
"""

import unittest
import warnings

import numpy as np
from numpy.testing import assert_allclose

from adaptive_fusion.estimators import AdaptiveFusionEKF, ImuBias, IndirectTwist


def make_state(**values):
    names = ["x", "y", "z", "roll", "pitch", "yaw", "vx", "vy", "vz", "wx", "wy", "wz"]
    x = np.zeros(12)
    for name, value in values.items():
        x[names.index(name)] = value
    return x


class TestInitialization(unittest.TestCase):
    """Test construction defaults and validation."""

    def test_defaults(self):
        ekf = AdaptiveFusionEKF()
        assert_allclose(ekf.state, np.zeros(12))
        assert_allclose(ekf.covariance, 0.1 * np.eye(12))
        self.assertTrue(ekf.joseph_form)
        self.assertIsNone(ekf.last_lidar_pose)
        self.assertEqual(ekf.update_counts["lidar"], {"applied": 0, "skipped": 0})

    def test_bias_placeholders(self):
        bias = AdaptiveFusionEKF().bias
        self.assertIsInstance(bias, ImuBias)
        assert_allclose(bias.accel, [1e-4] * 3)
        assert_allclose(bias.gyro, [1e-8] * 3)

    def test_invalid_shapes(self):
        with self.assertRaises(ValueError):
            AdaptiveFusionEKF(x0=np.zeros(6))
        with self.assertRaises(ValueError):
            AdaptiveFusionEKF(P0=np.eye(6))
        with self.assertRaises(ValueError):
            AdaptiveFusionEKF(lidar_nominal_dt=0.0)

    def test_get_state_returns_copies(self):
        ekf = AdaptiveFusionEKF()
        x, P = ekf.get_state()
        x[0] = 5.0
        P[0, 0] = 5.0
        self.assertEqual(ekf.state[0], 0.0)
        self.assertEqual(ekf.covariance[0, 0], 0.1)


class TestPrediction(unittest.TestCase):
    """Test the time update."""

    def test_zero_dt_adds_only_process_noise(self):
        x0 = make_state(x=1.0, y=-2.0, z=0.3, roll=0.1, pitch=-0.2, yaw=2.0,
                        vx=0.8, vy=0.1, vz=-0.1, wx=0.05, wy=-0.02, wz=0.3)
        rng = np.random.default_rng(0)
        A = rng.normal(size=(12, 12))
        P0 = 0.05 * A @ A.T + 0.01 * np.eye(12)

        ekf = AdaptiveFusionEKF(x0=x0, P0=P0)
        ekf.predict(0.0)

        assert_allclose(ekf.state, x0, atol=0.0)
        assert_allclose(ekf.covariance - P0, ekf.motion_model.Q(), atol=1e-8)

    def test_constant_velocity_motion(self):
        ekf = AdaptiveFusionEKF(x0=make_state(vx=1.0, wz=0.1))
        for _ in range(100):
            ekf.predict(0.005)
        self.assertAlmostEqual(ekf.state[5], 0.05, places=9)
        self.assertGreater(ekf.state[0], 0.49)
        self.assertGreater(ekf.state[1], 0.0)
        assert_allclose(ekf.twist, [1.0, 0.0, 0.0, 0.0, 0.0, 0.1])

    def test_covariance_grows_without_corrections(self):
        ekf = AdaptiveFusionEKF(x0=make_state(vx=1.0))
        trace0 = np.trace(ekf.covariance)
        for _ in range(20):
            ekf.predict(0.005)
        self.assertGreater(np.trace(ekf.covariance), trace0)

    def test_negative_dt_raises(self):
        with self.assertRaises(ValueError):
            AdaptiveFusionEKF().predict(-0.01)
        with self.assertRaises(ValueError):
            AdaptiveFusionEKF().predict(np.nan)

    def test_gimbal_lock_warns_and_stays_finite(self):
        ekf = AdaptiveFusionEKF(x0=make_state(pitch=np.pi / 2, wx=0.1, wz=0.2))
        with self.assertWarns(RuntimeWarning):
            ekf.predict(0.005)
        self.assertTrue(np.all(np.isfinite(ekf.state)))
        self.assertTrue(np.all(np.isfinite(ekf.covariance)))

    def test_no_warning_away_from_gimbal_lock(self):
        ekf = AdaptiveFusionEKF(x0=make_state(pitch=0.3))
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            ekf.predict(0.005)


class TestWheelCorrection(unittest.TestCase):
    """Test the wheel odometry correction."""

    def test_fixed_point(self):
        x0 = make_state(x=0.5, yaw=0.3, vx=0.7, vy=0.05, wz=-0.2)
        ekf = AdaptiveFusionEKF(x0=x0)
        applied = ekf.correct_wheel(np.array([0.7, -0.2]), np.diag([1e-3, 1e-3]))
        self.assertTrue(applied)
        assert_allclose(ekf.state, x0, atol=1e-15)

    def test_pulls_velocity_toward_measurement(self):
        ekf = AdaptiveFusionEKF()
        ekf.correct_wheel(np.array([1.0, 0.5]), np.diag([0.1, 0.1]))
        # P = 0.1, R = 0.1: half way
        assert_allclose(ekf.state[[6, 11]], [0.5, 0.25], atol=1e-12)
        assert_allclose(ekf.covariance[6, 6], 0.05, atol=1e-12)
        self.assertEqual(ekf.update_counts["wheel"]["applied"], 1)

    def test_legacy_update_matches_joseph_for_optimal_gain(self):
        joseph = AdaptiveFusionEKF(joseph_form=True)
        legacy = AdaptiveFusionEKF(joseph_form=False)
        for ekf in (joseph, legacy):
            ekf.predict(0.01)
            ekf.correct_wheel(np.array([0.4, 0.1]), np.diag([0.02, 0.01]))
        assert_allclose(joseph.state, legacy.state, atol=1e-12)
        assert_allclose(joseph.covariance, legacy.covariance, atol=1e-12)

    def test_singular_innovation_skipped(self):
        ekf = AdaptiveFusionEKF()
        x0, P0 = ekf.get_state()
        # S = H P Hᵀ + R = 0
        with self.assertWarns(RuntimeWarning):
            applied = ekf.correct_wheel(np.array([1.0, 1.0]), -0.1 * np.eye(2))
        self.assertFalse(applied)
        assert_allclose(ekf.state, x0)
        assert_allclose(ekf.covariance, P0)
        self.assertEqual(ekf.update_counts["wheel"], {"applied": 0, "skipped": 1})

    def test_indefinite_innovation_skipped(self):
        ekf = AdaptiveFusionEKF()
        x0, P0 = ekf.get_state()
        with self.assertWarns(RuntimeWarning):
            applied = ekf.correct_wheel(np.array([1.0, 1.0]), np.diag([-0.2, 0.0]))
        self.assertFalse(applied)
        assert_allclose(ekf.state, x0)
        assert_allclose(ekf.covariance, P0)

    def test_non_finite_measurement_skipped(self):
        ekf = AdaptiveFusionEKF()
        x0, _ = ekf.get_state()
        with self.assertWarns(RuntimeWarning):
            applied = ekf.correct_wheel(np.array([np.nan, 0.0]), 1e-3 * np.eye(2))
        self.assertFalse(applied)
        assert_allclose(ekf.state, x0)

    def test_wrong_covariance_shape_raises(self):
        with self.assertRaises(ValueError):
            AdaptiveFusionEKF().correct_wheel(np.array([1.0, 0.0]), np.eye(3))


class TestInertialCorrection(unittest.TestCase):
    """Test the inertial attitude correction."""

    def test_fixed_point(self):
        x0 = make_state(roll=0.1, pitch=-0.2, yaw=2.5, vx=0.3)
        ekf = AdaptiveFusionEKF(x0=x0)
        applied = ekf.correct_inertial(x0[3:6].copy(), 1e-3 * np.eye(3))
        self.assertTrue(applied)
        assert_allclose(ekf.state, x0, atol=1e-15)

    def test_fixed_point_modulo_full_turn(self):
        x0 = make_state(yaw=3.0)
        ekf = AdaptiveFusionEKF(x0=x0)
        ekf.correct_inertial(np.array([0.0, 0.0, 3.0 - 2 * np.pi]), 1e-3 * np.eye(3))
        assert_allclose(ekf.state, x0, atol=1e-9)

    def test_innovation_wrapped_across_pi(self):
        ekf = AdaptiveFusionEKF(x0=make_state(yaw=np.pi - 0.05))
        ekf.correct_inertial(np.array([0.0, 0.0, -np.pi + 0.05]), 0.1 * np.eye(3))
        # Innovation is +0.1 rad (not -2π + 0.1), half of it applied
        self.assertAlmostEqual(ekf.state[5], np.pi, places=9)


class TestLidarCorrection(unittest.TestCase):
    """Test the lidar odometry correction through the derived twist."""

    def setUp(self):
        self.R = 0.01 * np.eye(6)

    def test_first_pose_primes_only(self):
        ekf = AdaptiveFusionEKF()
        x0, P0 = ekf.get_state()
        pose = np.array([1.0, 2.0, 0.0, 0.0, 0.0, 0.3])

        result = ekf.correct_lidar(pose, self.R, stamp=0.0)

        self.assertIsNone(result)
        assert_allclose(ekf.state, x0)
        assert_allclose(ekf.covariance, P0)
        assert_allclose(ekf.last_lidar_pose, pose)
        assert_allclose(ekf.last_lidar_covariance, self.R)
        self.assertEqual(ekf.last_lidar_stamp, 0.0)
        self.assertEqual(ekf.update_counts["lidar"], {"applied": 0, "skipped": 0})

    def test_identical_poses_give_zero_twist(self):
        ekf = AdaptiveFusionEKF()
        pose = np.array([1.0, 2.0, 0.0, 0.0, 0.0, 0.3])
        ekf.correct_lidar(pose, self.R, stamp=0.0)
        result = ekf.correct_lidar(pose, self.R, stamp=0.1)

        self.assertIsInstance(result, IndirectTwist)
        self.assertTrue(result.applied)
        self.assertAlmostEqual(result.dt, 0.1)
        assert_allclose(result.twist, np.zeros(6), atol=1e-12)
        assert_allclose(ekf.state, np.zeros(12), atol=1e-12)

    def test_moving_pose_pulls_velocity(self):
        ekf = AdaptiveFusionEKF()
        ekf.correct_lidar(np.zeros(6), self.R, stamp=0.0)
        result = ekf.correct_lidar(np.array([0.1, 0.0, 0.0, 0.0, 0.0, 0.0]), self.R, stamp=0.1)

        assert_allclose(result.twist, [1.0, 0.0, 0.0, 0.0, 0.0, 0.0], atol=1e-9)
        self.assertGreater(ekf.state[6], 0.0)
        self.assertLess(ekf.state[6], 1.0)
        self.assertEqual(ekf.update_counts["lidar"]["applied"], 1)

    def test_non_increasing_stamp_uses_nominal_dt(self):
        ekf = AdaptiveFusionEKF(lidar_nominal_dt=0.1)
        ekf.correct_lidar(np.zeros(6), self.R, stamp=1.0)
        result = ekf.correct_lidar(np.array([0.2, 0.0, 0.0, 0.0, 0.0, 0.0]), self.R, stamp=1.0)
        self.assertAlmostEqual(result.dt, 0.1)
        assert_allclose(result.twist[0], 2.0, atol=1e-9)

    def test_missing_stamp_uses_nominal_dt(self):
        ekf = AdaptiveFusionEKF(lidar_nominal_dt=0.2)
        ekf.correct_lidar(np.zeros(6), self.R)
        result = ekf.correct_lidar(np.array([0.2, 0.0, 0.0, 0.0, 0.0, 0.0]), self.R)
        self.assertAlmostEqual(result.dt, 0.2)

    def test_retained_pose_replaced_after_correction(self):
        ekf = AdaptiveFusionEKF()
        pose1 = np.zeros(6)
        pose2 = np.array([0.1, 0.0, 0.0, 0.0, 0.0, 0.01])
        R2 = 0.02 * np.eye(6)
        ekf.correct_lidar(pose1, self.R, stamp=0.0)
        ekf.correct_lidar(pose2, R2, stamp=0.1)
        assert_allclose(ekf.last_lidar_pose, pose2)
        assert_allclose(ekf.last_lidar_covariance, R2)
        self.assertEqual(ekf.last_lidar_stamp, 0.1)

    def test_retained_pose_replaced_even_when_skipped(self):
        ekf = AdaptiveFusionEKF()
        pose2 = np.array([0.1, 0.0, 0.0, 0.0, 0.0, 0.0])
        ekf.correct_lidar(np.zeros(6), self.R, stamp=0.0)
        with self.assertWarns(RuntimeWarning):
            result = ekf.correct_lidar(pose2, np.full((6, 6), np.nan), stamp=0.1)
        self.assertFalse(result.applied)
        assert_allclose(ekf.last_lidar_pose, pose2)
        self.assertEqual(ekf.update_counts["lidar"]["skipped"], 1)


if __name__ == "__main__":
    unittest.main()
