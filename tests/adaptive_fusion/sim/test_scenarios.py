"""Unit tests for synthetic fusion scenarios."""

import unittest

import numpy as np
from numpy.testing import assert_allclose

from adaptive_fusion.fusion import ImuSample, LidarOdometrySample, WheelSample
from adaptive_fusion.sim import (
    arrays_to_streams,
    circular_scenario,
    generate_constant_twist_trajectory,
    simulate_sensor_streams,
    static_scenario,
    streams_to_arrays,
)


class TestConstantTwistTrajectory(unittest.TestCase):
    """Test ground-truth generation."""

    def test_static(self):
        truth = generate_constant_twist_trajectory(1.0, dt=0.1)
        self.assertEqual(len(truth['t']), 11)
        assert_allclose(truth['pose'], np.zeros((11, 6)))
        assert_allclose(truth['twist'], np.zeros((11, 6)))

    def test_straight_line(self):
        truth = generate_constant_twist_trajectory(
            2.0, forward_speed=1.5, initial_pose=[0, 0, 0, 0, 0, np.pi / 2]
        )
        assert_allclose(truth['pose'][-1, 0:2], [0.0, 3.0], atol=1e-9)
        assert_allclose(truth['pose'][:, 5], np.pi / 2)

    def test_circle_radius(self):
        v, wz = 1.0, 0.2
        truth = generate_constant_twist_trajectory(30.0, forward_speed=v, yaw_rate=wz)
        # Circle centre is at (0, R) when starting at the origin heading +x
        radius = v / wz
        distances = np.hypot(truth['pose'][:, 0], truth['pose'][:, 1] - radius)
        assert_allclose(distances, radius, atol=1e-9)

    def test_yaw_wrapped(self):
        truth = generate_constant_twist_trajectory(40.0, forward_speed=1.0, yaw_rate=0.2)
        self.assertTrue(np.all(np.abs(truth['pose'][:, 5]) <= np.pi))

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            generate_constant_twist_trajectory(-1.0)
        with self.assertRaises(ValueError):
            generate_constant_twist_trajectory(1.0, dt=0.0)


class TestSimulateSensorStreams(unittest.TestCase):
    """Test simulated sensor streams."""

    def setUp(self):
        self.truth = generate_constant_twist_trajectory(2.0, forward_speed=1.0, yaw_rate=0.2)

    def test_stream_rates(self):
        samples = simulate_sensor_streams(self.truth, seed=0)
        self.assertEqual(sum(isinstance(s, ImuSample) for s in samples), 101)
        self.assertEqual(sum(isinstance(s, WheelSample) for s in samples), 41)
        self.assertEqual(sum(isinstance(s, LidarOdometrySample) for s in samples), 21)

    def test_sorted_by_time(self):
        samples = simulate_sensor_streams(self.truth, seed=0)
        stamps = [s.t for s in samples]
        self.assertEqual(stamps, sorted(stamps))

    def test_seed_reproducible(self):
        a = simulate_sensor_streams(self.truth, seed=7)
        b = simulate_sensor_streams(self.truth, seed=7)
        c = simulate_sensor_streams(self.truth, seed=8)
        assert_allclose(streams_to_arrays(a)['lidar_pose'], streams_to_arrays(b)['lidar_pose'])
        self.assertFalse(np.allclose(streams_to_arrays(a)['lidar_pose'],
                                     streams_to_arrays(c)['lidar_pose']))

    def test_noise_free_streams_match_truth(self):
        samples = simulate_sensor_streams(
            self.truth, imu_attitude_std=0.0, wheel_speed_std=0.0, wheel_yaw_rate_std=0.0,
            lidar_position_std=0.0, lidar_attitude_std=0.0, seed=0,
        )
        wheel = [s for s in samples if isinstance(s, WheelSample)]
        assert_allclose([s.measurement for s in wheel], np.tile([1.0, 0.2], (len(wheel), 1)))

        lidar = [s for s in samples if isinstance(s, LidarOdometrySample)]
        self.assertEqual(lidar[0].t, 0.0)
        assert_allclose(lidar[0].pose, np.zeros(6))

        imu = [s for s in samples if isinstance(s, ImuSample)]
        assert_allclose(imu[0].linear_acceleration, [0.0, 0.2, 9.81])

    def test_feature_counts_in_range(self):
        samples = simulate_sensor_streams(self.truth, corner_features=(100, 200),
                                          surf_features=(1000, 2000), seed=0)
        for s in samples:
            if isinstance(s, LidarOdometrySample):
                self.assertTrue(100 <= s.corner_features < 200)
                self.assertTrue(1000 <= s.surf_features < 2000)


class TestScenarios(unittest.TestCase):
    """Test the packaged scenarios and array conversion."""

    def test_static_scenario_at_rest(self):
        scenario = static_scenario(duration=1.0)
        assert_allclose(scenario['truth']['pose'], 0.0)
        wheel = [s for s in scenario['samples'] if isinstance(s, WheelSample)]
        self.assertLess(np.max(np.abs([s.linear_velocity for s in wheel])), 0.1)

    def test_circular_scenario_twist(self):
        scenario = circular_scenario(duration=1.0, forward_speed=2.0, yaw_rate=0.5)
        assert_allclose(scenario['truth']['twist'][:, 0], 2.0)
        assert_allclose(scenario['truth']['twist'][:, 5], 0.5)

    def test_arrays_round_trip(self):
        samples = circular_scenario(duration=1.0)['samples']
        arrays = streams_to_arrays(samples)
        self.assertEqual(arrays['imu_rpy_cov'].shape, (51, 3, 3))
        self.assertEqual(arrays['lidar_features'].shape, (11, 2))

        rebuilt = arrays_to_streams(arrays)
        self.assertEqual(len(rebuilt), len(samples))
        for original, copy in zip(samples, rebuilt):
            self.assertIs(type(original), type(copy))
            self.assertEqual(original.t, copy.t)

    def test_empty_streams_to_arrays(self):
        arrays = streams_to_arrays([])
        self.assertEqual(arrays['lidar_pose'].shape, (0, 6))
        self.assertEqual(arrays_to_streams(arrays), [])


if __name__ == "__main__":
    unittest.main()
