"""
End-to-end check of the fusion filter on a vehicle at rest.

The filter starts with a wrong forward speed and yaw rate; wheel and
inertial corrections must pull the twist back to zero while the pose
stays near the origin.
"""

import numpy as np
import pytest

from adaptive_fusion.estimators import AdaptiveFusionEKF
from adaptive_fusion.fusion import replay_streams
from adaptive_fusion.sim import static_scenario

DURATION = 10.0


@pytest.fixture(scope="module")
def history():
    scenario = static_scenario(duration=DURATION, seed=11)
    x0 = np.zeros(12)
    x0[6] = 0.5
    x0[11] = 0.3
    return replay_streams(scenario['samples'], duration=DURATION,
                          estimator=AdaptiveFusionEKF(x0=x0))


def test_all_corrections_applied(history):
    for sensor, counts in history['update_counts'].items():
        assert counts['skipped'] == 0, sensor
        assert counts['applied'] > 0, sensor


def test_twist_converges_to_rest(history):
    late = history['t'] >= DURATION / 2
    mean_twist = history['x'][late, 6:12].mean(axis=0)
    np.testing.assert_allclose(mean_twist, np.zeros(6), atol=0.05)
    assert abs(history['x'][-1, 6]) < 0.1


def test_initial_twist_error_removed_quickly(history):
    after_first_second = history['t'] >= 1.0
    assert np.max(np.abs(history['x'][after_first_second, 6])) < 0.1


def test_pose_stays_near_origin(history):
    assert np.max(np.abs(history['x'][:, 0:3])) < 0.1
    assert np.max(np.abs(history['x'][:, 3:6])) < 0.05


def test_state_and_covariance_finite(history):
    assert np.all(np.isfinite(history['x']))
    assert np.all(history['P_diag'] > 0.0)
