"""Synthetic sensor scenarios for exercising the fusion filter."""

from adaptive_fusion.sim.scenarios import (
    IMU_RATE,
    LIDAR_RATE,
    WHEEL_RATE,
    arrays_to_streams,
    circular_scenario,
    generate_constant_twist_trajectory,
    simulate_sensor_streams,
    static_scenario,
    streams_to_arrays,
)

__all__ = [
    "IMU_RATE",
    "WHEEL_RATE",
    "LIDAR_RATE",
    "generate_constant_twist_trajectory",
    "simulate_sensor_streams",
    "static_scenario",
    "circular_scenario",
    "streams_to_arrays",
    "arrays_to_streams",
]
