"""Filter configuration and its JSON loader.

A FilterConfig is built once at startup and shared by the estimator and
the scheduler. Configuration files are plain JSON, either flat or with the
options nested under an "adaptive_filter" section:

    {
        "adaptive_filter": {
            "enable_lidar": true,
            "publish_on": "lidar",
            "lidar_gain": 1000.0
        }
    }

Loading never fails hard: a missing or malformed file yields the defaults
with a UserWarning.
"""

import json
import logging
import warnings
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Union

from adaptive_fusion.coords.rotations import PITCH_SINGULARITY_MARGIN

logger = logging.getLogger(__name__)

SECTION = "adaptive_filter"

PUBLISH_TRIGGERS = ("prediction", "imu", "wheel", "lidar")

# Single-letter and sensor-kind selectors accepted for compatibility with older configs
_TRIGGER_ALIASES = {
    "p": "prediction", "i": "imu", "w": "wheel", "l": "lidar",
    "inertial": "imu", "range": "lidar",
}


def normalize_publish_trigger(value: str) -> str:
    """Map a publish selector (full name, alias or single letter) to its full name.

    Raises:
        ValueError: If the selector is not recognized.
    """
    if not isinstance(value, str):
        raise ValueError(f"publish_on must be a string, got {type(value).__name__}")
    key = value.strip().lower()
    key = _TRIGGER_ALIASES.get(key, key)
    if key not in PUBLISH_TRIGGERS:
        raise ValueError(
            f"publish_on must be one of {PUBLISH_TRIGGERS} or {tuple(_TRIGGER_ALIASES)}, "
            f"got {value!r}"
        )
    return key


@dataclass(frozen=True)
class FilterConfig:
    """Options of the adaptive fusion filter.

    Attributes:
        enable_filter: Master switch; when False the scheduler does nothing.
        enable_imu: Run inertial corrections.
        enable_wheel: Run wheel corrections.
        enable_lidar: Run lidar corrections.
        publish_on: Stage whose result is published
            ('prediction', 'imu', 'wheel' or 'lidar').
        lidar_gain: Multiplier of the adaptive lidar covariance.
        wheel_gain: Multiplier of the wheel linear-velocity variance.
        imu_gain: Multiplier of the inertial orientation covariance.
        wheel_yaw_rate_gain: Multiplier of the wheel yaw-rate variance.
        rate_hz: Scheduler loop rate.
        frame_id: World frame of published estimates.
        child_frame_id: Body frame of published estimates.
        lidar_child_frame_id: Frame of the lidar twist diagnostic.
        joseph_form: Use the Joseph covariance update.
        lidar_nominal_dt: Fallback time between lidar scans (seconds).
        pitch_singularity_margin: Band around ±90° pitch treated as
            gimbal lock (radians).
    """

    enable_filter: bool = True
    enable_imu: bool = True
    enable_wheel: bool = True
    enable_lidar: bool = True
    publish_on: str = "lidar"
    lidar_gain: float = 1000.0
    wheel_gain: float = 0.05
    imu_gain: float = 0.1
    wheel_yaw_rate_gain: float = 100.0
    rate_hz: float = 200.0
    frame_id: str = "chassis_init"
    child_frame_id: str = "ekf_odom_frame"
    lidar_child_frame_id: str = "ind_lidar_frame"
    joseph_form: bool = True
    lidar_nominal_dt: float = 0.1
    pitch_singularity_margin: float = PITCH_SINGULARITY_MARGIN

    def __post_init__(self) -> None:
        object.__setattr__(self, "publish_on", normalize_publish_trigger(self.publish_on))

        for name in ("enable_filter", "enable_imu", "enable_wheel", "enable_lidar", "joseph_form"):
            if not isinstance(getattr(self, name), bool):
                raise TypeError(f"{name} must be a bool, got {getattr(self, name)!r}")

        for name in ("lidar_gain", "wheel_gain", "imu_gain", "wheel_yaw_rate_gain"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError(f"{name} must be a number, got {value!r}")
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

        if self.rate_hz <= 0:
            raise ValueError(f"rate_hz must be positive, got {self.rate_hz}")
        if self.lidar_nominal_dt <= 0:
            raise ValueError(f"lidar_nominal_dt must be positive, got {self.lidar_nominal_dt}")
        if not 0 < self.pitch_singularity_margin < 0.5:
            raise ValueError(
                f"pitch_singularity_margin must be in (0, 0.5) rad, "
                f"got {self.pitch_singularity_margin}"
            )

    @property
    def period(self) -> float:
        """Scheduler loop period in seconds."""
        return 1.0 / self.rate_hz

    def sensor_enabled(self, sensor: str) -> bool:
        """True if the filter and the given sensor's corrections are enabled."""
        return self.enable_filter and getattr(self, f"enable_{sensor}")

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def filter_config_from_dict(data: Dict[str, Any]) -> FilterConfig:
    """Build a FilterConfig from a (possibly nested) dictionary.

    Unknown keys are reported with a UserWarning and ignored.

    Raises:
        ValueError, TypeError: If a recognized option has an invalid value.
    """
    if SECTION in data:
        data = data[SECTION]
    if not isinstance(data, dict):
        raise TypeError(f"Configuration must be a JSON object, got {type(data).__name__}")

    known = {f.name for f in fields(FilterConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        warnings.warn(f"Ignoring unknown filter options: {unknown}", UserWarning)

    return replace(FilterConfig(), **{k: v for k, v in data.items() if k in known})


def load_filter_config(path: Union[str, Path]) -> FilterConfig:
    """Load the filter configuration from a JSON file.

    Args:
        path: Path to the JSON file.

    Returns:
        The loaded configuration, or the defaults when the file is missing
        or invalid (a UserWarning is issued in that case).
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            data = json.load(f)
        config = filter_config_from_dict(data)
    except (OSError, json.JSONDecodeError, TypeError, ValueError) as exc:
        warnings.warn(
            f"Could not load filter configuration from {path} ({exc}); using defaults.",
            UserWarning,
        )
        return FilterConfig()

    logger.info(f"Loaded filter configuration from {path}")
    return config
