"""
Sensor fusion plumbing around the adaptive EKF.

This package provides:
    - Sensor sample and output record types (ImuSample, WheelSample,
      LidarOdometrySample, FilteredOdometry, TwistDiagnostic)
    - Feature-count adaptive lidar covariance
    - Filter configuration and its JSON loader
    - Thread-safe measurement staging
    - The fixed-rate fusion scheduler and an offline replay driver
"""

from adaptive_fusion.fusion.types import (
    FilteredOdometry,
    ImuSample,
    LidarOdometrySample,
    TwistDiagnostic,
    WheelSample,
)
from adaptive_fusion.fusion.adaptive import (
    AdaptiveCovarianceParams,
    AdaptiveLidarCovariance,
)
from adaptive_fusion.fusion.config import (
    PUBLISH_TRIGGERS,
    FilterConfig,
    filter_config_from_dict,
    load_filter_config,
    normalize_publish_trigger,
)
from adaptive_fusion.fusion.staging import MeasurementSlot, MeasurementStaging
from adaptive_fusion.fusion.scheduler import FusionScheduler
from adaptive_fusion.fusion.replay import replay_streams

__all__ = [
    # Types
    "ImuSample",
    "WheelSample",
    "LidarOdometrySample",
    "FilteredOdometry",
    "TwistDiagnostic",
    # Adaptive covariance
    "AdaptiveCovarianceParams",
    "AdaptiveLidarCovariance",
    # Configuration
    "FilterConfig",
    "PUBLISH_TRIGGERS",
    "filter_config_from_dict",
    "load_filter_config",
    "normalize_publish_trigger",
    # Runtime
    "MeasurementSlot",
    "MeasurementStaging",
    "FusionScheduler",
    "replay_streams",
]
