"""Fixed-rate fusion loop.

Every tick predicts by the wall-clock time elapsed since the previous tick,
then runs the inertial, wheel and lidar corrections whose staged sample is
fresh. The configured publish trigger selects which stage's result is
handed to the publish callback.
"""

import logging
import threading
import time
from typing import Callable, List, Optional

from adaptive_fusion.estimators.adaptive_ekf import AdaptiveFusionEKF
from adaptive_fusion.fusion.adaptive import AdaptiveLidarCovariance
from adaptive_fusion.fusion.config import FilterConfig
from adaptive_fusion.fusion.staging import MeasurementStaging
from adaptive_fusion.fusion.types import FilteredOdometry, TwistDiagnostic

logger = logging.getLogger(__name__)

EstimateCallback = Callable[[FilteredOdometry], None]
TwistCallback = Callable[[TwistDiagnostic], None]


class FusionScheduler:
    """Drives an AdaptiveFusionEKF from the measurement staging area.

    Attributes:
        estimator: The filter being driven.
        staging: Per-sensor measurement slots written by producers.
        config: Filter configuration.
        adaptive_model: Feature-count lidar covariance model.
        ticks: Number of ticks run so far.

    Example:
        >>> published = []
        >>> scheduler = FusionScheduler(publish_estimate=published.append,
        ...                             config=FilterConfig(publish_on="prediction"))
        >>> _ = scheduler.tick(now=0.0)
        >>> len(published)
        1
    """

    def __init__(
        self,
        estimator: Optional[AdaptiveFusionEKF] = None,
        staging: Optional[MeasurementStaging] = None,
        config: Optional[FilterConfig] = None,
        publish_estimate: Optional[EstimateCallback] = None,
        publish_lidar_twist: Optional[TwistCallback] = None,
        adaptive_model: Optional[AdaptiveLidarCovariance] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        """
        Args:
            estimator: Filter to drive. When given, its own joseph_form,
                lidar_nominal_dt and pitch_margin are kept and the matching
                config fields are not applied.
            staging: Measurement slots; a fresh MeasurementStaging by default.
            config: Filter configuration; defaults to FilterConfig().
            publish_estimate: Called with each published FilteredOdometry.
            publish_lidar_twist: Called with each lidar TwistDiagnostic.
            adaptive_model: Lidar covariance model; built from config.lidar_gain by default.
            clock: Monotonic time source in seconds.
            sleep: Wait between ticks in run(). Defaults to waiting on the
                stop event so shutdown interrupts the wait.
        """
        self.config = config or FilterConfig()
        if estimator is None:
            estimator = AdaptiveFusionEKF(
                joseph_form=self.config.joseph_form,
                lidar_nominal_dt=self.config.lidar_nominal_dt,
                pitch_margin=self.config.pitch_singularity_margin,
            )
        elif config is not None:
            logger.debug(
                f"Using supplied estimator settings (joseph_form={estimator.joseph_form}, "
                f"lidar_nominal_dt={estimator.lidar_nominal_dt}, "
                f"pitch_margin={estimator.pitch_margin}); config values for these are ignored"
            )
        self.estimator = estimator
        self.staging = staging or MeasurementStaging()
        self.adaptive_model = adaptive_model or AdaptiveLidarCovariance(
            lidar_gain=self.config.lidar_gain
        )
        self.publish_estimate = publish_estimate
        self.publish_lidar_twist = publish_lidar_twist
        self.clock = clock
        self.sleep = sleep

        self.ticks = 0
        self._last_tick: Optional[float] = None

    def tick(self, now: Optional[float] = None) -> List[FilteredOdometry]:
        """Run one predict/correct cycle.

        Args:
            now: Current time in seconds. Defaults to the scheduler clock.

        Returns:
            The estimates published during this tick.
        """
        if now is None:
            now = self.clock()

        dt = 0.0
        if self._last_tick is not None:
            dt = now - self._last_tick
            if dt < 0.0:
                logger.debug(f"Clock moved backwards by {-dt:.6f}s; predicting with dt=0")
                dt = 0.0
        self._last_tick = now
        self.ticks += 1

        published: List[FilteredOdometry] = []
        cfg = self.config
        if not cfg.enable_filter:
            return published

        self.estimator.predict(dt)
        self._publish("prediction", now, published)

        if cfg.sensor_enabled("imu"):
            sample = self.staging.imu.take()
            if sample is not None:
                self.estimator.correct_inertial(
                    sample.orientation_rpy, sample.attitude_covariance(cfg.imu_gain)
                )
                self._publish("imu", sample.t, published)

        if cfg.sensor_enabled("wheel"):
            sample = self.staging.wheel.take()
            if sample is not None:
                self.estimator.correct_wheel(
                    sample.measurement,
                    sample.covariance(cfg.wheel_gain, cfg.wheel_yaw_rate_gain),
                )
                self._publish("wheel", sample.t, published)

        if cfg.sensor_enabled("lidar"):
            sample = self.staging.lidar.take()
            if sample is not None:
                R_lidar = self.adaptive_model.covariance(
                    sample.corner_features, sample.surf_features
                )
                result = self.estimator.correct_lidar(sample.pose, R_lidar, stamp=sample.t)
                if result is not None and self.publish_lidar_twist is not None:
                    self.publish_lidar_twist(TwistDiagnostic(
                        stamp=result.stamp,
                        frame_id=cfg.frame_id,
                        child_frame_id=cfg.lidar_child_frame_id,
                        twist=result.twist,
                        covariance=result.covariance,
                        applied=result.applied,
                    ))
                self._publish("lidar", sample.t, published)

        return published

    def run(self, stop_event: threading.Event, max_ticks: Optional[int] = None) -> int:
        """Loop at the configured rate until stop_event is set.

        Args:
            stop_event: Set by another thread to request shutdown.
            max_ticks: Optional upper bound on the number of ticks.

        Returns:
            Number of ticks run by this call.
        """
        period = self.config.period
        count = 0
        logger.info(f"Fusion loop started at {self.config.rate_hz:.1f} Hz")

        while not stop_event.is_set():
            if max_ticks is not None and count >= max_ticks:
                break
            start = self.clock()
            self.tick(start)
            count += 1
            remaining = period - (self.clock() - start)
            if remaining > 0.0:
                if self.sleep is None:
                    stop_event.wait(remaining)
                else:
                    self.sleep(remaining)

        logger.info(f"Fusion loop stopped after {count} ticks")
        return count

    def sensor_status(self) -> dict:
        """Activation state and sample count of each sensor slot."""
        return {
            name: {"activated": slot.activated, "received": slot.received}
            for name, slot in self.staging.slots.items()
        }

    def _publish(self, stage: str, stamp: float, published: List[FilteredOdometry]) -> None:
        if stage != self.config.publish_on:
            return
        X, P = self.estimator.get_state()
        estimate = FilteredOdometry.from_state(
            X, P, stamp,
            frame_id=self.config.frame_id,
            child_frame_id=self.config.child_frame_id,
            source=stage,
        )
        published.append(estimate)
        if self.publish_estimate is not None:
            self.publish_estimate(estimate)
