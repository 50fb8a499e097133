"""Per-sensor measurement staging shared by producers and the scheduler.

Each sensor stream owns one slot holding its latest immutable sample and a
single-use freshness flag. Producer threads call ``put``; the estimator
thread calls ``take``, which returns the fresh sample and clears the flag
in one critical section, so a sample is consumed at most once and never
observed half-written.
"""

import threading
from typing import Dict, Generic, Optional, TypeVar

from adaptive_fusion.fusion.types import ImuSample, LidarOdometrySample, WheelSample

T = TypeVar("T")


class MeasurementSlot(Generic[T]):
    """Latest sample of one sensor plus its freshness flag."""

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._sample: Optional[T] = None
        self._fresh = False
        self._received = 0

    def put(self, sample: T) -> None:
        """Replace the staged sample and mark it fresh."""
        with self._lock:
            self._sample = sample
            self._fresh = True
            self._received += 1

    def take(self) -> Optional[T]:
        """Return the fresh sample and clear the flag, or None if not fresh."""
        with self._lock:
            if not self._fresh:
                return None
            self._fresh = False
            return self._sample

    def peek(self) -> Optional[T]:
        """Latest sample (fresh or not) without consuming it."""
        with self._lock:
            return self._sample

    @property
    def fresh(self) -> bool:
        with self._lock:
            return self._fresh

    @property
    def activated(self) -> bool:
        """True once at least one sample has arrived."""
        with self._lock:
            return self._received > 0

    @property
    def received(self) -> int:
        with self._lock:
            return self._received


class MeasurementStaging:
    """The inertial, wheel and lidar slots read by the scheduler.

    Example:
        >>> staging = MeasurementStaging()
        >>> staging.wheel.put(WheelSample(t=0.0, linear_velocity=0.3, yaw_rate=0.0))
        >>> staging.wheel.take().linear_velocity
        0.3
        >>> staging.wheel.take() is None
        True
    """

    def __init__(self):
        self.imu: MeasurementSlot[ImuSample] = MeasurementSlot("imu")
        self.wheel: MeasurementSlot[WheelSample] = MeasurementSlot("wheel")
        self.lidar: MeasurementSlot[LidarOdometrySample] = MeasurementSlot("lidar")

    @property
    def slots(self) -> Dict[str, MeasurementSlot]:
        return {"imu": self.imu, "wheel": self.wheel, "lidar": self.lidar}

    def put(self, sample) -> None:
        """Route a sample to its slot by type.

        Raises:
            TypeError: If the sample type is not a known sensor sample.
        """
        if isinstance(sample, ImuSample):
            self.imu.put(sample)
        elif isinstance(sample, WheelSample):
            self.wheel.put(sample)
        elif isinstance(sample, LidarOdometrySample):
            self.lidar.put(sample)
        else:
            raise TypeError(f"Unsupported sample type: {type(sample).__name__}")
