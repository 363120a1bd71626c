"""Plausibility checks for IMU readings and the orientation estimate.

Hard failures (non-finite values, out-of-range axes, a zero gravity
reading, time running backwards) make a reading unusable. Soft problems
(unexpected gravity or field strength, dropped samples, sample-period
jitter) are reported as warnings and the reading is still fused.
"""

import math
from typing import Iterable, Optional, Tuple

from .errors import InvalidInput
from .types import ImuReading, ValidationResult, Quaternion, Vector3
from .config import Config

SEQ_MODULUS = 2**32


def check_finite(name: str, vector: Vector3) -> Vector3:
    """Reject vectors with NaN or infinite components.

    Raises:
        InvalidInput: If any component is non-finite.
    """
    if not vector.is_finite():
        raise InvalidInput(f"{name} contains non-finite values: {vector}")
    return vector


def _axes(prefix: str, v: Vector3) -> Iterable[Tuple[str, float]]:
    return zip((prefix + "x", prefix + "y", prefix + "z"), (v.x, v.y, v.z))


class SensorValidator:
    """Stateful validator for a stream of IMU readings.

    Keeps the previous sequence number and timestamp so gaps and
    non-monotonic time can be detected.
    """

    def __init__(self, config: Config):
        """Initialize validator with configuration.

        Args:
            config: System configuration; sensor ranges and the filter
                sample rate are used.
        """
        self._sensor = config.sensor
        self._expected_dt = config.filter.sample_period
        self._period_tolerance = config.validation.timing.period_tolerance
        self._last_seq: Optional[int] = None
        self._last_timestamp: Optional[float] = None

    def validate_reading(self, reading: ImuReading) -> ValidationResult:
        """Validate one reading and remember it for the stream checks.

        Args:
            reading: IMU measurement to validate.

        Returns:
            ValidationResult; `is_valid` is False on any hard failure.
        """
        result = ValidationResult(is_valid=True)
        mag = reading.mag

        if self._check_finite(reading, result):
            self._check_accelerometer(reading.acc, result)
            self._check_gyroscope(reading.gyr, result)
            if mag is not None:
                self._check_magnetometer(mag, result)
        self._check_timing(reading, result)

        self._last_seq = reading.seq
        if math.isfinite(reading.timestamp):
            self._last_timestamp = reading.timestamp
        return result

    def _check_finite(self, reading: ImuReading, result: ValidationResult) -> bool:
        values = list(_axes("g", reading.gyr)) + list(_axes("a", reading.acc))
        if reading.has_mag:
            values += list(_axes("m", reading.mag))
        values.append(("timestamp", reading.timestamp))

        finite = True
        for name, val in values:
            if not math.isfinite(val):
                result.add_error(f"Non-finite value for {name}: {val}")
                finite = False
        return finite

    def _check_accelerometer(self, acc: Vector3, result: ValidationResult) -> None:
        cfg = self._sensor.accelerometer
        limit = cfg.range_g * cfg.gravity_nominal
        for name, val in _axes("a", acc):
            if abs(val) > limit:
                result.add_error(f"{name} out of range: {val:.2f}")

        # Zero gravity leaves the correction direction undefined.
        norm = acc.norm
        if norm == 0.0:
            result.add_error("Accelerometer reading is zero")
        elif abs(norm - cfg.gravity_nominal) > cfg.gravity_tolerance:
            result.add_warning(
                f"Acceleration magnitude {norm:.2f} deviates from "
                f"expected {cfg.gravity_nominal:.2f} +/- {cfg.gravity_tolerance:.2f}"
            )

    def _check_gyroscope(self, gyr: Vector3, result: ValidationResult) -> None:
        limit = math.radians(self._sensor.gyroscope.range_dps)
        for name, val in _axes("g", gyr):
            if abs(val) > limit:
                result.add_error(f"{name} out of range: {math.degrees(val):.1f} deg/s")

    def _check_magnetometer(self, mag: Vector3, result: ValidationResult) -> None:
        cfg = self._sensor.magnetometer
        for name, val in _axes("m", mag):
            if abs(val) > cfg.range_ut:
                result.add_error(f"{name} out of range: {val:.1f} uT")

        strength = mag.norm
        if strength < cfg.min_field_ut:
            result.add_warning(f"Magnetic field too weak: {strength:.1f} uT")
        elif strength > cfg.max_field_ut:
            result.add_warning(f"Magnetic field too strong: {strength:.1f} uT")

    def _check_timing(self, reading: ImuReading, result: ValidationResult) -> None:
        """Stream checks against the previous reading."""
        if self._last_seq is not None:
            expected = (self._last_seq + 1) % SEQ_MODULUS
            if reading.seq != expected:
                gap = (reading.seq - self._last_seq) % SEQ_MODULUS
                result.add_warning(
                    f"Sequence gap: expected {expected}, got {reading.seq} (gap: {gap})"
                )

        if self._last_timestamp is None or not math.isfinite(reading.timestamp):
            return

        dt = reading.timestamp - self._last_timestamp
        if dt <= 0:
            result.add_error(f"Non-monotonic timestamp: dt={dt:.6f}s")
        elif abs(dt - self._expected_dt) > self._period_tolerance * self._expected_dt:
            # The filters integrate with a fixed period, not the measured dt.
            result.add_warning(
                f"Sample interval {dt * 1000:.2f}ms differs from the filter period "
                f"{self._expected_dt * 1000:.2f}ms"
            )

    def reset(self) -> None:
        """Forget the previous reading."""
        self._last_seq = None
        self._last_timestamp = None


class QuaternionValidator:
    """Checks the estimate's norm against drift and divergence limits."""

    def __init__(self, config: Config):
        self._cfg = config.validation.quaternion

    def validate(self, q: Quaternion) -> ValidationResult:
        """Validate quaternion state.

        Returns:
            ValidationResult with an error on divergence or non-finite
            components and a warning on small norm drift.
        """
        result = ValidationResult(is_valid=True)

        if not q.is_finite():
            result.add_error("Quaternion contains non-finite values")
            return result

        norm_error = abs(q.norm - 1.0)
        if norm_error > self._cfg.divergence_threshold:
            result.add_error(f"Quaternion diverged: norm={q.norm:.4f}")
        elif norm_error > self._cfg.norm_tolerance:
            result.add_warning(f"Quaternion norm drift: {q.norm:.6f}")

        return result

    def is_diverged(self, q: Quaternion) -> bool:
        """True if q is non-finite or its norm error exceeds the divergence threshold."""
        return not q.is_finite() or abs(q.norm - 1.0) > self._cfg.divergence_threshold
