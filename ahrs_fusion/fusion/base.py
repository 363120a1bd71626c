"""Common interface and debug accessors for orientation filters."""

import logging
from dataclasses import replace
from typing import Optional, Protocol

from ..core.errors import DegenerateQuaternion, InvalidInput
from ..core.types import Quaternion, Vector3

logger = logging.getLogger(__name__)


class OrientationFilter(Protocol):
    """Protocol for per-sample orientation filters."""

    @property
    def quaternion(self) -> Quaternion:
        """Current orientation estimate."""
        ...

    def current_orientation(self) -> Quaternion:
        """Current orientation estimate."""
        ...

    def update(self, gyro: Vector3, accel: Vector3, mag: Vector3) -> Quaternion:
        """Fuse one gyroscope, accelerometer and magnetometer sample."""
        ...

    def update_imu(self, gyro: Vector3, accel: Vector3) -> Quaternion:
        """Fuse one gyroscope and accelerometer sample."""
        ...


class FieldAccessMixin:
    """Raw write access to a filter's state for test/debug instrumentation.

    Only mixed into the instrumented filter variants, which are handed out
    when `filter.expose_internals` is enabled. Writes bypass validation and
    the unit-norm invariant.
    """

    @property
    def quaternion(self) -> Quaternion:
        """Filter state quaternion."""
        return self._quaternion

    @quaternion.setter
    def quaternion(self, value: Quaternion) -> None:
        logger.debug("Raw quaternion write: %s", value)
        self._quaternion = value

    @property
    def sample_period(self) -> float:
        """Expected sampling period, in seconds."""
        return self._config.sample_period

    @sample_period.setter
    def sample_period(self, value: float) -> None:
        logger.debug("Raw sample_period write: %s", value)
        self._config = replace(self._config, sample_period=value)


def initial_quaternion(initial_orientation: Optional[Quaternion]) -> Quaternion:
    """Validate and normalize a starting orientation.

    Raises:
        InvalidInput: If the quaternion is non-finite or zero.
    """
    if initial_orientation is None:
        return Quaternion.identity()
    if not initial_orientation.is_finite():
        raise InvalidInput(f"initial_orientation must be finite, got {initial_orientation}")
    try:
        return initial_orientation.normalized()
    except DegenerateQuaternion as e:
        raise InvalidInput(f"initial_orientation cannot be normalized: {e}") from e
