"""Mahony complementary orientation filter.

Corrects the gyroscope rate with proportional-integral feedback of the
cross product between measured and estimated reference directions, then
integrates the corrected rate.
"""

import logging
from dataclasses import replace
from typing import Optional

from ..core.config import MahonyConfig, DEFAULT_SAMPLE_PERIOD, DEFAULT_KP, DEFAULT_KI
from ..core.quaternion import QuaternionOps
from ..core.types import EulerAngles, Quaternion, Vector3
from ..core.validation import check_finite
from .base import FieldAccessMixin, initial_quaternion
from .madgwick import earth_field_reference, integrate_gyro

logger = logging.getLogger(__name__)


def estimated_gravity(q: Quaternion) -> Vector3:
    """Gravity direction in the body frame predicted by q."""
    w, x, y, z = q.w, q.x, q.y, q.z
    return Vector3(
        2.0 * (x * z - w * y),
        2.0 * (w * x + y * z),
        w * w - x * x - y * y + z * z,
    )


def estimated_field(q: Quaternion, b: Vector3) -> Vector3:
    """Earth-field direction b expressed in the body frame predicted by q."""
    w, x, y, z = q.w, q.x, q.y, q.z
    bx, bz = b.x, b.z
    return Vector3(
        2.0 * bx * (0.5 - y * y - z * z) + 2.0 * bz * (x * z - w * y),
        2.0 * bx * (x * y - w * z) + 2.0 * bz * (w * x + y * z),
        2.0 * bx * (w * y + x * z) + 2.0 * bz * (0.5 - x * x - y * y),
    )


class MahonyFilter:
    """Mahony AHRS filter.

    State is the orientation quaternion plus the integral error vector;
    both are committed together at the end of a successful update.
    """

    def __init__(
        self,
        sample_period: float = DEFAULT_SAMPLE_PERIOD,
        kp: float = DEFAULT_KP,
        ki: float = DEFAULT_KI,
        initial_orientation: Optional[Quaternion] = None,
    ):
        """Create a filter.

        Args:
            sample_period: Expected sampling period in seconds (> 0).
            kp: Proportional gain (>= 0).
            ki: Integral gain (>= 0). Zero disables the integral term.
            initial_orientation: Starting estimate; identity when None.

        Raises:
            InvalidInput: If any parameter violates its constraints.
        """
        self._config = MahonyConfig.validated(sample_period, kp, ki)
        self._quaternion = initial_quaternion(initial_orientation)
        self._integral_error = Vector3.zero()

    @classmethod
    def default(cls) -> "MahonyFilter":
        """Filter with sample_period 1/256 s, kp 0.5, ki 0 and identity orientation."""
        return cls()

    @classmethod
    def from_config(
        cls,
        config: MahonyConfig,
        initial_orientation: Optional[Quaternion] = None,
    ) -> "MahonyFilter":
        """Create a filter from a MahonyConfig."""
        return cls(
            sample_period=config.sample_period,
            kp=config.kp,
            ki=config.ki,
            initial_orientation=initial_orientation,
        )

    @property
    def quaternion(self) -> Quaternion:
        """Current orientation estimate."""
        return self._quaternion

    @property
    def sample_period(self) -> float:
        """Expected sampling period, in seconds."""
        return self._config.sample_period

    @property
    def kp(self) -> float:
        """Proportional gain."""
        return self._config.kp

    @property
    def ki(self) -> float:
        """Integral gain."""
        return self._config.ki

    @property
    def integral_error(self) -> Vector3:
        """Accumulated feedback error."""
        return self._integral_error

    @property
    def euler(self) -> EulerAngles:
        """Current orientation as ZYX Euler angles."""
        return QuaternionOps.to_euler(self._quaternion)

    def current_orientation(self) -> Quaternion:
        """Current orientation estimate."""
        return self._quaternion

    def update(self, gyro: Vector3, accel: Vector3, mag: Vector3) -> Quaternion:
        """Fuse one gyroscope, accelerometer and magnetometer sample.

        Raises:
            InvalidInput: If any reading is non-finite.
            ZeroNormInput: If accel or mag has zero magnitude.
            DegenerateQuaternion: If integration produced an unusable
                quaternion.
        """
        check_finite("gyroscope", gyro)
        check_finite("accelerometer", accel)
        check_finite("magnetometer", mag)
        a = accel.normalized()
        m = mag.normalized()

        q = self._quaternion
        b = earth_field_reference(q, m)
        error = a.cross(estimated_gravity(q)) + m.cross(estimated_field(q, b))
        return self._step(q, gyro, error)

    def update_imu(self, gyro: Vector3, accel: Vector3) -> Quaternion:
        """Fuse one gyroscope and accelerometer sample.

        Raises:
            InvalidInput: If any reading is non-finite.
            ZeroNormInput: If accel has zero magnitude.
            DegenerateQuaternion: If integration produced an unusable
                quaternion.
        """
        check_finite("gyroscope", gyro)
        check_finite("accelerometer", accel)
        a = accel.normalized()

        q = self._quaternion
        return self._step(q, gyro, a.cross(estimated_gravity(q)))

    def _step(self, q: Quaternion, gyro: Vector3, error: Vector3) -> Quaternion:
        """Apply feedback to the rate, integrate and commit."""
        cfg = self._config
        if cfg.ki > 0:
            integral_error = self._integral_error + error * cfg.sample_period
        else:
            integral_error = Vector3.zero()

        rate = gyro + error * cfg.kp + integral_error * cfg.ki
        q_next = (q + integrate_gyro(q, rate) * cfg.sample_period).normalized()

        self._quaternion = q_next
        self._integral_error = integral_error
        return q_next


class InstrumentedMahonyFilter(FieldAccessMixin, MahonyFilter):
    """Mahony filter with writable gains, integral error and quaternion."""

    @property
    def kp(self) -> float:
        """Proportional gain."""
        return self._config.kp

    @kp.setter
    def kp(self, value: float) -> None:
        logger.debug("Raw kp write: %s", value)
        self._config = replace(self._config, kp=value)

    @property
    def ki(self) -> float:
        """Integral gain."""
        return self._config.ki

    @ki.setter
    def ki(self, value: float) -> None:
        logger.debug("Raw ki write: %s", value)
        self._config = replace(self._config, ki=value)

    @property
    def integral_error(self) -> Vector3:
        """Accumulated feedback error."""
        return self._integral_error

    @integral_error.setter
    def integral_error(self, value: Vector3) -> None:
        logger.debug("Raw integral_error write: %s", value)
        self._integral_error = value
