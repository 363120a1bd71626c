"""Madgwick gradient-descent orientation filter.

Each sample propagates the orientation with the gyroscope rate and pulls
it toward agreement with the measured gravity (and magnetic field)
direction by one fixed-size gradient-descent step:

    qDot = 0.5 * q x (0, w) - beta * grad / |grad|
    q    = normalize(q + qDot * sample_period)

where grad = J(q)^T F(q) and F stacks the residuals between the
directions predicted by q and the measured unit vectors.
"""

import logging
import math
from dataclasses import replace
from typing import Optional, Sequence, Tuple

from ..core.config import FilterConfig, DEFAULT_SAMPLE_PERIOD, DEFAULT_BETA
from ..core.errors import DegenerateGradient
from ..core.quaternion import QuaternionOps
from ..core.types import EulerAngles, Quaternion, Vector3, ZERO_NORM_EPSILON
from ..core.validation import check_finite
from .base import FieldAccessMixin, initial_quaternion

logger = logging.getLogger(__name__)

Residual = Tuple[float, float, float]
JacobianRows = Tuple[Tuple[float, float, float, float], ...]


def integrate_gyro(q: Quaternion, gyro: Vector3) -> Quaternion:
    """Rate of change of q from the body angular rate (rad/s)."""
    return QuaternionOps.multiply(q, Quaternion.from_vector(gyro)) * 0.5


def gravity_residual(q: Quaternion, a: Vector3) -> Residual:
    """Predicted body-frame gravity direction minus the measured one."""
    w, x, y, z = q.w, q.x, q.y, q.z
    return (
        2.0 * (x * z - w * y) - a.x,
        2.0 * (w * x + y * z) - a.y,
        2.0 * (0.5 - x * x - y * y) - a.z,
    )


def gravity_jacobian(q: Quaternion) -> JacobianRows:
    """Partial derivatives of gravity_residual with respect to (w, x, y, z)."""
    w, x, y, z = q.w, q.x, q.y, q.z
    return (
        (-2.0 * y, 2.0 * z, -2.0 * w, 2.0 * x),
        (2.0 * x, 2.0 * w, 2.0 * z, 2.0 * y),
        (0.0, -4.0 * x, -4.0 * y, 0.0),
    )


def earth_field_reference(q: Quaternion, m: Vector3) -> Vector3:
    """Earth-frame field direction (bx, 0, bz) implied by q and a body reading.

    Rotates the measured field into the reference frame and folds its
    horizontal part onto the x axis.
    """
    h = QuaternionOps.rotate(q, m)
    return Vector3(math.hypot(h.x, h.y), 0.0, h.z)


def magnetic_residual(q: Quaternion, b: Vector3, m: Vector3) -> Residual:
    """Predicted body-frame field direction minus the measured one."""
    w, x, y, z = q.w, q.x, q.y, q.z
    bx, bz = b.x, b.z
    return (
        2.0 * bx * (0.5 - y * y - z * z) + 2.0 * bz * (x * z - w * y) - m.x,
        2.0 * bx * (x * y - w * z) + 2.0 * bz * (w * x + y * z) - m.y,
        2.0 * bx * (w * y + x * z) + 2.0 * bz * (0.5 - x * x - y * y) - m.z,
    )


def magnetic_jacobian(q: Quaternion, b: Vector3) -> JacobianRows:
    """Partial derivatives of magnetic_residual with b held fixed."""
    w, x, y, z = q.w, q.x, q.y, q.z
    bx, bz = b.x, b.z
    return (
        (-2.0 * bz * y,
         2.0 * bz * z,
         -4.0 * bx * y - 2.0 * bz * w,
         -4.0 * bx * z + 2.0 * bz * x),
        (-2.0 * bx * z + 2.0 * bz * x,
         2.0 * bx * y + 2.0 * bz * w,
         2.0 * bx * x + 2.0 * bz * z,
         -2.0 * bx * w + 2.0 * bz * y),
        (2.0 * bx * y,
         2.0 * bx * z - 4.0 * bz * x,
         2.0 * bx * w - 4.0 * bz * y,
         2.0 * bx * x),
    )


def _transpose_product(rows: JacobianRows, residual: Sequence[float]) -> Quaternion:
    """J^T F, returned as a quaternion-shaped 4-vector."""
    w = x = y = z = 0.0
    for (jw, jx, jy, jz), f in zip(rows, residual):
        w += jw * f
        x += jx * f
        y += jy * f
        z += jz * f
    return Quaternion(w=w, x=x, y=y, z=z)


def imu_gradient(q: Quaternion, a: Vector3) -> Quaternion:
    """Objective gradient from the gravity residual alone."""
    return _transpose_product(gravity_jacobian(q), gravity_residual(q, a))


def magnetic_gradient(q: Quaternion, m: Vector3, b: Vector3) -> Quaternion:
    """Objective gradient contribution of the magnetic residual."""
    return _transpose_product(magnetic_jacobian(q, b), magnetic_residual(q, b, m))


def marg_gradient(q: Quaternion, a: Vector3, m: Vector3, b: Vector3) -> Quaternion:
    """Objective gradient of the stacked gravity and magnetic residuals."""
    return imu_gradient(q, a) + magnetic_gradient(q, m, b)


def normalized_step(gradient: Quaternion) -> Quaternion:
    """Unit-length gradient direction.

    Raises:
        DegenerateGradient: If the gradient is (near) zero.
    """
    n = gradient.norm
    if n <= ZERO_NORM_EPSILON:
        raise DegenerateGradient(f"Gradient norm {n!r} too small to normalize")
    return gradient * (1.0 / n)


class MadgwickFilter:
    """Madgwick AHRS filter.

    Owns one orientation quaternion and a FilterConfig. Every successful
    update replaces the quaternion with a new unit quaternion; a failed
    update raises and leaves it untouched.
    """

    def __init__(
        self,
        sample_period: float = DEFAULT_SAMPLE_PERIOD,
        beta: float = DEFAULT_BETA,
        initial_orientation: Optional[Quaternion] = None,
        magnetic_reference: Optional[Vector3] = None,
    ):
        """Create a filter.

        Args:
            sample_period: Expected sampling period in seconds (> 0).
            beta: Correction gain (>= 0).
            initial_orientation: Starting estimate; identity when None.
                Normalized before use.
            magnetic_reference: Fixed earth-field direction. When None the
                direction is re-derived from every magnetometer sample.

        Raises:
            InvalidInput: If any parameter violates its constraints.
        """
        self._config = FilterConfig.validated(sample_period, beta, magnetic_reference)
        self._quaternion = initial_quaternion(initial_orientation)
        self._skipped_corrections = 0

    @classmethod
    def default(cls) -> "MadgwickFilter":
        """Filter with sample_period 1/256 s, beta 0.1 and identity orientation."""
        return cls()

    @classmethod
    def from_config(
        cls,
        config: FilterConfig,
        initial_orientation: Optional[Quaternion] = None,
    ) -> "MadgwickFilter":
        """Create a filter from a FilterConfig."""
        return cls(
            sample_period=config.sample_period,
            beta=config.beta,
            initial_orientation=initial_orientation,
            magnetic_reference=config.magnetic_reference,
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
    def beta(self) -> float:
        """Correction gain."""
        return self._config.beta

    @property
    def magnetic_reference(self) -> Optional[Vector3]:
        """Fixed earth-field direction, or None when derived per sample."""
        return self._config.magnetic_reference

    @property
    def skipped_corrections(self) -> int:
        """Number of updates whose correction step was skipped for a zero gradient."""
        return self._skipped_corrections

    @property
    def euler(self) -> EulerAngles:
        """Current orientation as ZYX Euler angles."""
        return QuaternionOps.to_euler(self._quaternion)

    def current_orientation(self) -> Quaternion:
        """Current orientation estimate."""
        return self._quaternion

    def update(self, gyro: Vector3, accel: Vector3, mag: Vector3) -> Quaternion:
        """Fuse one gyroscope, accelerometer and magnetometer sample.

        Args:
            gyro: Angular rate in rad/s.
            accel: Accelerometer reading, any unit.
            mag: Magnetometer reading, any unit.

        Returns:
            The new orientation.

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
        b = self._config.magnetic_reference
        if b is None:
            b = earth_field_reference(q, m)

        return self._step(q, gyro, marg_gradient(q, a, m, b))

    def update_imu(self, gyro: Vector3, accel: Vector3) -> Quaternion:
        """Fuse one gyroscope and accelerometer sample.

        Heading is left uncorrected and drifts with gyro error.

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
        return self._step(q, gyro, imu_gradient(q, a))

    def _step(self, q: Quaternion, gyro: Vector3, gradient: Quaternion) -> Quaternion:
        """Combine prediction and correction, integrate and commit."""
        q_dot = integrate_gyro(q, gyro)
        skipped = 0
        try:
            q_dot = q_dot - normalized_step(gradient) * self._config.beta
        except DegenerateGradient:
            logger.debug("Zero gradient, skipping correction")
            skipped = 1

        q_next = (q + q_dot * self._config.sample_period).normalized()
        self._quaternion = q_next
        self._skipped_corrections += skipped
        return q_next


class InstrumentedMadgwickFilter(FieldAccessMixin, MadgwickFilter):
    """Madgwick filter with writable sample_period, beta and quaternion."""

    @property
    def beta(self) -> float:
        """Correction gain."""
        return self._config.beta

    @beta.setter
    def beta(self, value: float) -> None:
        logger.debug("Raw beta write: %s", value)
        self._config = replace(self._config, beta=value)

