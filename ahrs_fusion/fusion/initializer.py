"""Initial orientation from stationary sensor samples.

Averages accelerometer and magnetometer samples collected while the
device is at rest, then derives the starting quaternion and the earth
magnetic field direction (dip) used as a fixed filter reference.
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple
import numpy as np
from numpy.typing import NDArray

from ..core.config import Config
from ..core.errors import InvalidInput
from ..core.quaternion import QuaternionOps
from ..core.types import EulerAngles, ImuReading, Quaternion, Vector3

logger = logging.getLogger(__name__)


@dataclass
class InitializationResult:
    """Initial orientation and the statistics it was derived from."""
    orientation: Quaternion
    euler: EulerAngles
    magnetic_reference: Vector3
    acc_mean: NDArray[np.float64]
    mag_mean: NDArray[np.float64]
    acc_std: NDArray[np.float64]
    mag_std: NDArray[np.float64]
    num_samples: int
    warnings: List[str]


class FusionInitializer:
    """Computes the filter's starting state from stationary samples."""

    def __init__(self, config: Config):
        """Initialize the initializer.

        Args:
            config: System configuration.
        """
        self._config = config
        self._init_cfg = config.initialization

    def from_samples(
        self,
        acc_samples: NDArray[np.float64],
        mag_samples: NDArray[np.float64],
    ) -> InitializationResult:
        """Derive the initial orientation from averaged samples.

        Args:
            acc_samples: Accelerometer samples (N x 3).
            mag_samples: Magnetometer samples (N x 3).

        Returns:
            InitializationResult with orientation and magnetic reference.

        Raises:
            InvalidInput: If too few or non-finite samples are given.
            ZeroNormInput: If the averaged vectors cannot be normalized.
        """
        acc_array = np.asarray(acc_samples, dtype=np.float64).reshape(-1, 3)
        mag_array = np.asarray(mag_samples, dtype=np.float64).reshape(-1, 3)
        min_samples = self._init_cfg.min_samples

        if len(acc_array) < min_samples or len(mag_array) < min_samples:
            raise InvalidInput(
                f"Insufficient samples: need {min_samples}, "
                f"got acc={len(acc_array)}, mag={len(mag_array)}"
            )
        if not (np.all(np.isfinite(acc_array)) and np.all(np.isfinite(mag_array))):
            raise InvalidInput("Initialization samples contain non-finite values")

        acc_mean = np.mean(acc_array, axis=0)
        mag_mean = np.mean(mag_array, axis=0)
        acc_std = np.std(acc_array, axis=0)
        mag_std = np.std(mag_array, axis=0)

        acc = Vector3.from_array(acc_mean)
        mag = Vector3.from_array(mag_mean)

        orientation = QuaternionOps.from_acc_mag(acc, mag)
        reference = magnetic_reference_from(acc, mag)
        euler = QuaternionOps.to_euler(orientation)
        warnings = self._check_samples(acc, mag, acc_std)

        for warning in warnings:
            logger.warning("%s", warning)
        logger.info(
            "Initial orientation: roll=%.1f, pitch=%.1f, yaw=%.1f deg, dip=%.1f deg",
            euler.roll_deg, euler.pitch_deg, euler.yaw_deg,
            math.degrees(math.atan2(-reference.z, reference.x)),
        )

        return InitializationResult(
            orientation=orientation,
            euler=euler,
            magnetic_reference=reference,
            acc_mean=acc_mean,
            mag_mean=mag_mean,
            acc_std=acc_std,
            mag_std=mag_std,
            num_samples=len(acc_array),
            warnings=warnings,
        )

    def _check_samples(
        self,
        acc: Vector3,
        mag: Vector3,
        acc_std: NDArray[np.float64],
    ) -> List[str]:
        """Collect warnings about initialization quality."""
        warnings = []
        sensor = self._config.sensor

        acc_mag = acc.norm
        expected_g = sensor.accelerometer.gravity_nominal
        if abs(acc_mag - expected_g) > sensor.accelerometer.gravity_tolerance:
            warnings.append(
                f"Acceleration magnitude {acc_mag:.2f} differs from "
                f"expected {expected_g:.2f}"
            )

        tilt = math.degrees(math.acos(max(-1.0, min(1.0, acc.z / acc_mag))))
        if tilt > self._init_cfg.max_tilt_deg:
            warnings.append(
                f"Initial tilt ({tilt:.1f} deg) exceeds threshold "
                f"({self._init_cfg.max_tilt_deg:.1f} deg)"
            )

        if np.any(acc_std > sensor.accelerometer.gravity_tolerance):
            warnings.append("High accelerometer noise detected, device may not be stationary")

        mag_mag = mag.norm
        min_field = sensor.magnetometer.min_field_ut
        max_field = sensor.magnetometer.max_field_ut
        if mag_mag < min_field or mag_mag > max_field:
            warnings.append(
                f"Magnetic field magnitude {mag_mag:.1f} uT "
                f"outside expected range [{min_field}, {max_field}] uT"
            )

        return warnings

    def check_stationary(self, readings: Sequence[ImuReading]) -> Tuple[bool, float]:
        """Check whether the device is at rest from its gyroscope readings.

        Args:
            readings: Recent IMU readings.

        Returns:
            Tuple of (is_stationary, max_angular_rate_dps).
        """
        if not readings:
            return False, 0.0

        max_rate_dps = math.degrees(max(r.gyr.norm for r in readings))
        threshold = self._config.sensor.gyroscope.stationary_threshold_dps
        return max_rate_dps < threshold, max_rate_dps


def magnetic_reference_from(acc: Vector3, mag: Vector3) -> Vector3:
    """Earth-field direction (bx, 0, bz) from one gravity and one field reading.

    The vertical component is the projection of the unit field onto the
    unit "up" direction; it does not depend on the device's orientation.

    Raises:
        ZeroNormInput: If either vector cannot be normalized.
    """
    up = acc.normalized()
    m = mag.normalized()
    bz = max(-1.0, min(1.0, up.dot(m)))
    return Vector3(math.sqrt(1.0 - bz * bz), 0.0, bz)
