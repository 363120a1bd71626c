"""Orientation estimator with input validation and health tracking.

Wraps one orientation filter with sensor validation, magnetometer
disturbance gating and health counters. The caller still owns sample
timing: one `update` call per IMU sample.
"""

import logging
from dataclasses import dataclass
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from ..core.config import Config
from ..core.errors import FilterError, InvalidInput
from ..core.quaternion import QuaternionOps
from ..core.types import FusionState, ImuReading, Quaternion, Vector3
from ..core.validation import QuaternionValidator, SensorValidator
from .base import OrientationFilter
from .initializer import FusionInitializer, InitializationResult
from .madgwick import InstrumentedMadgwickFilter, MadgwickFilter
from .magnetometer import MagnetometerProcessor
from .mahony import InstrumentedMahonyFilter, MahonyFilter

logger = logging.getLogger(__name__)

MAGNETIC_REFERENCE_MODES = ("per_sample", "latched")


def create_filter(
    config: Config,
    initial_orientation: Optional[Quaternion] = None,
    magnetic_reference: Optional[Vector3] = None,
) -> OrientationFilter:
    """Build the filter selected by `config.filter`.

    The instrumented variant, with writable internals, is returned only
    when `config.filter.expose_internals` is true.

    Raises:
        InvalidInput: On an unknown algorithm or invalid parameters.
    """
    settings = config.filter
    algorithm = str(settings.algorithm).lower()
    instrumented = settings.expose_internals
    if not isinstance(instrumented, bool):
        raise InvalidInput(f"expose_internals must be true or false, got {instrumented!r}")

    if algorithm == "madgwick":
        cls = InstrumentedMadgwickFilter if instrumented else MadgwickFilter
        return cls(
            sample_period=settings.sample_period,
            beta=settings.beta,
            initial_orientation=initial_orientation,
            magnetic_reference=magnetic_reference,
        )
    if algorithm == "mahony":
        cls = InstrumentedMahonyFilter if instrumented else MahonyFilter
        return cls(
            sample_period=settings.sample_period,
            kp=settings.kp,
            ki=settings.ki,
            initial_orientation=initial_orientation,
        )
    raise InvalidInput(f"Unknown filter algorithm: {settings.algorithm!r}")


@dataclass
class FilterHealth:
    """Estimator health metrics."""
    quaternion_norm: float
    is_diverged: bool
    update_count: int
    marg_updates: int
    imu_updates: int
    rejected_updates: int
    skipped_corrections: int
    consecutive_good_updates: int
    mag_trust: float


class OrientationEstimator:
    """Validated, disturbance-aware driver around one orientation filter.

    Chooses the magnetometer update when a usable field sample is present
    and the gyroscope/accelerometer update otherwise. A rejected sample
    leaves the orientation unchanged and is reported through an invalid
    FusionState rather than an exception.
    """

    def __init__(self, config: Config):
        """Initialize the estimator.

        Args:
            config: System configuration.

        Raises:
            InvalidInput: If the filter settings are invalid.
        """
        mode = config.filter.magnetic_reference
        if mode not in MAGNETIC_REFERENCE_MODES:
            raise InvalidInput(
                f"magnetic_reference must be one of {MAGNETIC_REFERENCE_MODES}, got {mode!r}"
            )

        self._config = config
        self._filter = create_filter(config)
        self._mag_processor = MagnetometerProcessor(config)
        self._sensor_validator = SensorValidator(config)
        self._quat_validator = QuaternionValidator(config)

        self._iteration = 0
        self._marg_updates = 0
        self._imu_updates = 0
        self._rejected = 0
        self._consecutive_good = 0
        self._is_initialized = False
        self._last_timestamp = 0.0

    def initialize(
        self,
        acc_samples: NDArray[np.float64],
        mag_samples: NDArray[np.float64],
    ) -> InitializationResult:
        """Reset the filter to the orientation implied by stationary samples.

        In `latched` magnetic reference mode the earth-field direction
        derived here stays fixed for the filter's lifetime.

        Args:
            acc_samples: Accelerometer samples (N x 3).
            mag_samples: Magnetometer samples (N x 3).

        Returns:
            The initialization result.

        Raises:
            InvalidInput: If the samples are insufficient or non-finite.
            ZeroNormInput: If the averaged vectors cannot be normalized.
        """
        result = FusionInitializer(self._config).from_samples(acc_samples, mag_samples)

        reference = None
        if self._config.filter.magnetic_reference == "latched":
            reference = result.magnetic_reference

        self._filter = create_filter(self._config, result.orientation, reference)
        self._mag_processor.initialize(np.asarray(mag_samples, dtype=np.float64).reshape(-1, 3))
        self._sensor_validator.reset()
        self._is_initialized = True
        self._consecutive_good = 0

        return result

    def update(self, reading: ImuReading) -> FusionState:
        """Process one IMU reading.

        Args:
            reading: Current IMU measurement.

        Returns:
            FusionState; `is_valid` is False when the sample was rejected,
            in which case the orientation is the previous one.
        """
        mag = reading.mag
        validation = self._sensor_validator.validate_reading(reading)
        if not validation.is_valid:
            for error in validation.errors:
                logger.warning("Validation: %s", error)
            return self._reject(reading, "marg" if mag is not None else "imu",
                                "; ".join(validation.errors))

        for warning in validation.warnings:
            logger.debug("Validation warning: %s", warning)

        mag_trust = 0.0
        use_mag = False
        if mag is not None:
            mag_trust = self._mag_processor.process(mag)
            use_mag = self._mag_processor.is_usable
        mode = "marg" if use_mag else "imu"

        try:
            if use_mag:
                self._filter.update(reading.gyr, reading.acc, mag)
            else:
                self._filter.update_imu(reading.gyr, reading.acc)
        except FilterError as e:
            logger.warning("Filter update rejected: %s", e)
            return self._reject(reading, mode, str(e), mag_trust)

        quat_check = self._quat_validator.validate(self._filter.quaternion)
        for warning in quat_check.warnings:
            logger.debug("Quaternion: %s", warning)

        if use_mag:
            self._marg_updates += 1
        else:
            self._imu_updates += 1
        self._iteration += 1
        self._consecutive_good += 1
        self._last_timestamp = reading.timestamp

        return self._create_state(mode, mag_trust)

    def _reject(
        self,
        reading: ImuReading,
        mode: str,
        error: str,
        mag_trust: Optional[float] = None,
    ) -> FusionState:
        """Record a rejected sample and snapshot the unchanged state."""
        self._rejected += 1
        self._consecutive_good = 0
        if mag_trust is None:
            mag_trust = self._mag_processor.trust
        state = self._create_state(mode, mag_trust)
        state.is_valid = False
        state.error = error
        return state

    def _create_state(self, mode: str, mag_trust: float) -> FusionState:
        """Create current fusion state snapshot."""
        q = self._filter.quaternion
        return FusionState(
            quaternion=q,
            euler=QuaternionOps.to_euler(q),
            timestamp=self._last_timestamp,
            iteration=self._iteration,
            mode=mode,
            mag_trust=mag_trust,
            quaternion_norm=q.norm,
        )

    @property
    def health(self) -> FilterHealth:
        """Get estimator health metrics."""
        q = self._filter.quaternion
        return FilterHealth(
            quaternion_norm=q.norm,
            is_diverged=self._quat_validator.is_diverged(q),
            update_count=self._iteration,
            marg_updates=self._marg_updates,
            imu_updates=self._imu_updates,
            rejected_updates=self._rejected,
            skipped_corrections=(
                self._filter.skipped_corrections
                if isinstance(self._filter, MadgwickFilter) else 0
            ),
            consecutive_good_updates=self._consecutive_good,
            mag_trust=self._mag_processor.trust,
        )

    @property
    def filter(self) -> OrientationFilter:
        """The wrapped orientation filter."""
        return self._filter

    @property
    def quaternion(self) -> Quaternion:
        """Current orientation quaternion."""
        return self._filter.quaternion

    @property
    def is_initialized(self) -> bool:
        """Whether initialize() has run."""
        return self._is_initialized

    @property
    def mag_processor(self) -> MagnetometerProcessor:
        """Access to magnetometer processor."""
        return self._mag_processor
