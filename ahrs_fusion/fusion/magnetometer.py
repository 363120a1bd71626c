"""Magnetic disturbance monitor.

A field sample whose magnitude strays from the earth-field reference is
most likely corrupted by a local source (motors, ferrous objects). Fusing
it would drag the heading, so the monitor flags it and keeps the trust
low until a run of clean samples has been seen. The estimator uses
`is_usable` to pick between the MARG and the IMU-only update.
"""

import logging
from dataclasses import dataclass
from typing import Optional
import numpy as np
from numpy.typing import NDArray

from ..core.config import Config
from ..core.errors import InvalidInput
from ..core.types import Vector3

logger = logging.getLogger(__name__)


@dataclass
class MagnetometerState:
    """Snapshot of the disturbance monitor."""
    trust: float
    is_disturbed: bool
    reference_magnitude: float
    current_magnitude: float
    samples_since_disturbance: int


class MagnetometerProcessor:
    """Tracks the field magnitude and derives a trust factor from it.

    Until `initialize` has been called there is no reference, so every
    sample is accepted at nominal trust.
    """

    def __init__(self, config: Config):
        self._tolerance = config.magnetometer.disturbance.field_magnitude_tolerance
        self._reference_rate = config.magnetometer.disturbance.update_rate
        self._recovery_samples = config.magnetometer.disturbance.recovery_samples
        self._trust_cfg = config.magnetometer.trust
        self.reset()

    def initialize(self, mag_samples: NDArray[np.float64]) -> None:
        """Set the reference magnitude to the median of stationary samples.

        Args:
            mag_samples: Magnetometer samples (N x 3).

        Raises:
            InvalidInput: If no samples are given or their median
                magnitude is zero or non-finite.
        """
        if len(mag_samples) == 0:
            raise InvalidInput("Cannot build a field reference from zero samples")

        reference = float(np.median(np.linalg.norm(mag_samples, axis=1)))
        if not np.isfinite(reference) or reference <= 0.0:
            raise InvalidInput(f"Unusable field reference magnitude: {reference!r}")

        self._reference = reference
        logger.info("Field reference magnitude: %.2f", self._reference)

    def process(self, mag: Vector3) -> float:
        """Classify one field sample and return the updated trust in [0, 1]."""
        if self._reference is None:
            return self._trust_cfg.nominal

        self._magnitude = mag.norm
        deviation = abs(self._magnitude - self._reference) / self._reference

        if deviation > self._tolerance:
            if not self._disturbed:
                logger.warning(
                    "Magnetic disturbance detected: %.1f (ref: %.1f, dev: %.1f%%)",
                    self._magnitude, self._reference, deviation * 100,
                )
            self._disturbed = True
            self._clean_streak = 0
            self._trust = self._trust_cfg.disturbed
            return self._trust

        self._clean_streak += 1
        if self._disturbed and self._clean_streak >= self._recovery_samples:
            logger.info("Magnetic field recovered after %d clean samples", self._clean_streak)
            self._disturbed = False

        if self._disturbed:
            self._trust = self._trust_cfg.disturbed
        else:
            # Reference follows slow drift only while the field is trusted.
            rate = self._reference_rate
            self._reference += rate * (self._magnitude - self._reference)
            rate = self._trust_cfg.recovery_rate
            self._trust += rate * (self._trust_cfg.nominal - self._trust)

        return self._trust

    @property
    def state(self) -> MagnetometerState:
        """Current monitor state."""
        return MagnetometerState(
            trust=self._trust,
            is_disturbed=self._disturbed,
            reference_magnitude=self._reference or 0.0,
            current_magnitude=self._magnitude,
            samples_since_disturbance=self._clean_streak,
        )

    @property
    def trust(self) -> float:
        """Current trust factor."""
        return self._trust

    @property
    def is_disturbed(self) -> bool:
        return self._disturbed

    @property
    def is_usable(self) -> bool:
        """Whether the field should be fused into the orientation."""
        return not self._disturbed and self._trust >= self._trust_cfg.minimum

    def reset(self) -> None:
        """Forget the reference and return to nominal trust."""
        self._reference: Optional[float] = None
        self._magnitude = 0.0
        self._trust = self._trust_cfg.nominal
        self._disturbed = False
        self._clean_streak = 0
