"""Orientation filters and the estimator that drives them."""

from .base import OrientationFilter
from .madgwick import MadgwickFilter, InstrumentedMadgwickFilter
from .mahony import MahonyFilter, InstrumentedMahonyFilter
from .magnetometer import MagnetometerProcessor, MagnetometerState
from .initializer import FusionInitializer, InitializationResult, magnetic_reference_from
from .estimator import OrientationEstimator, FilterHealth, create_filter

__all__ = [
    "OrientationFilter",
    "MadgwickFilter",
    "InstrumentedMadgwickFilter",
    "MahonyFilter",
    "InstrumentedMahonyFilter",
    "MagnetometerProcessor",
    "MagnetometerState",
    "FusionInitializer",
    "InitializationResult",
    "magnetic_reference_from",
    "OrientationEstimator",
    "FilterHealth",
    "create_filter",
]
