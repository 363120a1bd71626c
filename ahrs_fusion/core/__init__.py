"""Core module for AHRS orientation filtering."""

from .types import (
    Vector3,
    Quaternion,
    EulerAngles,
    ImuReading,
    FusionState,
    ValidationResult,
)
from .errors import (
    FilterError,
    InvalidInput,
    ZeroNormInput,
    DegenerateGradient,
    DegenerateQuaternion,
)
from .validation import SensorValidator, QuaternionValidator, check_finite
from .quaternion import QuaternionOps
from .config import Config, FilterConfig, MahonyConfig, load_config

__all__ = [
    "Vector3",
    "Quaternion",
    "EulerAngles",
    "ImuReading",
    "FusionState",
    "ValidationResult",
    "FilterError",
    "InvalidInput",
    "ZeroNormInput",
    "DegenerateGradient",
    "DegenerateQuaternion",
    "SensorValidator",
    "QuaternionValidator",
    "check_finite",
    "QuaternionOps",
    "Config",
    "FilterConfig",
    "MahonyConfig",
    "load_config",
]
