"""Madgwick and Mahony AHRS orientation filters."""

from .core import (
    Vector3,
    Quaternion,
    EulerAngles,
    ImuReading,
    FusionState,
    FilterError,
    InvalidInput,
    ZeroNormInput,
    DegenerateGradient,
    DegenerateQuaternion,
    QuaternionOps,
    Config,
    FilterConfig,
    MahonyConfig,
    load_config,
)
from .fusion import (
    MadgwickFilter,
    MahonyFilter,
    OrientationEstimator,
    create_filter,
)

__version__ = "0.1.0"

__all__ = [
    "Vector3",
    "Quaternion",
    "EulerAngles",
    "ImuReading",
    "FusionState",
    "FilterError",
    "InvalidInput",
    "ZeroNormInput",
    "DegenerateGradient",
    "DegenerateQuaternion",
    "QuaternionOps",
    "Config",
    "FilterConfig",
    "MahonyConfig",
    "load_config",
    "MadgwickFilter",
    "MahonyFilter",
    "OrientationEstimator",
    "create_filter",
]
