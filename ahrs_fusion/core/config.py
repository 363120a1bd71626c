"""Configuration management for AHRS orientation filtering."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Optional
import logging
import math
import os

import yaml

from .errors import InvalidInput
from .types import Vector3

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_PERIOD = 1.0 / 256.0
DEFAULT_BETA = 0.1
DEFAULT_KP = 0.5
DEFAULT_KI = 0.0

CONFIG_ENV_VAR = "AHRS_FUSION_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "default.yaml"


def _require_finite(name: str, value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"{name} must be a number, got {value!r}") from e
    if not math.isfinite(value):
        raise InvalidInput(f"{name} must be finite, got {value!r}")
    return value


@dataclass(frozen=True)
class FilterConfig:
    """Madgwick filter parameters.

    `magnetic_reference` is the earth field direction (bx, 0, bz) in the
    reference frame. When None the direction is re-derived every sample
    from the measured field rotated by the current estimate.
    """
    sample_period: float = DEFAULT_SAMPLE_PERIOD
    beta: float = DEFAULT_BETA
    magnetic_reference: Optional[Vector3] = None

    @classmethod
    def validated(
        cls,
        sample_period: float = DEFAULT_SAMPLE_PERIOD,
        beta: float = DEFAULT_BETA,
        magnetic_reference: Optional[Vector3] = None,
    ) -> "FilterConfig":
        """Build a config, checking every constraint.

        Raises:
            InvalidInput: On non-finite values, sample_period <= 0,
                beta < 0 or an unusable magnetic reference.
        """
        sample_period = _require_finite("sample_period", sample_period)
        beta = _require_finite("beta", beta)
        if sample_period <= 0:
            raise InvalidInput(f"sample_period must be > 0, got {sample_period}")
        if beta < 0:
            raise InvalidInput(f"beta must be >= 0, got {beta}")

        if magnetic_reference is not None:
            magnetic_reference = horizontal_reference(magnetic_reference)

        return cls(sample_period=sample_period, beta=beta,
                   magnetic_reference=magnetic_reference)


@dataclass(frozen=True)
class MahonyConfig:
    """Mahony filter parameters."""
    sample_period: float = DEFAULT_SAMPLE_PERIOD
    kp: float = DEFAULT_KP
    ki: float = DEFAULT_KI

    @classmethod
    def validated(
        cls,
        sample_period: float = DEFAULT_SAMPLE_PERIOD,
        kp: float = DEFAULT_KP,
        ki: float = DEFAULT_KI,
    ) -> "MahonyConfig":
        """Build a config, checking every constraint.

        Raises:
            InvalidInput: On non-finite values, sample_period <= 0 or
                negative gains.
        """
        sample_period = _require_finite("sample_period", sample_period)
        kp = _require_finite("kp", kp)
        ki = _require_finite("ki", ki)
        if sample_period <= 0:
            raise InvalidInput(f"sample_period must be > 0, got {sample_period}")
        if kp < 0 or ki < 0:
            raise InvalidInput(f"kp and ki must be >= 0, got kp={kp}, ki={ki}")
        return cls(sample_period=sample_period, kp=kp, ki=ki)


def horizontal_reference(field_direction: Vector3) -> Vector3:
    """Reduce a reference-frame field direction to unit (bx, 0, bz).

    Raises:
        InvalidInput: If the vector is non-finite or zero.
    """
    if not field_direction.is_finite():
        raise InvalidInput(f"magnetic_reference must be finite, got {field_direction}")
    n = field_direction.norm
    if n <= 0:
        raise InvalidInput("magnetic_reference must be non-zero")
    return Vector3(math.hypot(field_direction.x, field_direction.y) / n, 0.0,
                   field_direction.z / n)


@dataclass
class FilterSettings:
    """Filter selection and gains."""
    algorithm: str = "madgwick"
    sample_rate_hz: float = 256.0
    beta: float = DEFAULT_BETA
    kp: float = DEFAULT_KP
    ki: float = DEFAULT_KI
    expose_internals: bool = False
    magnetic_reference: str = "per_sample"

    @property
    def sample_period(self) -> float:
        """Sample period in seconds."""
        rate = _require_finite("sample_rate_hz", self.sample_rate_hz)
        if rate <= 0:
            raise InvalidInput(f"sample_rate_hz must be > 0, got {rate}")
        return 1.0 / rate


@dataclass
class AccelerometerConfig:
    """Accelerometer sensor configuration."""
    range_g: float = 16.0
    gravity_nominal: float = 9.81
    gravity_tolerance: float = 0.5


@dataclass
class GyroscopeConfig:
    """Gyroscope sensor configuration."""
    range_dps: float = 2000.0
    stationary_threshold_dps: float = 5.0


@dataclass
class MagnetometerSensorConfig:
    """Magnetometer sensor configuration."""
    range_ut: float = 4900.0
    min_field_ut: float = 20.0
    max_field_ut: float = 100.0


@dataclass
class SensorConfig:
    """Sensor configuration."""
    accelerometer: AccelerometerConfig = field(default_factory=AccelerometerConfig)
    gyroscope: GyroscopeConfig = field(default_factory=GyroscopeConfig)
    magnetometer: MagnetometerSensorConfig = field(default_factory=MagnetometerSensorConfig)


@dataclass
class InitializationConfig:
    """Initial orientation configuration."""
    num_samples: int = 100
    min_samples: int = 50
    max_tilt_deg: float = 30.0


@dataclass
class QuaternionValidationConfig:
    """Quaternion validation configuration."""
    norm_tolerance: float = 0.01
    divergence_threshold: float = 0.1


@dataclass
class TimingValidationConfig:
    """Sample stream timing checks."""
    period_tolerance: float = 0.5


@dataclass
class ValidationConfig:
    """Validation configuration."""
    quaternion: QuaternionValidationConfig = field(default_factory=QuaternionValidationConfig)
    timing: TimingValidationConfig = field(default_factory=TimingValidationConfig)


@dataclass
class DisturbanceConfig:
    """Magnetometer disturbance detection configuration."""
    field_magnitude_tolerance: float = 0.15
    update_rate: float = 0.01
    recovery_samples: int = 50


@dataclass
class TrustConfig:
    """Magnetometer trust configuration."""
    nominal: float = 1.0
    disturbed: float = 0.1
    recovery_rate: float = 0.02
    minimum: float = 0.5


@dataclass
class MagnetometerConfig:
    """Magnetometer processing configuration."""
    disturbance: DisturbanceConfig = field(default_factory=DisturbanceConfig)
    trust: TrustConfig = field(default_factory=TrustConfig)


@dataclass
class Config:
    """Complete configuration for AHRS orientation filtering."""
    filter: FilterSettings = field(default_factory=FilterSettings)
    sensor: SensorConfig = field(default_factory=SensorConfig)
    initialization: InitializationConfig = field(default_factory=InitializationConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    magnetometer: MagnetometerConfig = field(default_factory=MagnetometerConfig)


def _dict_to_dataclass(data: dict, cls: type) -> object:
    """Build `cls` from a nested mapping; keys with no matching field are dropped."""
    if not is_dataclass(cls):
        return data

    known = {f.name: f.type for f in fields(cls)}
    kwargs = {}
    for key, value in data.items():
        if key not in known:
            logger.debug("Ignoring unknown config key %s.%s", cls.__name__, key)
            continue
        if is_dataclass(known[key]) and isinstance(value, dict):
            value = _dict_to_dataclass(value, known[key])
        kwargs[key] = value

    return cls(**kwargs)


def _resolve_config_path(config_path: Optional[str]) -> Optional[Path]:
    """Explicit path, then $AHRS_FUSION_CONFIG, then the packaged default."""
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    if DEFAULT_CONFIG_PATH.exists():
        return DEFAULT_CONFIG_PATH
    return None


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from a YAML file.

    Sections and keys missing from the file keep their dataclass
    defaults.

    Args:
        config_path: Path to a YAML file. When None the
            AHRS_FUSION_CONFIG environment variable is used, then the
            packaged config/default.yaml.

    Returns:
        Configuration object with all settings.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
    """
    path = _resolve_config_path(config_path)
    if path is None:
        return Config()
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    logger.info("Loaded configuration from %s", path)

    return Config() if data is None else _dict_to_dataclass(data, Config)
