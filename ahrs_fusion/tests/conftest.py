"""Pytest fixtures for AHRS orientation filter tests."""

import logging
import math
from typing import Callable, Optional
import pytest
import numpy as np
from numpy.typing import NDArray

from ahrs_fusion.core.config import Config
from ahrs_fusion.core.types import ImuReading, Quaternion, Vector3
from ahrs_fusion.fusion.madgwick import MadgwickFilter

# Earth field used throughout: 48 uT at 60 deg dip, reference frame z up.
FIELD_STRENGTH_UT = 48.0
FIELD_DIP_DEG = 60.0


def earth_field() -> Vector3:
    """Reference-frame magnetic field (north, 0, down component negative)."""
    dip = math.radians(FIELD_DIP_DEG)
    return Vector3(
        FIELD_STRENGTH_UT * math.cos(dip),
        0.0,
        -FIELD_STRENGTH_UT * math.sin(dip),
    )


def make_reading(seq: int, acc: Vector3, gyr: Vector3 = Vector3.zero(),
                 mag: Optional[Vector3] = None, dt: float = 1.0 / 256.0) -> ImuReading:
    """Build an ImuReading from vectors."""
    return ImuReading(
        seq=seq,
        timestamp=seq * dt,
        gx=gyr.x, gy=gyr.y, gz=gyr.z,
        ax=acc.x, ay=acc.y, az=acc.z,
        mx=None if mag is None else mag.x,
        my=None if mag is None else mag.y,
        mz=None if mag is None else mag.z,
    )


@pytest.fixture(autouse=True)
def debug_logging(caplog):
    """Capture library logs at DEBUG for every test."""
    caplog.set_level(logging.DEBUG, logger="ahrs_fusion")


@pytest.fixture
def config() -> Config:
    """Create default configuration for tests."""
    return Config()


@pytest.fixture
def default_filter() -> MadgwickFilter:
    """Madgwick filter with default parameters."""
    return MadgwickFilter.default()


@pytest.fixture
def field() -> Vector3:
    """Reference-frame earth magnetic field in uT."""
    return earth_field()


@pytest.fixture
def sample_imu_reading() -> ImuReading:
    """Stationary, level IMU reading with gravity reaction along +Z."""
    return make_reading(1, Vector3(0.0, 0.0, 9.81), mag=earth_field())


@pytest.fixture
def imu_only_reading() -> ImuReading:
    """Stationary, level IMU reading without a magnetometer sample."""
    return make_reading(1, Vector3(0.0, 0.0, 9.81))


@pytest.fixture
def invalid_reading_nan() -> ImuReading:
    """Create an IMU reading with NaN values."""
    return make_reading(1, Vector3(float("nan"), 0.0, 9.81), mag=earth_field())


@pytest.fixture
def invalid_reading_inf() -> ImuReading:
    """Create an IMU reading with Inf values."""
    return make_reading(1, Vector3(0.0, float("inf"), 9.81), mag=earth_field())


@pytest.fixture
def reading_out_of_range() -> ImuReading:
    """Create an IMU reading with out-of-range values."""
    return make_reading(1, Vector3(200.0, 0.0, 9.81), mag=earth_field())


@pytest.fixture
def identity_quaternion() -> Quaternion:
    """Create identity quaternion (no rotation)."""
    return Quaternion.identity()


@pytest.fixture
def sample_quaternion() -> Quaternion:
    """Approximately 30 degree rotation about Z axis."""
    return Quaternion.from_axis_angle(Vector3(0.0, 0.0, 1.0), np.deg2rad(30))


@pytest.fixture
def acc_samples() -> NDArray[np.float64]:
    """100 stationary, level accelerometer samples with Gaussian noise."""
    rng = np.random.default_rng(42)
    samples = np.zeros((100, 3))
    samples[:, 2] = 9.81
    return samples + rng.normal(0, 0.01, (100, 3))


@pytest.fixture
def mag_samples() -> NDArray[np.float64]:
    """100 stationary magnetometer samples of the earth field with noise."""
    rng = np.random.default_rng(43)
    samples = np.tile(earth_field().to_array(), (100, 1))
    return samples + rng.normal(0, 0.1, (100, 3))


@pytest.fixture
def reading_factory() -> Callable[..., ImuReading]:
    """Factory building ImuReading objects from Vector3 values."""
    return make_reading
