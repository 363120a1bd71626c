"""Tests for sensor data validation."""

import math
import pytest

from ahrs_fusion.core.errors import InvalidInput
from ahrs_fusion.core.types import ImuReading, Quaternion, Vector3
from ahrs_fusion.core.validation import SensorValidator, QuaternionValidator, check_finite

LEVEL = Vector3(0.0, 0.0, 9.81)


@pytest.fixture
def validator(config) -> SensorValidator:
    return SensorValidator(config)


class TestCheckFinite:
    """Tests for check_finite helper."""

    def test_finite_vector_returned(self):
        """Finite vectors pass through unchanged."""
        v = Vector3(1.0, 2.0, 3.0)
        assert check_finite("gyroscope", v) is v

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_raises(self, bad):
        """Any non-finite component is rejected with the input name."""
        with pytest.raises(InvalidInput, match="accelerometer"):
            check_finite("accelerometer", Vector3(0.0, bad, 1.0))


class TestSensorValidator:
    """Tests for SensorValidator class."""

    def test_valid_reading_passes(self, validator, sample_imu_reading):
        """Level, stationary reading with a normal field is clean."""
        result = validator.validate_reading(sample_imu_reading)

        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_reading_without_mag_passes(self, validator, imu_only_reading):
        """Missing magnetometer sample is neither an error nor a warning."""
        result = validator.validate_reading(imu_only_reading)

        assert result.is_valid
        assert not imu_only_reading.has_mag
        assert result.warnings == []

    @pytest.mark.parametrize("fixture_name, message", [
        ("invalid_reading_nan", "Non-finite value for ax"),
        ("invalid_reading_inf", "Non-finite value for ay"),
        ("reading_out_of_range", "ax out of range"),
    ])
    def test_rejected_readings(self, request, validator, fixture_name, message):
        """Non-finite and out-of-range axes are hard errors."""
        result = validator.validate_reading(request.getfixturevalue(fixture_name))

        assert not result.is_valid
        assert any(message in e for e in result.errors)

    def test_non_finite_timestamp(self, validator):
        """A NaN timestamp is an error and is not remembered."""
        reading = ImuReading(seq=1, timestamp=math.nan, gx=0.0, gy=0.0, gz=0.0,
                             ax=0.0, ay=0.0, az=9.81)

        assert not validator.validate_reading(reading).is_valid

    @pytest.mark.parametrize("acc, gyr, message", [
        (Vector3.zero(), Vector3.zero(), "Accelerometer reading is zero"),
        (LEVEL, Vector3(100.0, 0.0, 0.0), "gx out of range"),
        (LEVEL, Vector3(0.0, 0.0, -40.0), "gz out of range"),
    ])
    def test_unusable_motion_readings(self, validator, reading_factory, field,
                                      acc, gyr, message):
        """Zero gravity or gyro beyond the sensor range is rejected."""
        result = validator.validate_reading(reading_factory(1, acc, gyr=gyr, mag=field))

        assert not result.is_valid
        assert any(message in e for e in result.errors)

    @pytest.mark.parametrize("acc, mag, message", [
        (LEVEL, Vector3(1.0, 1.0, 1.0), "too weak"),
        (LEVEL, Vector3(100.0, 100.0, 100.0), "too strong"),
        (Vector3(0.0, 3.0, 12.0), Vector3(24.0, 0.0, -41.57), "Acceleration magnitude"),
    ])
    def test_soft_warnings(self, validator, reading_factory, acc, mag, message):
        """Implausible but usable magnitudes only warn."""
        result = validator.validate_reading(reading_factory(1, acc, mag=mag))

        assert result.is_valid
        assert any(message in w for w in result.warnings)

    def test_mag_axis_out_of_range(self, validator, reading_factory):
        """Field axis beyond the magnetometer range is an error."""
        result = validator.validate_reading(
            reading_factory(1, LEVEL, mag=Vector3(0.0, 5000.0, 0.0))
        )

        assert not result.is_valid
        assert any("my out of range" in e for e in result.errors)

    def test_sequence_gap_detection(self, validator, reading_factory, field):
        """Dropped samples are reported with the gap size."""
        validator.validate_reading(reading_factory(10, LEVEL, mag=field))
        result = validator.validate_reading(reading_factory(15, LEVEL, mag=field))

        assert result.is_valid
        assert any("gap: 5" in w for w in result.warnings)

    def test_sequence_wraps(self, validator):
        """Sequence numbers wrap at 2**32 without a gap warning."""
        first = ImuReading(seq=2**32 - 1, timestamp=1.0, gx=0.0, gy=0.0, gz=0.0,
                           ax=0.0, ay=0.0, az=9.81)
        second = ImuReading(seq=0, timestamp=1.0 + 1.0 / 256.0, gx=0.0, gy=0.0, gz=0.0,
                            ax=0.0, ay=0.0, az=9.81)

        validator.validate_reading(first)
        result = validator.validate_reading(second)

        assert result.is_valid
        assert result.warnings == []

    def test_non_monotonic_timestamp(self, validator, reading_factory, field):
        """Time running backwards is an error."""
        validator.validate_reading(reading_factory(2, LEVEL, mag=field))
        result = validator.validate_reading(reading_factory(3, LEVEL, mag=field, dt=-1.0))

        assert not result.is_valid
        assert any("Non-monotonic" in e for e in result.errors)

    def test_sample_interval_jitter_warning(self, validator, reading_factory, field):
        """Intervals far from the filter period are flagged but accepted."""
        validator.validate_reading(reading_factory(1, LEVEL, mag=field, dt=1.0 / 256.0))
        steady = validator.validate_reading(reading_factory(2, LEVEL, mag=field, dt=1.0 / 256.0))
        slow = validator.validate_reading(reading_factory(3, LEVEL, mag=field, dt=1.0 / 64.0))

        assert not any("filter period" in w for w in steady.warnings)
        assert slow.is_valid
        assert any("filter period" in w for w in slow.warnings)

    def test_reset_clears_state(self, validator, sample_imu_reading, reading_factory, field):
        """After reset the next reading starts a fresh stream."""
        validator.validate_reading(sample_imu_reading)
        validator.reset()

        result = validator.validate_reading(reading_factory(100, LEVEL, mag=field))

        assert result.is_valid
        assert result.warnings == []


class TestQuaternionValidator:
    """Tests for QuaternionValidator class."""

    @pytest.mark.parametrize("w, valid, errors, warnings", [
        (1.0, True, [], []),
        (0.95, True, [], ["drift"]),
        (0.5, False, ["diverged"], []),
        (float("nan"), False, ["non-finite"], []),
    ])
    def test_validate(self, config, w, valid, errors, warnings):
        """Norm error below tolerance passes, above it warns, then fails."""
        result = QuaternionValidator(config).validate(Quaternion(w=w, x=0.0, y=0.0, z=0.0))

        assert result.is_valid is valid
        assert len(result.errors) == len(errors)
        assert len(result.warnings) == len(warnings)
        for fragment, message in zip(errors + warnings, result.errors + result.warnings):
            assert fragment in message

    def test_is_diverged(self, config):
        """is_diverged flags large norm error and non-finite components."""
        validator = QuaternionValidator(config)

        assert not validator.is_diverged(Quaternion.identity())
        assert validator.is_diverged(Quaternion(w=0.5, x=0.0, y=0.0, z=0.0))
        assert validator.is_diverged(Quaternion(w=float("inf"), x=0.0, y=0.0, z=0.0))
