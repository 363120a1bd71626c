"""Tests for configuration loading and filter parameter validation."""

import math
import pytest

from ahrs_fusion.core.config import (
    CONFIG_ENV_VAR,
    Config,
    FilterConfig,
    MahonyConfig,
    horizontal_reference,
    load_config,
)
from ahrs_fusion.core.errors import InvalidInput
from ahrs_fusion.core.types import Vector3


class TestConfigurationLoading:
    """Tests for configuration loading."""

    def test_config_dataclass_defaults(self):
        """Config dataclass should have sensible defaults."""
        config = Config()

        assert config.filter.algorithm == "madgwick"
        assert config.filter.sample_period == pytest.approx(1.0 / 256.0)
        assert config.filter.beta == 0.1
        assert not config.filter.expose_internals
        assert config.filter.magnetic_reference == "per_sample"
        assert config.sensor.accelerometer.gravity_nominal == 9.81
        assert config.magnetometer.disturbance.field_magnitude_tolerance == 0.15
        assert config.validation.quaternion.divergence_threshold == 0.1
        assert config.validation.timing.period_tolerance == 0.5

    def test_packaged_default_matches_dataclasses(self, monkeypatch):
        """Packaged default.yaml mirrors the dataclass defaults."""
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert load_config() == Config()

    def test_load_overrides(self, tmp_path):
        """Values in a YAML file override defaults; missing keys keep them."""
        path = tmp_path / "ahrs.yaml"
        path.write_text(
            "filter:\n"
            "  algorithm: mahony\n"
            "  kp: 1.2\n"
            "magnetometer:\n"
            "  trust:\n"
            "    minimum: 0.3\n",
            encoding="utf-8",
        )

        config = load_config(str(path))

        assert config.filter.algorithm == "mahony"
        assert config.filter.kp == 1.2
        assert config.filter.beta == 0.1
        assert config.magnetometer.trust.minimum == 0.3
        assert config.magnetometer.trust.nominal == 1.0
        assert config.sensor == Config().sensor

    def test_unknown_keys_ignored(self, tmp_path):
        """Unrecognized sections and keys are skipped."""
        path = tmp_path / "ahrs.yaml"
        path.write_text(
            "web:\n  port: 5000\nfilter:\n  beta: 0.3\n  frame: NED\n",
            encoding="utf-8",
        )

        config = load_config(str(path))

        assert config.filter.beta == 0.3
        assert not hasattr(config, "web")

    def test_empty_file(self, tmp_path):
        """Empty YAML gives the default configuration."""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config(str(path)) == Config()

    def test_environment_variable(self, tmp_path, monkeypatch):
        """Config path falls back to the environment variable."""
        path = tmp_path / "env.yaml"
        path.write_text("filter:\n  sample_rate_hz: 100.0\n", encoding="utf-8")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        assert load_config().filter.sample_period == pytest.approx(0.01)

    def test_missing_file(self, tmp_path):
        """Explicit missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))


class TestFilterConfig:
    """Tests for validated filter parameters."""

    def test_validated_defaults(self):
        """Defaults pass validation unchanged."""
        assert FilterConfig.validated() == FilterConfig()
        assert MahonyConfig.validated() == MahonyConfig()

    def test_numeric_strings_coerced(self):
        """Numeric values from loose sources are coerced to float."""
        cfg = FilterConfig.validated(sample_period="0.01", beta=1)

        assert cfg.sample_period == 0.01
        assert isinstance(cfg.beta, float)

    @pytest.mark.parametrize("kwargs", [
        {"sample_period": "fast"},
        {"sample_period": None},
        {"beta": float("nan")},
        {"magnetic_reference": Vector3(float("nan"), 0.0, 0.0)},
    ])
    def test_rejected(self, kwargs):
        """Malformed parameters raise InvalidInput."""
        with pytest.raises(InvalidInput):
            FilterConfig.validated(**kwargs)

    def test_horizontal_reference(self):
        """Field direction is folded onto x and normalized."""
        ref = horizontal_reference(Vector3(0.0, -3.0, -4.0))

        assert ref.x == pytest.approx(0.6)
        assert ref.y == 0.0
        assert ref.z == pytest.approx(-0.8)
        assert math.isclose(ref.norm, 1.0)
