"""Unit tests for configuration loading."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from zero_downtime.config import CONFIG_ENV_VAR, ZeroDowntimeConfig, load_config


@pytest.fixture
def config_file(temp_dir):
    path = temp_dir / "config.yaml"
    path.write_text(yaml.safe_dump({
        "state_file": str(temp_dir / "state.json"),
        "validation_timeout_sec": 5,
        "reboot_delay_sec": 0,
        "expected_components": ["my_app"],
        "fwup": {"task": "upgrade.{target}"},
    }))
    return path


@pytest.mark.unit
class TestConfig:
    """Test configuration defaults and loading."""

    def test_defaults(self):
        """Test default values."""
        config = ZeroDowntimeConfig()

        assert config.state_file == Path("/data/zero_downtime/state.json")
        assert config.validation_timeout_sec == 30.0
        assert config.reboot_delay_sec == 1.0
        assert config.marker_subpath == "srv/app/HOT_SWAP"
        assert config.device_map["/dev/vda5"] == "c"
        assert config.fwup.executable == "fwup"

    def test_validation(self):
        """Test out-of-range values are rejected."""
        with pytest.raises(ValidationError):
            ZeroDowntimeConfig(validation_timeout_sec=0)

    def test_load_explicit_path(self, config_file, temp_dir):
        """Test loading an explicit file."""
        config = load_config(str(config_file))

        assert config.state_file == temp_dir / "state.json"
        assert config.validation_timeout_sec == 5
        assert config.expected_components == ["my_app"]
        assert config.fwup.task == "upgrade.{target}"
        assert config.min_free_space_mb == 100

    def test_load_from_env(self, config_file, monkeypatch):
        """Test the config path environment variable."""
        monkeypatch.setenv(CONFIG_ENV_VAR, str(config_file))

        assert load_config().reboot_delay_sec == 0

    def test_missing_file_uses_defaults(self, temp_dir):
        """Test a missing file gives defaults."""
        assert load_config(str(temp_dir / "missing.yaml")) == ZeroDowntimeConfig()

    def test_invalid_file_uses_defaults(self, temp_dir):
        """Test an invalid file gives defaults."""
        path = temp_dir / "bad.yaml"
        path.write_text("validation_timeout_sec: -1\n")

        assert load_config(str(path)) == ZeroDowntimeConfig()

    def test_empty_file(self, temp_dir):
        """Test an empty file gives defaults."""
        path = temp_dir / "empty.yaml"
        path.write_text("")

        assert load_config(str(path)) == ZeroDowntimeConfig()
