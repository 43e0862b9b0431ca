"""
Tests for soft-deletable configuration.
"""

import json

import pytest
from pydantic import ValidationError

from soft_deletable.config import SoftDeleteConfig, configure, get_config, set_config


class TestSoftDeleteConfig:
    """Test the configuration model."""

    def test_defaults(self):
        """Test default settings."""
        config = SoftDeleteConfig()
        assert config.enabled is True
        assert config.default_field == "deleted"
        assert config.read_option_name == "is_deleted"
        assert config.cascade_delete is True
        assert config.cascade_restore is True
        assert config.unlink_on_delete is True
        assert config.timezone == "UTC"
        assert config.database_url is None

    def test_invalid_identifier(self):
        """Test option and field names must be identifiers."""
        with pytest.raises(ValidationError):
            SoftDeleteConfig(read_option_name="is-deleted")
        with pytest.raises(ValidationError):
            SoftDeleteConfig(default_field="deleted at")

    def test_invalid_timezone(self):
        """Test unknown timezones are rejected."""
        with pytest.raises(ValidationError):
            SoftDeleteConfig(timezone="Mars/Olympus")

    def test_tzinfo(self):
        """Test the timezone object."""
        assert SoftDeleteConfig(timezone="Europe/Berlin").tzinfo.zone == "Europe/Berlin"

    def test_from_env(self, monkeypatch):
        """Test loading from environment variables."""
        monkeypatch.setenv("SOFT_DELETE_ENABLED", "false")
        monkeypatch.setenv("SOFT_DELETE_READ_OPTION_NAME", "with_deleted")
        monkeypatch.setenv("SOFT_DELETE_DATABASE_URL", "sqlite://")

        config = SoftDeleteConfig.from_env()
        assert config.enabled is False
        assert config.read_option_name == "with_deleted"
        assert config.database_url == "sqlite://"

    def test_from_json_file(self, tmp_path):
        """Test loading from a JSON file."""
        path = tmp_path / "soft_delete.json"
        path.write_text(json.dumps({"cascade_restore": False}))

        assert SoftDeleteConfig.from_file(path).cascade_restore is False

    def test_from_yaml_file(self, tmp_path):
        """Test loading from a YAML file."""
        path = tmp_path / "soft_delete.yaml"
        path.write_text("default_field: deleted_at\nunlink_on_delete: false\n")

        config = SoftDeleteConfig.from_file(path)
        assert config.default_field == "deleted_at"
        assert config.unlink_on_delete is False

    def test_empty_yaml_file(self, tmp_path):
        """Test an empty file yields defaults."""
        path = tmp_path / "empty.yml"
        path.write_text("")

        assert SoftDeleteConfig.from_file(path) == SoftDeleteConfig()


class TestGlobalConfig:
    """Test the global configuration helpers."""

    def test_get_config_loads_environment(self, monkeypatch):
        """Test the global configuration is loaded lazily."""
        monkeypatch.setenv("SOFT_DELETE_TIMEZONE", "Asia/Tokyo")
        set_config(None)
        assert get_config().timezone == "Asia/Tokyo"

    def test_configure_merges(self):
        """Test configure keeps earlier settings."""
        configure(cascade_delete=False)
        config = configure(timezone="Europe/Paris")

        assert config.cascade_delete is False
        assert config.timezone == "Europe/Paris"
        assert get_config() is config

    def test_set_config(self):
        """Test replacing the global configuration."""
        config = SoftDeleteConfig(enabled=False)
        set_config(config)
        assert get_config() is config
