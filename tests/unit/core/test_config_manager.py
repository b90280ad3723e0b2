"""
Tests for ConfigManager.
"""

import os
import json
import tempfile

import pytest
import yaml
from pydantic import ValidationError

from tablekit.core.config_manager import (
    ConfigManager,
    TableKitConfig,
    LogLevel,
    RetryConfig,
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove TABLEKIT_* variables for the duration of a test."""
    for name in list(os.environ):
        if name.startswith("TABLEKIT_"):
            monkeypatch.delenv(name)
    return monkeypatch


class TestConfigManager:
    """Test suite for ConfigManager."""

    def test_load_defaults(self, clean_env):
        """Test loading default configuration."""
        manager = ConfigManager()
        config = manager.load()

        assert config.version == "0.1.0"
        assert config.logging.level == LogLevel.INFO
        assert config.storage.default_execute == "individually"
        assert config.storage.throw_on_reserved_property_names is True
        assert config.retry.max_attempts == 4
        assert config.retry.initial_backoff == 1.0
        assert config.retry.max_backoff == 5.0
        assert config.retry.backoff_multiplier == 2.0
        assert config.remote.page_size == 1000

    def test_load_from_yaml_file(self, clean_env):
        """Test loading configuration from YAML file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.dump({
                "version": "1.0.0",
                "storage": {"default_execute": "in_batches"},
                "logging": {"level": "DEBUG"},
            }, f)
            config_file = f.name

        try:
            config = ConfigManager().load(config_file=config_file)

            assert config.version == "1.0.0"
            assert config.storage.default_execute == "in_batches"
            assert config.logging.level == LogLevel.DEBUG
        finally:
            os.unlink(config_file)

    def test_load_from_json_file(self, clean_env):
        """Test loading configuration from JSON file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
            json.dump({"remote": {"page_size": 250}}, f)
            config_file = f.name

        try:
            config = ConfigManager().load(config_file=config_file)
            assert config.remote.page_size == 250
        finally:
            os.unlink(config_file)

    def test_load_from_env_variables(self, clean_env):
        """Test loading configuration from environment variables."""
        clean_env.setenv("TABLEKIT_LOG_LEVEL", "warning")
        clean_env.setenv("TABLEKIT_DEFAULT_EXECUTE", "ATOMICALLY")
        clean_env.setenv("TABLEKIT_THROW_ON_RESERVED", "false")
        clean_env.setenv("TABLEKIT_RETRY_MAX_ATTEMPTS", "7")
        clean_env.setenv("TABLEKIT_PAGE_SIZE", "10")

        config = ConfigManager().load()

        assert config.logging.level == LogLevel.WARNING
        assert config.storage.default_execute == "atomically"
        assert config.storage.throw_on_reserved_property_names is False
        assert config.retry.max_attempts == 7
        assert config.remote.page_size == 10

    def test_configuration_precedence(self, clean_env):
        """Test configuration precedence: overrides > ENV > FILE > DEFAULTS."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.dump({
                "storage": {"default_execute": "in_batches"},
                "remote": {"page_size": 100},
                "retry": {"max_attempts": 2},
            }, f)
            config_file = f.name

        clean_env.setenv("TABLEKIT_PAGE_SIZE", "200")
        clean_env.setenv("TABLEKIT_RETRY_MAX_ATTEMPTS", "3")

        try:
            config = ConfigManager().load(
                config_file=config_file,
                overrides={"retry": {"max_attempts": 9}}
            )

            assert config.retry.max_attempts == 9
            assert config.remote.page_size == 200
            assert config.storage.default_execute == "in_batches"
            # untouched defaults survive the deep merge
            assert config.retry.initial_backoff == 1.0
        finally:
            os.unlink(config_file)

    def test_invalid_execute_mode(self, clean_env):
        """Test that an unknown execute mode fails validation."""
        with pytest.raises(ValidationError):
            ConfigManager().load(overrides={"storage": {"default_execute": "sometimes"}})

    def test_invalid_version_format(self, clean_env):
        """Test that invalid version format raises validation error."""
        with pytest.raises(ValidationError) as exc_info:
            ConfigManager().load(overrides={"version": "1.0"})

        assert "Version must be in format x.y.z" in str(exc_info.value)

    def test_file_not_found(self, clean_env):
        """Test that missing config file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            ConfigManager().load(config_file="/nonexistent/config.yaml")

    def test_unsupported_file_format(self, clean_env, tmp_path):
        """Test that unsupported file format raises ValueError."""
        config_file = tmp_path / "config.txt"
        config_file.write_text("invalid config")

        with pytest.raises(ValueError) as exc_info:
            ConfigManager().load(config_file=str(config_file))

        assert "Unsupported config file format" in str(exc_info.value)

    def test_get_config_before_load(self):
        """Test that getting config before loading raises RuntimeError."""
        with pytest.raises(RuntimeError) as exc_info:
            ConfigManager().get_config()

        assert "Configuration not loaded" in str(exc_info.value)

    def test_get_config_after_load(self, clean_env):
        """Test getting config after loading."""
        manager = ConfigManager()
        config1 = manager.load()

        assert manager.get_config() is config1

    def test_reload_configuration(self, clean_env, tmp_path):
        """Test reloading configuration."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"remote": {"page_size": 50}}))

        manager = ConfigManager()
        assert manager.load(config_file=str(config_file)).remote.page_size == 50

        config_file.write_text(yaml.dump({"remote": {"page_size": 60}}))
        assert manager.reload().remote.page_size == 60


class TestRetryConfig:
    """Test suite for RetryConfig model."""

    def test_backoff_bounds(self):
        """Test that initial backoff may not exceed the cap."""
        with pytest.raises(ValidationError):
            RetryConfig(initial_backoff=10.0, max_backoff=5.0)

    def test_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            RetryConfig(max_attempts=0)

    def test_default_config(self):
        """Test default configuration values."""
        config = TableKitConfig()

        assert config.retry == RetryConfig()
        assert config.logging.format == "json"
