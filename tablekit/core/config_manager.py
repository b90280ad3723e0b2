"""
Configuration management for tablekit.

Handles loading, validation, and access to configuration settings.
"""

import os
import json
import logging
from pathlib import Path
from typing import Any, Dict, Literal, Optional
from enum import Enum

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator, ValidationError, ConfigDict

logger = logging.getLogger(__name__)


class LogLevel(str, Enum):
    """Valid log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: LogLevel = LogLevel.INFO
    format: str = "json"
    file: Optional[str] = None
    rotation_size: str = "10MB"
    rotation_count: int = 5
    module_levels: Optional[Dict[str, str]] = Field(
        default=None,
        description="Per-module log levels, e.g., {'tablekit.table.context': 'DEBUG'}"
    )


class StorageConfig(BaseModel):
    """Table context behaviour shared by every backend."""
    default_execute: Literal["individually", "in_batches", "atomically"] = Field(
        default="individually",
        description="Execution mode used by commit() when none is given"
    )
    throw_on_reserved_property_names: bool = Field(
        default=True,
        description="Reject records carrying PartitionKey/RowKey/Timestamp/ETag properties"
    )


class RetryConfig(BaseModel):
    """Retry policy for the remote table service adapter."""
    max_attempts: int = Field(default=4, ge=1)
    initial_backoff: float = Field(default=1.0, ge=0.0, description="Seconds")
    max_backoff: float = Field(default=5.0, ge=0.0, description="Seconds")
    backoff_multiplier: float = Field(default=2.0, ge=1.0)

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> "RetryConfig":
        """Initial backoff may not exceed the cap."""
        if self.initial_backoff > self.max_backoff:
            raise ValueError("initial_backoff must not exceed max_backoff")
        return self


class RemoteConfig(BaseModel):
    """Remote table service adapter configuration."""
    page_size: int = Field(default=1000, ge=1, le=1000)


class TableKitConfig(BaseModel):
    """Main tablekit configuration schema."""

    version: str = Field(default="0.1.0", description="Configuration version")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    storage: StorageConfig = Field(default_factory=StorageConfig)

    retry: RetryConfig = Field(default_factory=RetryConfig)

    remote: RemoteConfig = Field(default_factory=RemoteConfig)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Validate version format."""
        parts = v.split(".")
        if len(parts) != 3:
            raise ValueError("Version must be in format x.y.z")
        for part in parts:
            if not part.isdigit():
                raise ValueError("Version components must be numeric")
        return v

    model_config = ConfigDict(use_enum_values=True)


class ConfigManager:
    """
    Manages tablekit configuration loading and validation.

    Configuration precedence (highest to lowest):
    1. Explicit overrides
    2. Environment variables (TABLEKIT_*)
    3. Configuration file (YAML/JSON)
    4. Defaults
    """

    def __init__(self):
        self._config: Optional[TableKitConfig] = None
        self._config_file: Optional[Path] = None

    def load(
        self,
        config_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> TableKitConfig:
        """
        Load and validate configuration from multiple sources.

        Args:
            config_file: Path to configuration file (YAML or JSON)
            overrides: Dictionary of explicit overrides

        Returns:
            Validated TableKitConfig instance

        Raises:
            ValidationError: If configuration is invalid
            FileNotFoundError: If specified config file doesn't exist
        """
        logger.info("Loading tablekit configuration")

        config_dict: Dict[str, Any] = {}

        if config_file:
            config_dict = self._load_from_file(config_file)
            self._config_file = Path(config_file)
            logger.info(f"Loaded configuration from file: {config_file}")

        env_config = self._load_from_env()
        config_dict = self._merge_configs(config_dict, env_config)
        if env_config:
            logger.info(f"Applied {len(env_config)} environment variable overrides")

        if overrides:
            config_dict = self._merge_configs(config_dict, overrides)
            logger.info(f"Applied {len(overrides)} explicit overrides")

        try:
            self._config = TableKitConfig(**config_dict)
            logger.info("Configuration validated successfully")
            self._log_configuration()
            return self._config
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file."""
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(path, 'r') as f:
            if path.suffix in ['.yaml', '.yml']:
                return yaml.safe_load(f) or {}
            elif path.suffix == '.json':
                return json.load(f)
            else:
                raise ValueError(f"Unsupported config file format: {path.suffix}")

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}

        if log_level := os.getenv("TABLEKIT_LOG_LEVEL"):
            config.setdefault("logging", {})["level"] = log_level.upper()
        if log_file := os.getenv("TABLEKIT_LOG_FILE"):
            config.setdefault("logging", {})["file"] = log_file
        if log_format := os.getenv("TABLEKIT_LOG_FORMAT"):
            config.setdefault("logging", {})["format"] = log_format.lower()

        if default_execute := os.getenv("TABLEKIT_DEFAULT_EXECUTE"):
            config.setdefault("storage", {})["default_execute"] = default_execute.lower()
        if throw_on_reserved := os.getenv("TABLEKIT_THROW_ON_RESERVED"):
            config.setdefault("storage", {})["throw_on_reserved_property_names"] = (
                throw_on_reserved.lower() in ['true', '1', 'yes']
            )

        if max_attempts := os.getenv("TABLEKIT_RETRY_MAX_ATTEMPTS"):
            config.setdefault("retry", {})["max_attempts"] = int(max_attempts)

        if page_size := os.getenv("TABLEKIT_PAGE_SIZE"):
            config.setdefault("remote", {})["page_size"] = int(page_size)

        return config

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two configuration dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _log_configuration(self) -> None:
        """Log the loaded configuration."""
        if not self._config:
            return

        config_dict = self._config.model_dump()
        logger.info(f"Active configuration: {json.dumps(config_dict, indent=2)}")

    def get_config(self) -> TableKitConfig:
        """
        Get the loaded configuration.

        Raises:
            RuntimeError: If configuration hasn't been loaded
        """
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() first.")
        return self._config

    def reload(self) -> TableKitConfig:
        """Reload configuration from the same sources."""
        config_file = str(self._config_file) if self._config_file else None
        return self.load(config_file=config_file)
