"""
tablekit runtime bootstrap.

Loads configuration and applies its logging section before any provider is
built from it.
"""

import logging
from typing import Any, Dict, Optional

from .config_manager import ConfigManager, TableKitConfig
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def initialize(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    config_manager: Optional[ConfigManager] = None
) -> TableKitConfig:
    """
    Load configuration and configure logging from it.

    Args:
        config_file: Path to a YAML or JSON configuration file
        overrides: Explicit overrides, highest precedence
        config_manager: Manager to load with; a new one by default

    Returns:
        The validated configuration

    Raises:
        ValidationError: If configuration is invalid
        FileNotFoundError: If the configuration file doesn't exist
    """
    manager = config_manager or ConfigManager()
    config = manager.load(config_file=config_file, overrides=overrides)

    configure_logging(config.logging)

    logger.info(f"tablekit v{config.version} initialized")
    return config
