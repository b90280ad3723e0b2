"""Core module initialization."""

from .config_manager import ConfigManager, TableKitConfig
from .logging_config import configure_logging, correlation_scope, setup_logging
from .runtime import initialize

__all__ = [
    "ConfigManager",
    "TableKitConfig",
    "configure_logging",
    "correlation_scope",
    "initialize",
    "setup_logging",
]
