"""
Configuration module for papergres.

This module provides:
- Pydantic configuration models
- YAML configuration loading
- Configuration validation
"""

from papergres.config.models import (
    PapergresConfig,
    ConnectionConfig,
    ExecutionConfig,
    LoggingConfig,
    SSLMode,
)
from papergres.config.loader import load_config
from papergres.config.validation import ConfigurationError, validate_config

__all__ = [
    "PapergresConfig",
    "ConnectionConfig",
    "ExecutionConfig",
    "LoggingConfig",
    "SSLMode",
    "load_config",
    "validate_config",
    "ConfigurationError",
]
