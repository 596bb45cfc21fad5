"""Configuration management for the AWS toolkit.

This module exports the main Settings class and configuration utilities.
"""

from aws_toolkit.config.settings import (
    ConfigurationError,
    Settings,
    get_settings,
    load_properties,
)

__all__ = ["ConfigurationError", "Settings", "get_settings", "load_properties"]
