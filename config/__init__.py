"""Configuration loading and validation for the locale engine.

This package provides utilities for loading, parsing, and validating configuration
settings from the locale_engine.ini file.
"""

from config.loader import (
    Config,
    ConfigFileNotFoundError,
    ConfigFormatError,
    ConfigLoader,
    ConfigLoaderError,
    ConfigTypeError,
    ConfigValueError,
)

__all__: list[str] = [
    "Config",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]
