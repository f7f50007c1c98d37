"""Configuration file loader and validator.

Handles reading, formatting, and validating settings from the INI configuration file.
Raises exceptions for any issues encountered during loading.
"""

from __future__ import annotations

import ast
import configparser
from configparser import ConfigParser
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

from models.config_models import Config
from models.locale_models import Locale
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable
    from dataclasses import Field as DataclassField
else:
    from dataclasses import Field as DataclassField

__all__: list[str] = [
    "Config",
    "ConfigFileNotFoundError",
    "ConfigFormatError",
    "ConfigLoader",
    "ConfigLoaderError",
    "ConfigTypeError",
    "ConfigValueError",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

ALLOWED_STORAGE_BACKENDS: Final[list[str]] = ["sqlite", "memory", "none"]

_WEIGHT_KEYS: Final[list[str]] = [
    "USER_OVERRIDE_WEIGHT",
    "STORED_WEIGHT",
    "GEO_WEIGHT",
    "BROWSER_WEIGHT",
    "TIMEZONE_WEIGHT",
    "DEFAULT_WEIGHT",
    "IP_WEIGHT_FACTOR",
    "CONSISTENCY_BONUS",
    "MIN_CONSISTENCY_BONUS",
    "DISAGREEMENT_PENALTY",
]


class ConfigLoaderError(Exception):
    """An error occurred while processing the configuration file."""


class ConfigFileNotFoundError(ConfigLoaderError):
    """The specified configuration file does not exist."""


class ConfigFormatError(ConfigLoaderError):
    """The configuration file is not formatted correctly."""


class ConfigValueError(ConfigFormatError):
    """The configuration file contains an invalid value."""


class ConfigTypeError(ConfigFormatError):
    """The configuration file contains an invalid type."""


class ConfigLoader:
    """Handles loading and validation of configuration settings.

    This class reads the configuration file, applies formatting rules, and validates settings.
    Keys missing from the file keep their dataclass defaults.

    Args:
        config_filename (str): INI file name to load.
        script_name (str): Executing script name, used in error messaging.
        debug (bool | None): Optional override enabling debug logging.
        default_locale (str | None): Optional override for ``LOCALE.DEFAULT_LOCALE``.

    Raises:
        ConfigFileNotFoundError: If the configuration file does not exist.
        ConfigFormatError: If the file cannot be parsed or contains invalid values/types.
    """

    def __init__(
        self,
        *,
        config_filename: str,
        script_name: str,
        **args,
    ) -> None:
        config_path = Path(config_filename)
        msg: str
        if not config_path.exists():
            msg = (
                f"Configuration file '{config_filename}' not found. "
                f"Please create '{config_filename}' in the same directory as '{script_name}'."
            )
            raise ConfigFileNotFoundError(msg)

        parser: ConfigParser = ConfigParser()

        try:
            parser.read(config_filename, encoding="utf-8")
        except configparser.Error as err:
            msg = f"Failed to parse configuration file '{config_filename}': {err}"
            raise ConfigFormatError(msg) from None

        self.config = Config()
        self.config.GENERAL.SCRIPT_NAME = script_name
        self._convert_settings(parser)
        # Apply command-line argument overrides
        if args.get("debug", False):
            self.config.GENERAL.DEBUG = True
        if args.get("default_locale") is not None:
            self.config.LOCALE.DEFAULT_LOCALE = args["default_locale"]
        self._validate_settings()

    def _convert_settings(self, parser: ConfigParser) -> None:
        """Convert every known section of the parser into the Config object.

        Args:
            parser (ConfigParser): Parsed INI data.

        Raises:
            ConfigFormatError: If a value cannot be parsed or coerced to the expected type.
        """
        formatter = _ConfigFormatter(self.config, parser)
        for section in fields(self.config):
            if not parser.has_section(section.name):
                logger.debug("Section '%s' not defined; using defaults", section.name)
                continue
            self._convert_section_field(parser, formatter, section)

        known: set[str] = {section.name for section in fields(self.config)}
        for section_name in parser.sections():
            if section_name not in known:
                logger.warning("Unknown configuration section '%s' ignored", section_name)

    def _convert_section_field(
        self, parser: ConfigParser, formatter: _ConfigFormatter, section: DataclassField[Any]
    ) -> None:
        """Convert all fields in a configuration section.

        Args:
            parser (ConfigParser): Parsed INI data.
            formatter (_ConfigFormatter): Formatter used to coerce string values to typed values.
            section (Field[Any]): Target configuration section dataclass field.

        Raises:
            ConfigFormatError: If a value fails to format correctly.
        """
        for key in fields(getattr(self.config, section.name)):
            if not parser.has_option(section.name, key.name):
                logger.debug("Skipping undefined setting: '%s.%s'", section.name, key.name)
                continue

            formatted_value = formatter.apply_format(section, key)
            setattr(getattr(self.config, section.name), key.name, formatted_value)

    def _validate_settings(self) -> None:
        """Validate cross-field constraints.

        Raises:
            ConfigFormatError: If validation fails for any setting.
        """
        try:
            self._validate_default_locale()
            self._inspect_defined_item("STORAGE", "BACKEND", ALLOWED_STORAGE_BACKENDS)
            self._validate_weights()
            self._validate_timeouts()
            self._validate_positive("STORAGE", ["MAX_HISTORY_ENTRIES", "MAX_BACKUPS", "DETECTION_RETENTION_DAYS"])
            self._validate_positive("CACHE", ["MAX_SIZE", "TTL", "PERSISTED_TTL", "LOAD_TIMEOUT"])
            self._validate_preload_locales()
        except ConfigFormatError:
            raise
        except (AttributeError, TypeError, ValueError) as err:
            msg: str = f"Invalid configuration value: {err}"
            raise ConfigFormatError(msg) from None

    def _validate_default_locale(self) -> None:
        value: str = self.config.LOCALE.DEFAULT_LOCALE
        locale: Locale | None = Locale.parse(value)
        if locale is None:
            msg: str = f"'LOCALE.DEFAULT_LOCALE' must be one of {[loc.value for loc in Locale]}: '{value}'"
            raise ConfigValueError(msg)
        self.config.LOCALE.DEFAULT_LOCALE = locale.value

    def _inspect_defined_item(self, section_name: str, key_name: str, defined_list: list[str]) -> None:
        """Verify that a configuration value is one of the allowed options.

        Args:
            section_name (str): Section name in the config model.
            key_name (str): Field name to inspect.
            defined_list (list[str]): Allowed values.

        Raises:
            ConfigTypeError: If the configured value is not a string.
            ConfigValueError: If the value is not allowed.
        """
        value: Any = getattr(getattr(self.config, section_name), key_name)
        field_name: str = f"{section_name}.{key_name}"

        if not isinstance(value, str):
            msg: str = f"Unsupported type used for '{field_name}': {type(value)}"
            raise ConfigTypeError(msg)
        if value.lower() not in defined_list:
            msg = f"Unknown value '{value}' is set for '{field_name}'; expected one of {defined_list}"
            raise ConfigValueError(msg)
        setattr(getattr(self.config, section_name), key_name, value.lower())

    def _validate_weights(self) -> None:
        for key_name in _WEIGHT_KEYS:
            value: float = getattr(self.config.DETECTION, key_name)
            if not 0.0 <= value <= 1.0:
                msg: str = f"'DETECTION.{key_name}' must lie in [0, 1]: {value}"
                raise ConfigValueError(msg)
        if self.config.DETECTION.MIN_CONSISTENCY_BONUS <= 0.0:
            msg = "'DETECTION.MIN_CONSISTENCY_BONUS' must be greater than 0"
            raise ConfigValueError(msg)

    def _validate_timeouts(self) -> None:
        detection = self.config.DETECTION
        if min(detection.NETWORK_TIMEOUT, detection.GEOLOCATION_TIMEOUT, detection.DETECTION_TIMEOUT) <= 0:
            msg: str = "Detection timeouts must be positive"
            raise ConfigValueError(msg)
        if not detection.NETWORK_TIMEOUT <= detection.GEOLOCATION_TIMEOUT <= detection.DETECTION_TIMEOUT:
            msg = "Timeouts must satisfy NETWORK_TIMEOUT <= GEOLOCATION_TIMEOUT <= DETECTION_TIMEOUT"
            raise ConfigValueError(msg)

    def _validate_positive(self, section_name: str, key_names: list[str]) -> None:
        for key_name in key_names:
            value: float = getattr(getattr(self.config, section_name), key_name)
            if value <= 0:
                msg: str = f"'{section_name}.{key_name}' must be positive: {value}"
                raise ConfigValueError(msg)

    def _validate_preload_locales(self) -> None:
        unknown: list[str] = [code for code in self.config.CACHE.PRELOAD_LOCALES if Locale.parse(code) is None]
        for code in unknown:
            logger.warning("Unknown locale '%s' in 'CACHE.PRELOAD_LOCALES' ignored", code)
        self.config.CACHE.PRELOAD_LOCALES = [
            code.lower() for code in self.config.CACHE.PRELOAD_LOCALES if code not in unknown
        ]


class _ConfigFormatter:
    """Converts INI string values to typed Python objects (bool, int, float, list, dict)."""

    def __init__(self, config: Config, parser: ConfigParser) -> None:
        self.config: Config = config
        self.parser: ConfigParser = parser

    def apply_format(self, section: DataclassField[Any], key: DataclassField[Any]) -> Any:
        """Convert INI value to the expected Python type based on the Config field default.

        Args:
            section (DataclassField[Any]): Configuration section field containing the key.
            key (DataclassField[Any]): Target field within the section.

        Returns:
            Any: Parsed value coerced to the type declared in the config dataclass.

        Raises:
            ConfigValueError: If a value cannot be coerced to the expected type.
            ConfigFormatError: If literal evaluation fails due to invalid syntax.
            ConfigTypeError: If an unexpected type is encountered during coercion.
        """
        formatters: dict[
            type[bool | int | float], Callable[[DataclassField[Any], DataclassField[Any]], bool | int | float]
        ] = {
            bool: self.parse_as_boolean,
            int: self.parse_as_integer,
            float: self.parse_as_float,
        }

        default: Any = getattr(getattr(self.config, section.name), key.name)
        formatter: Callable[[DataclassField[Any], DataclassField[Any]], bool | int | float] | None = formatters.get(
            type(default)
        )
        if formatter:
            try:
                return formatter(section, key)
            except ValueError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigValueError(msg) from err
            except TypeError as err:
                msg = f"Invalid value for {section.name}.{key.name}: {err}"
                raise ConfigTypeError(msg) from err

        value_str: str = self.parser[section.name][key.name]
        try:
            value: Any = ast.literal_eval(value_str)
        except ValueError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigValueError(msg) from err
        except SyntaxError as err:
            msg = f"Invalid literal for {section.name}.{key.name}: {value_str}"
            raise ConfigFormatError(msg) from err

        if not isinstance(value, type(default)):
            msg = f"Expected {type(default).__name__} for {section.name}.{key.name}, got {type(value).__name__}"
            raise ConfigTypeError(msg)
        return value

    def parse_as_float(self, section: DataclassField[Any], key: DataclassField[Any]) -> float:
        """Convert INI string to float."""
        value: str = self.parser.get(section.name, key.name)
        for char in ("'", '"'):
            value = value.removeprefix(char).removesuffix(char)
        return float(value)

    def parse_as_integer(self, section: DataclassField[Any], key: DataclassField[Any]) -> int:
        """Convert INI string to integer."""
        value: str = self.parser.get(section.name, key.name)
        for char in ("'", '"'):
            value = value.removeprefix(char).removesuffix(char)
        return int(float(value))

    def parse_as_boolean(self, section: DataclassField[Any], key: DataclassField[Any]) -> bool:
        """Convert INI string to boolean."""
        return self.parser.getboolean(section.name, key.name)
