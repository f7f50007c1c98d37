"""Logging setup for the locale engine.

A single namespace logger (``LocaleEngine``) is configured once per process with a terse console handler and an
optional rotating debug log file. Modules obtain child loggers through :meth:`LoggerUtils.get_logger`.
"""

from __future__ import annotations

import logging
import sys
import warnings
from logging import Formatter, NullHandler, StreamHandler
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, ClassVar, Final, Literal, NamedTuple, Self, TextIO

if TYPE_CHECKING:
    from pathlib import Path

__all__: list[str] = ["LogLevel", "LoggerUtils"]

type LevelType = Literal[
    "NOTSET",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
    "CRITICAL",
]

_LOG_FILE_SIZE: Final[int] = 2 * 1024 * 1024  # 2MB
_LOG_BACKUP_COUNT: Final[int] = 2

DEFAULT_LOG_LEVEL: Final[int] = logging.INFO
DEFAULT_NAMESPACE: Final[str] = "LocaleEngine"

_FILE_FORMAT: Final[str] = "%(asctime)s %(levelname)-8s %(lineno)4d %(name)-44s\t%(funcName)s\t%(message)s"


class LogLevel(NamedTuple):
    """Logging level as a (name, value) pair."""

    name: str
    value: int


class LoggerUtils:
    """Process-wide logging configuration.

    The first instantiation attaches the handlers; later instantiations return the same object and leave the
    handlers untouched.

    Attributes:
        _LOGGER_NAMESPACE (str): Prefix applied to every logger handed out by :meth:`get_logger`.
        _configured (bool): Whether handlers have already been attached.
        _instance (LoggerUtils | None): The singleton instance.
    """

    _LOGGER_NAMESPACE: ClassVar[str] = DEFAULT_NAMESPACE
    _configured: ClassVar[bool] = False
    _instance: ClassVar[Self | None] = None

    def __new__(cls, *args, **kwargs) -> Self:
        _ = args, kwargs
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, filename: str | Path = "", *, use_null_console: bool = False) -> None:
        """Attach console and file handlers to the namespace logger.

        Args:
            filename (str | Path): Absolute path of the debug log file. Empty disables file logging.
            use_null_console (bool): Attach a NullHandler instead of a stderr handler.
        """
        if LoggerUtils._configured:
            return

        self.root_logger: logging.Logger = logging.getLogger(self._LOGGER_NAMESPACE)
        self._use_null_console: bool = bool(use_null_console) or sys.stderr is None
        self.root_logger.setLevel(DEFAULT_LOG_LEVEL)

        self._console_logging()
        filename = str(filename)
        if filename.strip():
            self._file_logging(filename)
        else:
            self.root_logger.debug("No log file configured; file logging disabled.")

        warnings.showwarning = self.warning_to_log
        LoggerUtils._configured = True

    def warning_to_log(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        file: TextIO | None = None,
        line: str | None = None,
    ) -> None:
        """Route ``warnings.warn`` output to the namespace logger (``warnings.showwarning`` signature)."""
        _ = file, line
        self.root_logger.warning("%s:%d: %s: %s", filename, lineno, category.__name__, message)

    @classmethod
    def initialize(cls, namespace: str) -> None:
        """Change the logger namespace before the handlers are configured.

        Args:
            namespace (str): New namespace prefix.

        Raises:
            RuntimeError: If the handlers have already been configured.
        """
        if cls._configured:
            msg = "LoggerUtils is already configured. Reinitialization is not allowed."
            raise RuntimeError(msg)

        cls._LOGGER_NAMESPACE = namespace

    def _console_logging(self) -> None:
        if self._has_handler(NullHandler) or self._has_handler(StreamHandler, exact=True):
            self.root_logger.warning("Console logging is already configured.")
            return

        if self._use_null_console:
            self.root_logger.addHandler(NullHandler())
            return

        console_handler: StreamHandler[TextIO] = StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(Formatter("%(levelname)s: %(message)s"))
        self.root_logger.addHandler(console_handler)

    def _file_logging(self, filename: str) -> None:
        if self._has_handler(RotatingFileHandler):
            self.root_logger.warning("File logging is already configured.")
            return

        try:
            file_handler = RotatingFileHandler(
                filename=filename,
                maxBytes=_LOG_FILE_SIZE,
                backupCount=_LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        except (FileNotFoundError, PermissionError):
            self.root_logger.error("Cannot open log file '%s'; file logging disabled.", filename)
            return

        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(Formatter(_FILE_FORMAT))
        self.root_logger.addHandler(file_handler)

    def _has_handler(self, handler_type: type, *, exact: bool = False) -> bool:
        """Return True if a handler of ``handler_type`` is attached.

        ``exact`` ignores subclasses, so a RotatingFileHandler does not count as a console StreamHandler.
        """
        if exact:
            return any(type(h) is handler_type for h in self.root_logger.handlers)
        return any(isinstance(h, handler_type) for h in self.root_logger.handlers)

    def set_level(self, level: LevelType) -> None:
        """Set the namespace logger level, falling back to INFO for unknown names."""
        level_map: dict[str, int] = logging.getLevelNamesMapping()
        try:
            self.root_logger.setLevel(level_map[level.upper()])
        except KeyError:
            self.root_logger.setLevel(DEFAULT_LOG_LEVEL)
            self.root_logger.warning("Unknown logging level '%s' specified; using 'INFO'.", level)

    def get_level(self) -> LogLevel:
        level_value: int = self.root_logger.getEffectiveLevel()
        return LogLevel(name=logging.getLevelName(level_value), value=level_value)

    @staticmethod
    def get_logger(name: str | None = None) -> logging.Logger:
        """Return a logger below the configured namespace.

        Args:
            name (str | None): Dotted module name. None returns the namespace logger itself.

        Returns:
            logging.Logger: The logger instance.
        """
        full_name: str | None
        if LoggerUtils._LOGGER_NAMESPACE:
            full_name = f"{LoggerUtils._LOGGER_NAMESPACE}.{name}" if name else LoggerUtils._LOGGER_NAMESPACE
        else:
            full_name = name or None
        return logging.getLogger(full_name)
