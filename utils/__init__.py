"""Utility modules for the locale engine.

This package provides the logging setup and epoch-millisecond time helpers.
"""

from utils.logger_utils import LoggerUtils
from utils.time_utils import MS_PER_DAY, MS_PER_MINUTE, TimeUtils

__all__: list[str] = ["MS_PER_DAY", "MS_PER_MINUTE", "LoggerUtils", "TimeUtils"]
