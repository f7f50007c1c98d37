"""Locale engine diagnostics.

This script runs one locale detection against the configured storage and message bundles and prints the result,
the detection history statistics and the cache metrics.

This is a console-only application; logs go to the file named by ``GENERAL.LOG_FILE`` if set.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Final, NoReturn

from config.loader import Config, ConfigLoader, ConfigLoaderError
from core.cache.loaders import BundleLoadError
from core.detection.interface import StaticLanguageSource, StaticTimezoneSource
from core.engine import LocaleEngine
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    from core.detection.detector import DetectionQuality
    from core.detection.interface import LanguageSource, TimezoneSource
    from core.engine import NegotiationResult
    from models.cache_models import CacheMetrics
    from models.history_models import DetectionStats

CFG_FILE: Final[str] = "locale_engine.ini"


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        print(f"\n{message}\n", file=sys.stderr)
        self.print_help(sys.stderr)
        raise SystemExit(2)


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments.
    """
    parser = _ArgumentParser(
        description="Print locale detection, history and cache diagnostics",
        epilog="Example: python locale_diagnostics.py --languages zh-CN en --timezone Asia/Shanghai",
    )
    parser.add_argument("--config", dest="config", default=CFG_FILE, metavar="FILE", help="Configuration file")
    parser.add_argument("--debug", dest="debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--default-locale", dest="default_locale", metavar="LOCALE", help="Override default locale")
    parser.add_argument("--languages", dest="languages", nargs="+", metavar="TAG", help="Browser language tags")
    parser.add_argument("--timezone", dest="timezone", metavar="ZONE", help="IANA timezone name")
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> Config:
    """Load the configuration file and apply CLI overrides.

    Raises:
        ConfigLoaderError: If the configuration file cannot be loaded.
    """
    script_name: str = Path(sys.argv[0]).stem
    return ConfigLoader(
        config_filename=args.config, script_name=script_name, debug=args.debug, default_locale=args.default_locale
    ).config


def setup_logging(config: Config) -> None:
    logger_utils = LoggerUtils(config.GENERAL.LOG_FILE)
    if config.GENERAL.DEBUG:
        logger_utils.set_level("DEBUG")


def format_report(
    result: NegotiationResult, quality: DetectionQuality, stats: DetectionStats, metrics: CacheMetrics
) -> list[str]:
    """Render the diagnostics as printable lines."""
    detection = result.detection
    lines: list[str] = [
        "=" * 50,
        "Locale Detection",
        "=" * 50,
        f"Locale: {detection.locale} (served: {result.locale})",
        f"Source: {detection.source}",
        f"Confidence: {detection.confidence:.2f} ({quality.quality}, reliability {quality.reliability:.2f})",
    ]
    lines.extend(f"  {key}: {value}" for key, value in detection.details.items())
    lines.extend(f"  * {text}" for text in quality.recommendations)
    lines += [
        "-" * 50,
        "Detection History",
        "-" * 50,
        f"Total detections: {stats.total_detections}",
        f"Average confidence: {stats.average_confidence:.2f}",
        f"Most detected locale: {stats.most_detected_locale or '-'}",
        f"Most used source: {stats.most_used_source or '-'}",
        "-" * 50,
        "Message Cache",
        "-" * 50,
        f"Hit rate: {metrics.cache_hit_rate:.0%}",
        f"Coverage: {metrics.translation_coverage:.0%}",
        f"Average load time: {metrics.load_time:.1f} ms",
        f"Error rate: {metrics.error_rate:.0%}",
    ]
    return lines


async def main(argv: list[str] | None = None) -> int:
    """Run one detection and print the diagnostics.

    Returns:
        int: Process exit code.
    """
    args: argparse.Namespace = parse_arguments(argv)
    try:
        config: Config = load_config(args)
    except ConfigLoaderError as err:
        print("\nError: Failed to load configuration file.", file=sys.stderr)
        print(f"Details: {err}", file=sys.stderr)
        return 1
    setup_logging(config)

    language_source: LanguageSource | None = StaticLanguageSource(args.languages) if args.languages else None
    timezone_source: TimezoneSource | None = StaticTimezoneSource(args.timezone) if args.timezone else None
    engine = LocaleEngine(config, language_source=language_source, timezone_source=timezone_source)
    try:
        await engine.component_load()
        try:
            result: NegotiationResult = await engine.negotiate()
        except BundleLoadError as err:
            print(f"\nError: {err}", file=sys.stderr)
            return 1
        report: list[str] = format_report(
            result,
            engine.detector.get_detection_quality(result.detection),
            engine.storage.get_detection_stats(),
            engine.cache.get_metrics(),
        )
        print("\n".join(report))
    finally:
        await engine.component_teardown()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\n\nCancelled by user.", file=sys.stderr)
        sys.exit(130)
