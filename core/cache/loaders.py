"""Message bundle sources.

A :class:`BundleLoader` returns the full message tree for one locale. Loaders signal every failure with
:class:`BundleLoadError` so the cache can count it and pass it on.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from handlers.async_comm import AsyncCommError
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Mapping

    from handlers.async_comm import AsyncHttp
    from models.cache_models import MessageBundle

__all__: list[str] = [
    "BundleLoadError",
    "BundleLoader",
    "HttpBundleLoader",
    "JsonFileBundleLoader",
    "MappingBundleLoader",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class BundleLoadError(Exception):
    """A message bundle could not be loaded."""


class BundleLoader(ABC):
    @abstractmethod
    async def load(self, locale: str) -> MessageBundle:
        """Return the message tree for ``locale``.

        Raises:
            BundleLoadError: If the bundle is missing or cannot be decoded.
        """


def _require_mapping(locale: str, data: Any, origin: str) -> MessageBundle:
    if not isinstance(data, dict):
        msg: str = f"Bundle for '{locale}' from {origin} is not a JSON object"
        raise BundleLoadError(msg)
    return data


class JsonFileBundleLoader(BundleLoader):
    """Reads ``<directory>/<locale>.json`` in a worker thread."""

    def __init__(self, directory: str | Path) -> None:
        self.directory: Path = Path(directory)

    async def load(self, locale: str) -> MessageBundle:
        path: Path = self.directory / f"{locale}.json"
        data: Any = await asyncio.to_thread(self._read, path)
        logger.debug("Loaded bundle '%s' from %s", locale, path)
        return _require_mapping(locale, data, str(path))

    @staticmethod
    def _read(path: Path) -> Any:
        try:
            with path.open(encoding="utf-8") as file:
                return json.load(file)
        except FileNotFoundError as err:
            msg: str = f"Bundle file not found: {path}"
            raise BundleLoadError(msg) from err
        except (OSError, UnicodeDecodeError) as err:
            msg = f"Cannot read bundle file {path}: {err}"
            raise BundleLoadError(msg) from err
        except json.JSONDecodeError as err:
            msg = f"Bundle file {path} is not valid JSON: {err}"
            raise BundleLoadError(msg) from err


class HttpBundleLoader(BundleLoader):
    """Fetches ``<base_url>/<locale>.json`` through :class:`AsyncHttp`."""

    def __init__(self, http: AsyncHttp, base_url: str, *, timeout: float = 5.0) -> None:
        self.http: AsyncHttp = http
        self.base_url: str = base_url.rstrip("/")
        self.timeout: float = timeout

    async def load(self, locale: str) -> MessageBundle:
        url: str = f"{self.base_url}/{locale}.json"
        try:
            data: Any = await self.http.get(url=url, total_timeout=self.timeout)
        except AsyncCommError as err:
            msg: str = f"Cannot fetch bundle '{locale}' from {url}: {err}"
            raise BundleLoadError(msg) from err
        return _require_mapping(locale, data, url)


class MappingBundleLoader(BundleLoader):
    """Serves bundles from an in-memory mapping."""

    def __init__(self, bundles: Mapping[str, MessageBundle]) -> None:
        self.bundles: dict[str, MessageBundle] = dict(bundles)

    async def load(self, locale: str) -> MessageBundle:
        try:
            return self.bundles[locale]
        except KeyError:
            msg: str = f"No bundle for '{locale}'"
            raise BundleLoadError(msg) from None
