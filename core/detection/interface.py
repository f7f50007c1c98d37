"""Capability interfaces for the environment signals used in locale detection.

Each interface isolates one source of evidence so the detector can run against a browser-like request, the host
operating system, or a test double. Implementations raise :class:`SignalUnavailableError` when the evidence
cannot be obtained; the collectors turn that into an "unavailable" reading.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Final
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Sequence

__all__: list[str] = [
    "AcceptLanguageSource",
    "GeolocationPermissionError",
    "GeolocationProvider",
    "LanguageSource",
    "SignalUnavailableError",
    "StaticGeolocationProvider",
    "StaticLanguageSource",
    "StaticTimezoneSource",
    "SystemLanguageSource",
    "SystemTimezoneSource",
    "TimezoneSource",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

_ZONEINFO_MARKER: Final[str] = "zoneinfo/"


class SignalUnavailableError(Exception):
    """The signal cannot be read in this environment."""


class GeolocationPermissionError(SignalUnavailableError):
    """The user or platform denied access to the device position."""


class LanguageSource(ABC):
    """Ordered list of user-declared language tags, most preferred first."""

    @abstractmethod
    def get_languages(self) -> list[str]:
        """Return the language tags.

        Raises:
            SignalUnavailableError: If no language information exists.
        """


class TimezoneSource(ABC):
    """Active IANA timezone name."""

    @abstractmethod
    def get_timezone(self) -> str:
        """Return the timezone name, e.g. ``"Asia/Shanghai"``.

        Raises:
            SignalUnavailableError: If the timezone cannot be determined.
        """


class GeolocationProvider(ABC):
    """Country of the device or of its network address."""

    @abstractmethod
    async def get_country_code(self) -> str | None:
        """Return an ISO 3166-1 alpha-2 country code, or None when the position has no country.

        Raises:
            SignalUnavailableError: If geolocation is missing or denied.
            AsyncCommError: If a network lookup fails.
        """


class StaticLanguageSource(LanguageSource):
    def __init__(self, languages: Sequence[str]) -> None:
        self._languages: list[str] = [lang for lang in languages if lang]

    def get_languages(self) -> list[str]:
        return list(self._languages)


class AcceptLanguageSource(LanguageSource):
    """Language tags parsed from an HTTP ``Accept-Language`` header.

    Tags are ordered by quality value (highest first); ties keep header order. ``*`` and tags with ``q=0`` are
    dropped.
    """

    def __init__(self, header: str | None) -> None:
        self._header: str = header or ""

    def get_languages(self) -> list[str]:
        if not self._header.strip():
            msg = "Accept-Language header is empty"
            raise SignalUnavailableError(msg)

        weighted: list[tuple[float, int, str]] = []
        for index, part in enumerate(self._header.split(",")):
            tag, _, params = part.strip().partition(";")
            tag = tag.strip()
            if not tag or tag == "*":
                continue
            quality: float = 1.0
            params = params.strip()
            if params.startswith("q="):
                try:
                    quality = float(params[2:])
                except ValueError:
                    logger.debug("Ignoring malformed quality value in '%s'", part)
                    continue
            if quality <= 0:
                continue
            weighted.append((-quality, index, tag))

        return [tag for _, _, tag in sorted(weighted)]


class SystemLanguageSource(LanguageSource):
    """Language from the POSIX locale environment (``LANGUAGE``, ``LC_ALL``, ``LC_MESSAGES``, ``LANG``)."""

    _ENV_KEYS: Final[tuple[str, ...]] = ("LANGUAGE", "LC_ALL", "LC_MESSAGES", "LANG")

    def get_languages(self) -> list[str]:
        languages: list[str] = []
        for key in self._ENV_KEYS:
            value: str = os.environ.get(key, "")
            for item in value.split(":"):
                # "zh_CN.UTF-8" -> "zh-CN"
                tag: str = item.split(".")[0].split("@")[0].replace("_", "-")
                if tag and tag not in ("C", "POSIX") and tag not in languages:
                    languages.append(tag)
        if not languages:
            msg = "No locale environment variables are set"
            raise SignalUnavailableError(msg)
        return languages


class StaticTimezoneSource(TimezoneSource):
    def __init__(self, timezone: str | None) -> None:
        self._timezone: str | None = timezone

    def get_timezone(self) -> str:
        if not self._timezone:
            msg = "No timezone supplied"
            raise SignalUnavailableError(msg)
        return self._timezone


class SystemTimezoneSource(TimezoneSource):
    """Timezone of the host: the ``TZ`` variable, else the ``/etc/localtime`` link target."""

    def __init__(self, localtime_path: str | Path = "/etc/localtime") -> None:
        self._localtime_path: Path = Path(localtime_path)

    def get_timezone(self) -> str:
        name: str = os.environ.get("TZ", "").lstrip(":")
        if not name:
            name = self._from_localtime_link()
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as err:
            msg: str = f"Unknown timezone '{name}'"
            raise SignalUnavailableError(msg) from err
        return name

    def _from_localtime_link(self) -> str:
        try:
            target: str = str(self._localtime_path.resolve(strict=True))
        except OSError as err:
            msg = "Cannot resolve the system timezone"
            raise SignalUnavailableError(msg) from err
        marker: int = target.find(_ZONEINFO_MARKER)
        if marker < 0:
            msg = f"'{target}' is not a zoneinfo path"
            raise SignalUnavailableError(msg)
        return target[marker + len(_ZONEINFO_MARKER) :]


class StaticGeolocationProvider(GeolocationProvider):
    """Country code known up front, e.g. from a CDN country header."""

    def __init__(self, country_code: str | None) -> None:
        self._country_code: str | None = country_code

    async def get_country_code(self) -> str | None:
        if not self._country_code:
            msg = "No country code supplied"
            raise SignalUnavailableError(msg)
        return self._country_code
