"""Network-backed geolocation providers.

Both providers resolve a country code over HTTP through :class:`handlers.async_comm.AsyncHttp`. The JSON
payload may name the country as ``country``, ``country_code`` or ``countryCode``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from core.detection.interface import GeolocationProvider, SignalUnavailableError
from handlers.async_comm import AsyncCommError
from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Sequence

    from handlers.async_comm import AsyncHttp

__all__: list[str] = ["IPGeolocationProvider", "ReverseGeocodingProvider", "extract_country_code"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

type PositionSource = Callable[[], Awaitable[tuple[float, float]]]


def extract_country_code(payload: Any) -> str | None:
    """Pull a two-letter country code out of a geolocation response body.

    Args:
        payload (Any): Decoded JSON body.

    Returns:
        str | None: Upper-cased country code, or None when the body carries none.
    """
    if not isinstance(payload, dict):
        return None
    for key in IPGeolocationProvider.COUNTRY_FIELDS:
        value: Any = payload.get(key)
        if isinstance(value, str) and len(value.strip()) == 2:  # noqa: PLR2004
            return value.strip().upper()
    return None


class IPGeolocationProvider(GeolocationProvider):
    """Country of the caller's public IP address.

    Endpoints are tried in order; the first one returning a country code wins.

    Attributes:
        COUNTRY_FIELDS (ClassVar[tuple[str, ...]]): Response fields checked for the country code.
    """

    COUNTRY_FIELDS: ClassVar[tuple[str, ...]] = ("country", "country_code", "countryCode")

    def __init__(self, http: AsyncHttp, endpoints: Sequence[str], *, timeout: float = 3.0) -> None:
        self._http: AsyncHttp = http
        self._endpoints: list[str] = list(endpoints)
        self._timeout: float = timeout

    async def get_country_code(self) -> str | None:
        """Query each endpoint until one yields a country code.

        Raises:
            SignalUnavailableError: If no endpoint is configured or every endpoint failed.
        """
        if not self._endpoints:
            msg = "No IP geolocation endpoints configured"
            raise SignalUnavailableError(msg)

        for endpoint in self._endpoints:
            try:
                payload: Any = await self._http.get(
                    url=endpoint, total_timeout=self._timeout, headers={"Accept": "application/json"}
                )
            except AsyncCommError as err:
                logger.debug("IP geolocation endpoint '%s' failed: %s", endpoint, err)
                continue

            country_code: str | None = extract_country_code(payload)
            if country_code:
                logger.debug("IP geolocation endpoint '%s' returned '%s'", endpoint, country_code)
                return country_code

        msg = "All IP geolocation endpoints failed"
        raise SignalUnavailableError(msg)


class ReverseGeocodingProvider(GeolocationProvider):
    """Country of the device position, resolved through a reverse-geocoding endpoint.

    Args:
        position_source (PositionSource): Coroutine factory returning ``(latitude, longitude)``. It raises
            ``SignalUnavailableError`` (or ``GeolocationPermissionError``) when the position is unavailable.
        http (AsyncHttp): Shared HTTP client.
        url_template (str): Endpoint URL with ``{lat}`` and ``{lng}`` placeholders.
        timeout (float): Request timeout in seconds.
    """

    def __init__(
        self, position_source: PositionSource, http: AsyncHttp, url_template: str, *, timeout: float = 3.0
    ) -> None:
        self._position_source: PositionSource = position_source
        self._http: AsyncHttp = http
        self._url_template: str = url_template
        self._timeout: float = timeout

    async def get_country_code(self) -> str | None:
        latitude, longitude = await self._position_source()
        url: str = self._url_template.format(lat=latitude, lng=longitude)
        payload: Any = await self._http.get(
            url=url, total_timeout=self._timeout, headers={"Accept": "application/json"}
        )
        return extract_country_code(payload)
