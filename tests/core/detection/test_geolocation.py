"""Tests for the network-backed geolocation providers."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.detection.geolocation import IPGeolocationProvider, ReverseGeocodingProvider, extract_country_code
from core.detection.interface import GeolocationPermissionError, SignalUnavailableError
from handlers.async_comm import AsyncCommError, AsyncCommTimeoutError, AsyncHttp


def _http(*responses: Any) -> MagicMock:
    http = MagicMock(spec=AsyncHttp)
    http.get = AsyncMock(side_effect=list(responses))
    return http


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"country": "cn"}, "CN"),
        ({"country_code": "JP"}, "JP"),
        ({"countryCode": " us "}, "US"),
        ({"country": "China", "country_code": "CN"}, "CN"),
        ({"city": "Paris"}, None),
        ("CN", None),
        (None, None),
    ],
)
def test_extract_country_code(payload: Any, expected: str | None) -> None:
    assert extract_country_code(payload) == expected


@pytest.mark.asyncio
async def test_ip_provider_returns_first_country() -> None:
    http: MagicMock = _http({"country": "JP"})
    provider = IPGeolocationProvider(http, ["https://geo.example/json"], timeout=1.5)

    assert await provider.get_country_code() == "JP"
    http.get.assert_awaited_once_with(
        url="https://geo.example/json", total_timeout=1.5, headers={"Accept": "application/json"}
    )


@pytest.mark.asyncio
async def test_ip_provider_falls_through_failing_endpoints() -> None:
    http: MagicMock = _http(AsyncCommTimeoutError("slow"), {"ip": "1.2.3.4"}, {"country_code": "GB"})
    provider = IPGeolocationProvider(http, ["https://a", "https://b", "https://c"])

    assert await provider.get_country_code() == "GB"
    assert http.get.await_count == 3


@pytest.mark.asyncio
async def test_ip_provider_all_endpoints_failing() -> None:
    http: MagicMock = _http(AsyncCommError("down"), AsyncCommError("down"))
    provider = IPGeolocationProvider(http, ["https://a", "https://b"])

    with pytest.raises(SignalUnavailableError, match="All IP geolocation endpoints failed"):
        await provider.get_country_code()


@pytest.mark.asyncio
async def test_ip_provider_without_endpoints() -> None:
    provider = IPGeolocationProvider(_http(), [])

    with pytest.raises(SignalUnavailableError, match="No IP geolocation endpoints"):
        await provider.get_country_code()


@pytest.mark.asyncio
async def test_reverse_geocoding_formats_url() -> None:
    http: MagicMock = _http({"countryCode": "CN"})
    position = AsyncMock(return_value=(31.23, 121.47))
    provider = ReverseGeocodingProvider(position, http, "https://rev.example/?lat={lat}&lng={lng}", timeout=2.0)

    assert await provider.get_country_code() == "CN"
    http.get.assert_awaited_once_with(
        url="https://rev.example/?lat=31.23&lng=121.47", total_timeout=2.0, headers={"Accept": "application/json"}
    )


@pytest.mark.asyncio
async def test_reverse_geocoding_propagates_permission_denied() -> None:
    http: MagicMock = _http()
    position = AsyncMock(side_effect=GeolocationPermissionError("denied"))
    provider = ReverseGeocodingProvider(position, http, "https://rev.example/{lat},{lng}")

    with pytest.raises(GeolocationPermissionError):
        await provider.get_country_code()
    http.get.assert_not_awaited()
