"""Asynchronous HTTP utilities.

This module provides the shared aiohttp-based client used for IP-geolocation lookups and remote message bundle
downloads. Transport failures are normalized into ``AsyncCommError`` subclasses so callers can degrade without
knowing aiohttp's exception tree.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Final, Literal, Self

import aiohttp
from aiohttp.client import ClientSession

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from aiohttp.client import ClientResponse


__all__: list[str] = ["AsyncCommError", "AsyncCommInvalidContentTypeError", "AsyncCommTimeoutError", "AsyncHttp"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

HTTPMethod = Literal["GET", "HEAD"]

CONNECT_TIMEOUT: Final[float] = 1.0


class AsyncHttp:
    """Asynchronous HTTP client with per-content-type response decoding.

    The aiohttp session is created lazily on first use (or on ``async with``) so the client can be built outside
    a running event loop.
    """

    def __init__(self) -> None:
        logger.debug("%s initializing", self.__class__.__name__)
        self.__session: ClientSession | None = None
        self.content_handlers: dict[str, Callable[[bytes], Any]] = {}

        self.add_handler("text/plain", lambda x: x.decode("utf-8"))
        self.add_handler("application/json", lambda x: json.loads(x.decode("utf-8")))

    async def __aenter__(self) -> Self:
        self.initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        _ = exc_type, exc_val, exc_tb
        await self.close()

    def initialize_session(self) -> None:
        """Create the aiohttp session if none is open."""
        if self.__session is None or self.__session.closed:
            self.__session = ClientSession(raise_for_status=True)
            logger.debug("%s session initialized", self.__class__.__name__)

    @property
    def session(self) -> ClientSession:
        """The open aiohttp session, created on demand."""
        if self.__session is None or self.__session.closed:
            self.initialize_session()
        if self.__session is None:
            msg = "Session could not be initialized"
            raise RuntimeError(msg)
        return self.__session

    @property
    def is_open(self) -> bool:
        return self.__session is not None and not self.__session.closed

    async def close(self) -> None:
        """Close the aiohttp session if it is open."""
        if self.__session and not self.__session.closed:
            await self.__session.close()
            logger.debug("%s session closed", self.__class__.__name__)
        self.__session = None

    async def get(self, *, url: str, total_timeout: float = 10.0, headers: dict[str, str] | None = None) -> Any:
        """Perform an asynchronous HTTP GET request.

        Args:
            url (str): The URL to send the GET request to.
            total_timeout (float): Total timeout for the request in seconds. Zero or less disables it.
            headers (dict[str, str] | None): Extra request headers.

        Returns:
            Any: The decoded response body, or None for an empty body.

        Raises:
            AsyncCommTimeoutError: If the request exceeds ``total_timeout``.
            AsyncCommError: On connection failures and error statuses.
            AsyncCommInvalidContentTypeError: If no handler is registered for the response content type.
        """
        return await self._request("GET", url=url, total_timeout=total_timeout, headers=headers or {})

    async def decode_response(self, resp: ClientResponse) -> Any:
        """Decode a response body with the handler registered for its content type.

        Args:
            resp (ClientResponse): The response object from the aiohttp request.

        Returns:
            Any: The decoded body, or None for an empty body.

        Raises:
            AsyncCommInvalidContentTypeError: If no handler is registered for the content type.
        """
        content_type: str = resp.headers.get("Content-Type", "").split(";")[0].strip()
        logger.debug("'Content-Type': '%s'", content_type)

        raw: bytes = await resp.read()
        if not raw:
            logger.debug("Received empty response")
            return None

        handler: Callable[[bytes], Any] | None = self.content_handlers.get(content_type)
        if handler:
            return handler(raw)

        msg: str = f"Unknown Content-Type '{content_type}'"
        raise AsyncCommInvalidContentTypeError(msg)

    def add_handler(self, content_type: str, handler: Callable[[bytes], Any]) -> None:
        """Register the decoder for a content type, replacing any existing one."""
        if self.content_handlers.get(content_type):
            logger.warning("Handler for content type '%s' already exists, replacing it", content_type)
        self.content_handlers[content_type] = handler

    async def _request(
        self,
        method: HTTPMethod,
        *,
        url: str,
        total_timeout: float,
        **kwargs: Any,
    ) -> Any:
        logger.debug("[%s] url=%s timeout=%s", method, url, total_timeout)
        if total_timeout <= 0:
            _timeout = aiohttp.ClientTimeout(total=None)
        elif total_timeout < CONNECT_TIMEOUT:
            # A connect timeout longer than the total timeout would never fire.
            _timeout = aiohttp.ClientTimeout(total=total_timeout)
        else:
            _timeout = aiohttp.ClientTimeout(connect=CONNECT_TIMEOUT, total=total_timeout)

        try:
            async with self.session.request(method=method, url=url, timeout=_timeout, **kwargs) as resp:
                return await self.decode_response(resp)

        except TimeoutError as err:
            logger.debug(err)
            msg = "Timeout due to a lack of response from the server."
            raise AsyncCommTimeoutError(msg) from err
        except ConnectionResetError as err:
            logger.debug(err)
            msg = "The connection to the server has been disconnected."
            raise AsyncCommError(msg) from err
        except aiohttp.ClientConnectorError as err:
            logger.debug(err)
            msg = "The server is unreachable."
            raise AsyncCommError(msg) from err
        except aiohttp.ClientResponseError as err:
            logger.debug(err)
            msg = "Error response from the server."
            raise AsyncCommError(msg, response=err) from err
        except aiohttp.ClientError as err:
            logger.debug(err)
            msg = "HTTP client error."
            raise AsyncCommError(msg) from err


class AsyncCommError(Exception):
    """Base class for asynchronous communication errors."""

    def __init__(self, msg: str | BaseException, **kwargs: Any) -> None:
        self.msg: str = str(msg)
        self.status: int | None = None

        rsp: aiohttp.ClientResponseError | None = kwargs.pop("response", None)
        if isinstance(rsp, aiohttp.ClientResponseError):
            self.status = rsp.status
            self.msg = f"{self.msg}: status='{rsp.status}'"

        super().__init__(self.msg)


class AsyncCommTimeoutError(AsyncCommError):
    """The request did not complete within its timeout."""


class AsyncCommInvalidContentTypeError(AsyncCommError):
    """The response carried a content type with no registered handler."""
