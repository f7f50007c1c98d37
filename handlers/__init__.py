"""I/O handlers for the locale engine.

This package provides the asynchronous HTTP client used by network-backed collaborators.
"""

from handlers.async_comm import AsyncCommError, AsyncCommInvalidContentTypeError, AsyncCommTimeoutError, AsyncHttp

__all__: list[str] = [
    "AsyncCommError",
    "AsyncCommInvalidContentTypeError",
    "AsyncCommTimeoutError",
    "AsyncHttp",
]
