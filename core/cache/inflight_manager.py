from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, ClassVar

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging

    from models.cache_models import MessageBundle


__all__: list[str] = ["InFlightManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class InFlightManager:
    """Collapses concurrent loads of the same message bundle into one.

    The first caller for a key becomes the producer and later callers wait on a shared future until the producer
    stores a bundle or an exception.

    Attributes:
        INFLIGHT_TIMEOUT_SEC (ClassVar[float]): Default time a waiter waits for the producer.
    """

    INFLIGHT_TIMEOUT_SEC: ClassVar[float] = 6.0

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout: float = self.INFLIGHT_TIMEOUT_SEC if timeout is None else timeout
        self._inflight: dict[str, asyncio.Future[MessageBundle]] = {}
        self._lock: asyncio.Lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._inflight)

    def is_inflight(self, key: str) -> bool:
        return key in self._inflight

    async def component_teardown(self) -> None:
        """Cancel pending loads and clear the in-flight state."""
        async with self._lock:
            for fut in self._inflight.values():
                if not fut.done():
                    fut.cancel()
            self._inflight.clear()
        logger.info("InFlightManager torn down and in-flight state cleared")

    async def mark_inflight_start(self, key: str) -> MessageBundle | None:
        """Register a load for ``key``, or wait for the one already running.

        Args:
            key (str): Cache key (locale code).

        Returns:
            MessageBundle | None: The bundle produced by the running load, or None if the caller has just become
                the producer and must call :meth:`store_inflight_result` or :meth:`store_inflight_exception`.

        Raises:
            TimeoutError: If the running load does not finish in time or is cancelled.
            Exception: Whatever the producer stored with :meth:`store_inflight_exception`.
        """
        async with self._lock:
            if key not in self._inflight:
                loop: asyncio.AbstractEventLoop = asyncio.get_running_loop()
                fut: asyncio.Future[MessageBundle] = loop.create_future()
                fut.add_done_callback(self._consume_exception)
                self._inflight[key] = fut
                logger.debug("Marked in-flight start for key: %s", key)
                return None
            fut = self._inflight[key]
            logger.debug("In-flight load detected for key: %s", key)

        try:
            bundle: MessageBundle = await asyncio.wait_for(asyncio.shield(fut), timeout=self.timeout)
        except TimeoutError:
            logger.warning("In-flight load timeout for key: %s", key)
            await self._forget(key, fut)
            msg: str = f"In-flight load timed out for key: {key}"
            raise TimeoutError(msg) from None
        except asyncio.CancelledError:
            if not fut.cancelled():
                raise
            logger.warning("In-flight load cancelled for key: %s", key)
            await self._forget(key, fut)
            msg = f"In-flight load cancelled for key: {key}"
            raise TimeoutError(msg) from None
        else:
            logger.debug("Received in-flight bundle for key: %s", key)
            return bundle

    async def store_inflight_result(self, key: str, bundle: MessageBundle) -> None:
        async with self._lock:
            fut: asyncio.Future[MessageBundle] | None = self._inflight.pop(key, None)
            if fut and not fut.done():
                fut.set_result(bundle)
                logger.debug("Set in-flight bundle for key: %s", key)
            else:
                logger.warning("No in-flight future found or already done for key: %s when storing result", key)

    async def store_inflight_exception(self, key: str, exc: Exception) -> None:
        async with self._lock:
            fut: asyncio.Future[MessageBundle] | None = self._inflight.pop(key, None)
            if fut and not fut.done():
                fut.set_exception(exc)
                logger.debug("Set in-flight exception for key: %s", key)
            else:
                logger.warning("No in-flight future found or already done for key: %s when storing exception", key)

    def abandon(self, key: str) -> None:
        """Drop the load for ``key`` after its producer was cancelled.

        Runs without awaiting so it can be called from a cancelled producer. Waiters see the shared future
        cancelled and raise ``TimeoutError``; the next caller starts a fresh load.
        """
        fut: asyncio.Future[MessageBundle] | None = self._inflight.pop(key, None)
        if fut is not None and not fut.done():
            fut.cancel()
            logger.debug("Abandoned in-flight load for key: %s", key)

    async def _forget(self, key: str, fut: asyncio.Future[MessageBundle]) -> None:
        async with self._lock:
            if self._inflight.get(key) is fut:
                self._inflight.pop(key, None)

    @staticmethod
    def _consume_exception(fut: asyncio.Future[MessageBundle]) -> None:
        # Marks the exception of a load nobody waited on as retrieved.
        if not fut.cancelled():
            fut.exception()
