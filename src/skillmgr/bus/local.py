"""
LocalBus -- in-process implementation of the message bus.

Requests are dispatched to handlers registered in the same event loop.
Several handlers may share a key/type; they are tried in registration
order until one returns a non-None reply.
"""

import asyncio
from typing import Any

import structlog

from .base import BusClosed, BusError, ErrorCallback, Handler, NoResponder

logger = structlog.get_logger()

__all__ = ["LocalBus"]


class LocalBus:
    """Asyncio bus for a single process: wiring, local runs and tests."""

    def __init__(self) -> None:
        self._handlers: dict[tuple[str, str], list[Handler]] = {}
        self._pending: set[asyncio.Task] = set()
        self._open = False
        self.log = logger.bind(component="local_bus")

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> None:
        self._open = True
        self.log.debug("bus.opened")

    async def close(self) -> None:
        """Wait for pending fire-and-forget sends, then drop all handlers."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._handlers.clear()
        self._open = False
        self.log.debug("bus.closed")

    def respond(self, key: str, msg_type: str, handler: Handler) -> None:
        self._handlers.setdefault((key, msg_type), []).append(handler)
        self.log.info("bus.responder_registered", key=key, type=msg_type)

    def serves(self, key: str) -> bool:
        """True if any handler is registered on key."""
        return any(k == key for k, _ in self._handlers)

    async def request(self, key: str, message: dict[str, Any]) -> Any:
        """Deliver a request and return the first non-None reply.

        Raises:
            BusClosed: If the bus has not been opened.
            NoResponder: If every handler declined (or none exists).
            BusError: If the handler raised.
        """
        if not self._open:
            raise BusClosed(f"Bus closed, cannot reach {key}")

        msg_type = message.get("type")
        self.log.debug("bus.request", key=key, type=msg_type)
        for handler in list(self._handlers.get((key, msg_type), [])):
            try:
                reply = await handler(message)
            except BusError:
                raise
            except Exception as e:
                self.log.error("bus.handler_error", key=key, type=msg_type, error=str(e))
                raise BusError(f"{key}/{msg_type}: {e}") from e
            if reply is not None:
                return reply
        raise NoResponder(key, msg_type)

    def send(
        self,
        key: str,
        message: dict[str, Any],
        on_error: ErrorCallback | None = None,
    ) -> None:
        """Fire-and-forget request. Only failures are reported, via on_error.

        Raises:
            BusClosed: If the bus has not been opened.
        """
        if not self._open:
            raise BusClosed(f"Bus closed, cannot reach {key}")

        task = asyncio.get_running_loop().create_task(self._deliver(key, message, on_error))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(
        self,
        key: str,
        message: dict[str, Any],
        on_error: ErrorCallback | None,
    ) -> None:
        try:
            await self.request(key, message)
        except BusError as e:
            if on_error is not None:
                on_error(e)
            else:
                self.log.debug("bus.send_failed", key=key, type=message.get("type"), error=str(e))
