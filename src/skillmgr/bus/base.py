"""
Message bus contract.

Services are addressed by a key plus the message 'type' field. A handler
receives the full message dict and returns a reply, or None to decline so
another handler registered for the same key/type can claim the message.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol

__all__ = [
    "BusClosed",
    "BusError",
    "ErrorCallback",
    "Handler",
    "MessageBus",
    "NoResponder",
]

Handler = Callable[[dict[str, Any]], Awaitable[Any]]
ErrorCallback = Callable[[Exception], None]


class BusError(Exception):
    """Base error for bus operations."""

    pass


class NoResponder(BusError):
    """No handler claimed a request."""

    def __init__(self, key: str, msg_type: str | None):
        self.key = key
        self.msg_type = msg_type
        super().__init__(f"No responder for '{msg_type}' on {key}")


class BusClosed(BusError):
    """The bus is not open."""

    pass


class MessageBus(Protocol):
    async def open(self) -> None: ...

    async def close(self) -> None: ...

    def respond(self, key: str, msg_type: str, handler: Handler) -> None: ...

    async def request(self, key: str, message: dict[str, Any]) -> Any: ...

    def send(
        self,
        key: str,
        message: dict[str, Any],
        on_error: ErrorCallback | None = None,
    ) -> None: ...
