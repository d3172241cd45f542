"""
HttpBus -- message bus between processes over HTTP.

Each process serves the keys it responds on:

    POST /bus/<key>   body: the message   ->  200 {"reply": ...}
                                              404 no handler claimed it
                                              400 malformed message
                                              500 handler error

Requests for keys this process does not serve go to the base URL listed
for that key in BusConfig.peers. Handler chaining (None declines) is the
same as in LocalBus, which does the in-process dispatch.
"""

import asyncio
import contextlib
import socket
from typing import Any

import httpx
import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from ..config.schema import BusConfig
from .base import BusClosed, BusError, ErrorCallback, Handler, NoResponder
from .local import LocalBus

logger = structlog.get_logger()

__all__ = ["HttpBus"]


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to GracefulShutdown."""

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class HttpBus:
    """Serves local handlers over HTTP and forwards other keys to peers."""

    def __init__(
        self,
        config: BusConfig | None = None,
        client: httpx.AsyncClient | None = None,
        serve: bool = True,
    ):
        self.config = config or BusConfig()
        self.peers = {key: url.rstrip("/") for key, url in self.config.peers.items()}
        self.serve = serve
        self.port: int | None = None
        self._local = LocalBus()
        # close() only closes a client that open() created
        self.client = client
        self._owns_client = False
        self._server: _EmbeddedServer | None = None
        self._server_task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()
        self._open = False
        self.app = Starlette(routes=[Route("/bus/{key}", self._endpoint, methods=["POST"])])
        self.log = logger.bind(component="http_bus")

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self) -> None:
        """Start listening (if serve) and open the local dispatcher.

        Raises:
            BusError: If the listening socket cannot be bound.
        """
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=self.config.request_timeout)
            self._owns_client = True
        await self._local.open()
        if self.serve:
            await self._start_server()
        self._open = True

    async def close(self) -> None:
        """Wait for pending sends, stop the server and release the client."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._open = False
        if self._server is not None and self._server_task is not None:
            self._server.should_exit = True
            await self._server_task
            self._server = self._server_task = None
        await self._local.close()
        if self._owns_client and self.client is not None:
            await self.client.aclose()
            self.client = None
        self.log.debug("bus.closed")

    def respond(self, key: str, msg_type: str, handler: Handler) -> None:
        self._local.respond(key, msg_type, handler)

    async def request(self, key: str, message: dict[str, Any]) -> Any:
        """Deliver locally if this process serves key, else POST to the peer.

        Raises:
            BusClosed: If the bus has not been opened.
            NoResponder: If no handler claimed it, or no peer is known for key.
            BusError: On handler errors and transport failures.
        """
        if not self._open:
            raise BusClosed(f"Bus closed, cannot reach {key}")
        if self._local.serves(key):
            return await self._local.request(key, message)

        msg_type = message.get("type")
        base_url = self.peers.get(key)
        if base_url is None:
            raise NoResponder(key, msg_type)

        try:
            response = await self.client.post(f"{base_url}/bus/{key}", json=message)
        except httpx.HTTPError as e:
            self.log.warning("bus.peer_unreachable", key=key, url=base_url, error=str(e))
            raise BusError(f"{key}/{msg_type}: {e}") from e

        if response.status_code == 404:
            raise NoResponder(key, msg_type)
        if response.is_error:
            raise BusError(f"{key}/{msg_type}: {_error_text(response)}")
        return response.json().get("reply")

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

    async def _endpoint(self, request: Request) -> JSONResponse:
        key = request.path_params["key"]
        try:
            message = await request.json()
        except ValueError:
            return JSONResponse({"error": "body is not JSON"}, status_code=400)
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            return JSONResponse({"error": "message needs a string 'type'"}, status_code=400)

        try:
            reply = await self._local.request(key, message)
        except NoResponder as e:
            return JSONResponse({"error": str(e)}, status_code=404)
        except BusError as e:
            return JSONResponse({"error": str(e)}, status_code=500)
        return JSONResponse({"reply": reply})

    async def _start_server(self) -> None:
        host, port = self.config.listen_host, self.config.listen_port
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as e:
            sock.close()
            raise BusError(f"cannot listen on {host}:{port}: {e}") from e
        self.port = sock.getsockname()[1]

        server_config = uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            lifespan="off",
        )
        self._server = _EmbeddedServer(server_config)
        self._server_task = asyncio.get_running_loop().create_task(
            self._server.serve(sockets=[sock])
        )
        while not self._server.started:
            if self._server_task.done():
                self._server_task.result()
                raise BusError(f"HTTP server on {host}:{self.port} stopped during startup")
            await asyncio.sleep(0.01)
        self.log.info("bus.listening", host=host, port=self.port)


def _error_text(response: httpx.Response) -> str:
    try:
        return str(response.json().get("error", response.text))
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
