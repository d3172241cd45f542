"""
Bus Gateway -- the skill manager's face on the message bus.

Responds on the skill service key to:
- 'add' {pkg}: install a package and reply with the outcome
- 'msg' {msg}: chat messages; claims '/install <pkg>' and declines the rest

Every install runs as a tracked task so shutdown can wait for it. Chat
installs run in the background; their progress and result go back to
the user through the communication relay as 'reply' messages carrying
the original request in 'addl'.
"""

import asyncio
from typing import Any

import structlog

from ..config.schema import BusConfig
from ..errors import BestEffort, MissingPackage, ShuttingDown, SkillManagerError
from ..logging.human import HumanLog
from ..skills.parser import ParseStatus, parse_command
from ..skills.pipeline import InstallPipeline, InstallRequest
from .base import BusError, MessageBus

logger = structlog.get_logger()

__all__ = ["BusGateway"]

MISSING_TARGET_REPLY = "What should I install?"


class BusGateway:
    """Converts bus messages into pipeline calls and results into replies."""

    def __init__(
        self,
        bus: MessageBus,
        pipeline: InstallPipeline,
        config: BusConfig | None = None,
        hlog: HumanLog | None = None,
    ):
        self.bus = bus
        self.pipeline = pipeline
        self.config = config or BusConfig()
        self.hlog = hlog or HumanLog()
        self._tasks: set[asyncio.Task] = set()
        self._closing = False
        self.log = logger.bind(component="bus_gateway", key=self.config.service_key)

    async def open(self) -> None:
        """Open the bus and register the request handlers.

        Errors propagate: a manager that cannot listen is useless.
        """
        await self.bus.open()
        self.bus.respond(self.config.service_key, "add", self.handle_add)
        self.bus.respond(self.config.service_key, "msg", self.handle_msg)
        self.hlog.gateway_ready(self.config.service_key)

    def announce(self) -> BestEffort:
        """Tell the communication relay which chat command we handle."""
        message = {
            "type": "register-msg-handler",
            "mskey": self.config.service_key,
            "mstype": "msg",
            "mshelp": [
                {"cmd": self.config.command_prefix, "txt": "install a new skill"},
            ],
        }
        try:
            self.bus.send(self.config.relay_key, message, on_error=self._announce_failed)
        except BusError as e:
            self._announce_failed(e)
            return BestEffort.failure(e)
        return BestEffort.success()

    @property
    def closing(self) -> bool:
        return self._closing

    async def handle_add(self, message: dict[str, Any]) -> dict[str, Any]:
        if self._closing:
            return _error_reply(ShuttingDown())

        pkg = message.get("pkg")
        if not isinstance(pkg, str) or not pkg.strip():
            err = MissingPackage()
            self.log.warning("gateway.missing_package")
            return _error_reply(err)

        request = InstallRequest(package_identifier=pkg.strip(), reply_target=message)
        task = self._track(self._install_direct(request))
        # A requester that gives up does not cancel the install
        return await asyncio.shield(task)

    async def handle_msg(self, message: dict[str, Any]) -> bool | None:
        """Claim install commands; return None for anything else."""
        text = message.get("msg")
        if not isinstance(text, str):
            return None
        parsed = parse_command(text, self.config.command_prefix)

        if parsed.status is ParseStatus.NO_MATCH:
            return None

        if parsed.status is ParseStatus.MISSING_TARGET:
            self.reply(MISSING_TARGET_REPLY, message)
            return True

        if self._closing:
            self.reply(f"Error: {ShuttingDown()}", message)
            return True

        request = InstallRequest(package_identifier=parsed.identifier, reply_target=message)
        self._track(self._install_from_chat(request))
        return True

    def reply(self, text: str, request: Any) -> BestEffort:
        """Send a chat reply to the user behind request through the relay."""
        try:
            self.bus.send(
                self.config.relay_key,
                {"type": "reply", "msg": text, "addl": request},
                on_error=self._reply_failed,
            )
        except BusError as e:
            self._reply_failed(e)
            return BestEffort.failure(e)
        return BestEffort.success()

    async def drain(self) -> None:
        """Wait for every install in flight, direct or from chat."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Refuse new installs, then wait for the ones in flight.

        After this returns no install can start a process, so the caller
        may stop every supervised skill.
        """
        self._closing = True
        self.log.info("gateway.closing", in_flight=len(self._tasks))
        await self.drain()

    def _track(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _install_direct(self, request: InstallRequest) -> dict[str, Any]:
        pkg = request.package_identifier
        try:
            outcome = await self.pipeline.install(pkg, notify=self.hlog.progress)
        except SkillManagerError as e:
            self.hlog.install_failed(pkg, str(e))
            return _error_reply(e)

        self.hlog.install_done(outcome.name, str(outcome.path))
        return {"ok": True, "name": outcome.name, "path": str(outcome.path)}

    async def _install_from_chat(self, request: InstallRequest) -> None:
        pkg = request.package_identifier

        def notify(text: str) -> None:
            self.hlog.progress(text)
            self.reply(text, request.reply_target)

        try:
            outcome = await self.pipeline.install(pkg, notify=notify)
        except SkillManagerError as e:
            self.hlog.install_failed(pkg, str(e))
            self.reply(f"Error: {e}", request.reply_target)
            return

        self.hlog.install_done(outcome.name, str(outcome.path))
        self.reply(f"Installed {pkg} as {outcome.name}", request.reply_target)

    def _announce_failed(self, error: Exception) -> None:
        self.log.warning("gateway.announce_failed", relay=self.config.relay_key, error=str(error))

    def _reply_failed(self, error: Exception) -> None:
        self.log.warning("gateway.reply_failed", relay=self.config.relay_key, error=str(error))


def _error_reply(error: SkillManagerError) -> dict[str, Any]:
    return {"ok": False, "error": str(error), "code": error.code}
