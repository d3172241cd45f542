"""
Process Supervisor Adapter -- start, stop and enumerate skill processes.

Wraps a ProcessBackend with the bookkeeping kept in SupervisorState.
Every start, stop and unexpected exit runs under the per-name lock, so
callers never observe a half-updated entry for a name. A skill that exits
on its own is dropped from the mapping as soon as the backend reports it.

Lifecycle per process: Unregistered -> Running -> Unregistered.
"""

import inspect
from collections.abc import Awaitable, Callable
from pathlib import Path

import structlog

from ..errors import NotRunning, StartFailed
from .backend import ProcessBackend, ProcessSpec
from .state import SupervisedProcess, SupervisorState

logger = structlog.get_logger()

__all__ = ["ProcessSupervisor"]

Visitor = Callable[[SupervisedProcess], Awaitable[None] | None]


class ProcessSupervisor:
    """Owns all mutation of the running-process mapping."""

    def __init__(self, backend: ProcessBackend, state: SupervisorState, logs_root: Path):
        self.backend = backend
        self.state = state
        self.logs_root = Path(logs_root)
        self.log = logger.bind(component="supervisor")
        backend.watch_exits(self._on_exit)

    def log_path_for(self, name: str) -> Path:
        return self.logs_root / f"{name}.log"

    def is_running(self, name: str) -> bool:
        return name in self.state

    def running(self) -> list[SupervisedProcess]:
        return self.state.snapshot()

    async def start(self, name: str, working_directory: Path) -> SupervisedProcess:
        """Launch a skill and register it under name.

        Raises:
            StartFailed: If name is already running or the backend fails.
        """
        async with self.state.hold(name):
            if name in self.state:
                raise StartFailed(name, "already running, stop it first")

            log_path = self.log_path_for(name)
            spec = ProcessSpec(name=name, cwd=Path(working_directory), log_file=log_path)
            try:
                pid = await self.backend.start(spec)
            except OSError as e:
                raise StartFailed(name, str(e)) from e

            proc = SupervisedProcess(
                name=name,
                working_directory=Path(working_directory),
                log_path=log_path,
                pid=pid,
            )
            self.state.processes[name] = proc
            self.log.info("supervisor.started", name=name, pid=pid, log=str(log_path))
            return proc

    async def stop(self, name: str) -> bool:
        """Stop a supervised process. Unknown names are a no-op.

        The entry is removed even when the backend fails to stop it.

        Returns:
            True if a process was registered under name.

        Raises:
            NotRunning: If the backend could not stop the process.
        """
        async with self.state.hold(name):
            proc = self.state.processes.pop(name, None)
            if proc is None:
                return False
            try:
                await self.backend.stop(name)
            except NotRunning as e:
                self.log.warning("supervisor.stop_failed", name=name, reason=e.reason)
                raise
            self.log.info("supervisor.stopped", name=name, pid=proc.pid)
            return True

    async def for_each_running(self, visit: Visitor) -> None:
        """Call visit on a snapshot of the supervised processes."""
        for proc in self.state.snapshot():
            result = visit(proc)
            if inspect.isawaitable(result):
                await result

    async def stop_all(self) -> list[str]:
        """Stop every supervised process, isolating per-process failures.

        Returns:
            Names that were stopped cleanly.
        """
        stopped: list[str] = []

        async def _stop(proc: SupervisedProcess) -> None:
            try:
                if await self.stop(proc.name):
                    stopped.append(proc.name)
            except NotRunning:
                pass

        await self.for_each_running(_stop)
        return stopped

    async def _on_exit(self, name: str, pid: int, returncode: int) -> None:
        async with self.state.hold(name):
            proc = self.state.get(name)
            if proc is None or proc.pid != pid:
                return
            del self.state.processes[name]
        self.log.warning("supervisor.exited", name=name, pid=pid, returncode=returncode)
