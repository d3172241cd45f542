"""
Process backend -- launches and terminates skill processes.

SubprocessBackend runs each skill as an asyncio subprocess in its own
session (process group), with stdout and stderr appended to the skill's
log file. Stopping sends SIGTERM to the group and escalates to SIGKILL
after stop_timeout seconds. A watcher task per process reports exits that
stop() did not cause to the registered exit callback.
"""

import asyncio
import os
import signal
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog

from ..errors import NotRunning, StartFailed

logger = structlog.get_logger()

__all__ = [
    "ExitCallback",
    "ProcessBackend",
    "ProcessSpec",
    "SubprocessBackend",
]


# (name, pid, returncode)
ExitCallback = Callable[[str, int, int], Awaitable[None]]


@dataclass(frozen=True)
class ProcessSpec:
    name: str
    cwd: Path
    log_file: Path


class ProcessBackend(Protocol):
    async def start(self, spec: ProcessSpec) -> int: ...

    async def stop(self, name: str) -> None: ...

    def list_running(self) -> list[tuple[str, int]]: ...

    def watch_exits(self, callback: ExitCallback) -> None: ...


class SubprocessBackend:
    """Backend built on asyncio.create_subprocess_exec."""

    def __init__(self, entry_points: dict[str, list[str]], stop_timeout: float = 10.0):
        self.entry_points = entry_points
        self.stop_timeout = stop_timeout
        self._procs: dict[str, asyncio.subprocess.Process] = {}
        self._watchers: set[asyncio.Task] = set()
        self._on_exit: ExitCallback | None = None
        self.log = logger.bind(component="subprocess_backend")

    def resolve_command(self, name: str, cwd: Path) -> list[str]:
        """Return the command of the first entry file present in cwd.

        Raises:
            StartFailed: If the directory has no known entry point.
        """
        for entry, command in self.entry_points.items():
            if (cwd / entry).is_file():
                return list(command)
        known = ", ".join(self.entry_points) or "none configured"
        raise StartFailed(name, f"no entry point found in {cwd} (looked for: {known})")

    async def start(self, spec: ProcessSpec) -> int:
        current = self._procs.get(spec.name)
        if current is not None and current.returncode is None:
            raise StartFailed(spec.name, f"already running with pid {current.pid}")

        command = self.resolve_command(spec.name, spec.cwd)
        spec.log_file.parent.mkdir(parents=True, exist_ok=True)

        try:
            # The child keeps its own copy of the log descriptor
            with open(spec.log_file, "ab") as log_file:
                proc = await asyncio.create_subprocess_exec(
                    *command,
                    cwd=str(spec.cwd),
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=log_file,
                    stderr=asyncio.subprocess.STDOUT,
                    start_new_session=True,
                )
        except OSError as e:
            raise StartFailed(spec.name, f"cannot run {command[0]}: {e}") from e

        self._procs[spec.name] = proc
        watcher = asyncio.get_running_loop().create_task(self._watch(spec.name, proc))
        self._watchers.add(watcher)
        watcher.add_done_callback(self._watchers.discard)
        self.log.debug("backend.started", name=spec.name, pid=proc.pid, cmd=command)
        return proc.pid

    async def stop(self, name: str) -> None:
        """Terminate a process and forget it.

        Raises:
            NotRunning: If the name is unknown or the process already exited.
        """
        proc = self._procs.pop(name, None)
        if proc is None:
            raise NotRunning(name, "not started by this backend")
        if proc.returncode is not None:
            raise NotRunning(name, f"already exited with code {proc.returncode}")

        self._signal_group(proc, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.stop_timeout)
        except asyncio.TimeoutError:
            self.log.warning("backend.kill", name=name, pid=proc.pid, timeout=self.stop_timeout)
            self._signal_group(proc, signal.SIGKILL)
            await proc.wait()
        self.log.debug("backend.stopped", name=name, returncode=proc.returncode)

    def list_running(self) -> list[tuple[str, int]]:
        return [
            (name, proc.pid)
            for name, proc in self._procs.items()
            if proc.returncode is None
        ]

    def watch_exits(self, callback: ExitCallback) -> None:
        self._on_exit = callback

    async def _watch(self, name: str, proc: asyncio.subprocess.Process) -> None:
        returncode = await proc.wait()
        if self._procs.get(name) is not proc:
            return
        del self._procs[name]
        self.log.info("backend.exited", name=name, pid=proc.pid, returncode=returncode)
        if self._on_exit is not None:
            await self._on_exit(name, proc.pid, returncode)

    @staticmethod
    def _signal_group(proc: asyncio.subprocess.Process, sig: int) -> None:
        try:
            os.killpg(proc.pid, sig)
        except ProcessLookupError:
            pass
