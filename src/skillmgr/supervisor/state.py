"""Shared supervision state: the name -> running process mapping."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

__all__ = ["SupervisedProcess", "SupervisorState"]


@dataclass
class SupervisedProcess:
    """A skill process under supervision. pid is set while it runs."""

    name: str
    working_directory: Path
    log_path: Path
    pid: int | None = None


class SupervisorState:
    """Single owner of the running-process mapping.

    One instance is created at startup and injected wherever supervision
    state is needed. Mutation goes through ProcessSupervisor, which holds
    the per-name lock around every start, stop and exit.
    """

    def __init__(self) -> None:
        self.processes: dict[str, SupervisedProcess] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, name: str) -> AsyncIterator[None]:
        """Serialize work on one name.

        The lock exists only while someone holds or waits for it.
        """
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()
        self._holders[name] = self._holders.get(name, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[name] -= 1
            if not self._holders[name]:
                del self._holders[name]
                del self._locks[name]

    def get(self, name: str) -> SupervisedProcess | None:
        return self.processes.get(name)

    def snapshot(self) -> list[SupervisedProcess]:
        return list(self.processes.values())

    def __contains__(self, name: object) -> bool:
        return name in self.processes

    def __len__(self) -> int:
        return len(self.processes)
