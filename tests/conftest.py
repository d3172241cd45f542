"""
Fakes compartidos para los tests del skill manager.

- FakeBackend: backend de procesos en memoria (registra start/stop)
- FakeInstaller: GitPackageInstaller sin git (crea el directorio destino)
- RecordingHistory: historial que guarda los registros en una lista
"""

import time
from pathlib import Path

import pytest

from skillmgr.errors import InstallFailed, NotRunning, StartFailed
from skillmgr.skills.installer import GitPackageInstaller
from skillmgr.supervisor import ProcessSpec


class FakeBackend:
    def __init__(self, events: list[str] | None = None):
        self.events = events if events is not None else []
        self.started: list[ProcessSpec] = []
        self.stopped: list[str] = []
        self.running: dict[str, int] = {}
        self.fail_start: set[str] = set()
        self.fail_stop: set[str] = set()
        self._next_pid = 1000
        self._on_exit = None

    async def start(self, spec: ProcessSpec) -> int:
        self.events.append(f"start:{spec.name}")
        if spec.name in self.fail_start:
            raise StartFailed(spec.name, "boom")
        if spec.name in self.running:
            raise StartFailed(spec.name, "already running")
        self._next_pid += 1
        self.started.append(spec)
        self.running[spec.name] = self._next_pid
        return self._next_pid

    async def stop(self, name: str) -> None:
        self.events.append(f"stop:{name}")
        self.stopped.append(name)
        self.running.pop(name, None)
        if name in self.fail_stop:
            raise NotRunning(name, "refused to die")

    def list_running(self) -> list[tuple[str, int]]:
        return list(self.running.items())

    def watch_exits(self, callback) -> None:
        self._on_exit = callback

    async def crash(self, name: str, returncode: int = 1) -> None:
        """Simulate a skill exiting on its own."""
        pid = self.running.pop(name)
        self.events.append(f"exit:{name}")
        if self._on_exit is not None:
            await self._on_exit(name, pid, returncode)


class FakeInstaller(GitPackageInstaller):
    """Real normalization, no git: install just creates <root>/<name>."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.calls: list[tuple[str, Path]] = []
        self.fail_with: str | None = None
        self.delay = 0.0

    def install(self, identifier: str, destination_root: Path) -> Path:
        self.calls.append((identifier, Path(destination_root)))
        if self.delay:
            time.sleep(self.delay)
        if self.fail_with:
            raise InstallFailed(identifier, self.fail_with)
        dest = Path(destination_root) / self.normalize(identifier).name
        dest.mkdir(parents=True, exist_ok=True)
        (dest / "main.py").write_text("print('hi')\n")
        return dest


class RecordingHistory:
    def __init__(self):
        self.records = []
        self.fail = False

    async def record(self, record) -> None:
        if self.fail:
            raise RuntimeError("store down")
        self.records.append(record)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fake_installer() -> FakeInstaller:
    return FakeInstaller()


@pytest.fixture
def history() -> RecordingHistory:
    return RecordingHistory()
