"""
Install Pipeline -- stop, fetch, record and start one skill.

Steps:
1. Stop the running instance, if any (best-effort)
2. Fetch or update the package (failure -> InstallFailed)
3. Record the installation in the history (best-effort)
4. Start the freshly installed directory (failure -> StartFailed)

Progress is streamed through a caller-supplied notify sink. Installs of
the same skill name never overlap: a second request while one is running
fails with InstallInProgress. Different names install concurrently.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from ..errors import BestEffort, InstallFailed, InstallInProgress, NotRunning
from ..supervisor import ProcessSupervisor, SupervisedProcess
from .history import InstalledRecord, InstallHistory
from .installer import PackageInstaller

logger = structlog.get_logger()

__all__ = [
    "InstallOutcome",
    "InstallPipeline",
    "InstallRequest",
    "Notify",
]

Notify = Callable[[str], None]


def _discard(_: str) -> None:
    pass


@dataclass(frozen=True)
class InstallRequest:
    """An install command received from the bus. Consumed once."""

    package_identifier: str
    reply_target: Any = None


@dataclass(frozen=True)
class InstallOutcome:
    name: str
    path: Path
    process: SupervisedProcess
    stop: BestEffort
    record: BestEffort


class InstallPipeline:
    """Runs the four install steps for one package at a time per name."""

    def __init__(
        self,
        installer: PackageInstaller,
        supervisor: ProcessSupervisor,
        history: InstallHistory,
        skill_root: Path,
    ):
        self.installer = installer
        self.supervisor = supervisor
        self.history = history
        self.skill_root = Path(skill_root)
        self._in_progress: set[str] = set()
        self.log = logger.bind(component="install_pipeline")

    def in_progress(self, name: str) -> bool:
        return name in self._in_progress

    async def install(self, package_identifier: str, notify: Notify | None = None) -> InstallOutcome:
        """Install (or upgrade) a package and (re)start its process.

        Args:
            package_identifier: Opaque identifier passed to the installer.
            notify: Sink for human-readable progress messages.

        Returns:
            InstallOutcome with the running process.

        Raises:
            InstallInProgress: If the same skill is already being installed.
            InstallFailed: If the package could not be fetched.
            StartFailed: If the installed skill could not be started.
        """
        notify = notify or _discard
        name = self.installer.normalize(package_identifier).name

        # No await between the check and the add: this is atomic in the loop
        if name in self._in_progress:
            raise InstallInProgress(name)
        self._in_progress.add(name)

        try:
            stop = await self._stop_existing(name, notify)

            notify(f"Installing {package_identifier}...")
            path = await self._fetch(package_identifier)

            record = await self._record(package_identifier, path, notify)

            notify(f"Starting {package_identifier}...")
            process = await self.supervisor.start(name, path)
            notify(f"{package_identifier} is running")
        finally:
            self._in_progress.discard(name)

        self.log.info("pipeline.installed", name=name, path=str(path), pid=process.pid)
        return InstallOutcome(name=name, path=path, process=process, stop=stop, record=record)

    async def _stop_existing(self, name: str, notify: Notify) -> BestEffort:
        if not self.supervisor.is_running(name):
            return BestEffort.success()
        notify(f"Stopping {name}...")
        try:
            await self.supervisor.stop(name)
        except NotRunning as e:
            self.log.warning("pipeline.stop_failed", name=name, reason=e.reason)
            notify(f"Could not stop {name} cleanly ({e.reason}), continuing")
            return BestEffort.failure(e)
        return BestEffort.success()

    async def _fetch(self, package_identifier: str) -> Path:
        try:
            path = await asyncio.to_thread(
                self.installer.install, package_identifier, self.skill_root
            )
        except InstallFailed:
            raise
        except OSError as e:
            raise InstallFailed(package_identifier, str(e)) from e
        return Path(path)

    async def _record(self, package_identifier: str, path: Path, notify: Notify) -> BestEffort:
        try:
            await self.history.record(InstalledRecord(package_identifier, path))
        except Exception as e:
            self.log.warning("pipeline.record_failed", pkg=package_identifier, error=str(e))
            notify(f"Installed {package_identifier} but could not record it: {e}")
            return BestEffort.failure(e)
        return BestEffort.success()
