"""
Lifecycle Coordinator -- boot, serve and shut down the skill manager.

Boot order:
1. Ensure the user skill root and logs root exist
2. Reconcile core and user skill directories
3. Start every discovered skill from where it sits on disk
4. Only then open the bus gateway and announce to the relay

Install requests therefore never race with the initial bulk start. A skill
that fails to start is reported and skipped; failing to open the gateway
aborts the boot.
"""

from dataclasses import dataclass, field
from pathlib import Path

import structlog

from ..bus.base import MessageBus
from ..bus.http import HttpBus
from ..bus.gateway import BusGateway
from ..bus.local import LocalBus
from ..config.schema import AppConfig, BusConfig
from ..errors import StartFailed
from ..logging.human import HumanLog
from ..skills.history import BusInstallHistory
from ..skills.installer import GitPackageInstaller
from ..skills.pipeline import InstallPipeline
from ..skills.reconciler import SkillDescriptor, reconcile
from ..supervisor import ProcessSupervisor, SubprocessBackend, SupervisorState
from .shutdown import GracefulShutdown

logger = structlog.get_logger()

__all__ = ["BootReport", "LifecycleCoordinator", "make_bus"]


def make_bus(config: BusConfig) -> MessageBus:
    """Build the transport selected by bus.transport.

    Keys the manager talks to (relay and store) without a peer URL only
    produce a warning: installs still work, announcements and records fail.
    """
    if config.transport == "local":
        logger.warning(
            "coordinator.local_bus",
            key=config.service_key,
            message="bus.transport is local: no other process can reach this service",
        )
        return LocalBus()

    missing = [key for key in (config.relay_key, config.store_key) if key not in config.peers]
    if missing:
        logger.warning("coordinator.peers_missing", keys=missing)
    return HttpBus(config)


@dataclass
class BootReport:
    """Per-skill outcome of the boot sequence."""

    started: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    unavailable_roots: list[str] = field(default_factory=list)


class LifecycleCoordinator:
    def __init__(
        self,
        config: AppConfig,
        bus: MessageBus,
        supervisor: ProcessSupervisor,
        gateway: BusGateway,
        hlog: HumanLog | None = None,
    ):
        self.config = config
        self.bus = bus
        self.supervisor = supervisor
        self.gateway = gateway
        self.hlog = hlog or HumanLog()
        self.log = logger.bind(component="coordinator")

    @classmethod
    def from_config(cls, config: AppConfig, bus: MessageBus | None = None) -> "LifecycleCoordinator":
        """Wire the default collaborators from configuration."""
        bus = bus or make_bus(config.bus)
        hlog = HumanLog()
        state = SupervisorState()
        backend = SubprocessBackend(
            entry_points=config.supervisor.entry_points,
            stop_timeout=config.supervisor.stop_timeout,
        )
        supervisor = ProcessSupervisor(backend, state, config.supervisor.logs_dir)
        installer = GitPackageInstaller(
            base_url=config.skills.git_base_url,
            default_owner=config.skills.default_owner,
            timeout=config.skills.git_timeout,
            install_requirements=config.skills.install_requirements,
        )
        history = BusInstallHistory(bus, config.bus.store_key)
        pipeline = InstallPipeline(installer, supervisor, history, config.skills.skill_folder)
        gateway = BusGateway(bus, pipeline, config.bus, hlog=hlog)
        return cls(config, bus, supervisor, gateway, hlog=hlog)

    async def boot(self) -> BootReport:
        """Start all discovered skills, then open the gateway.

        Raises:
            Exception: Whatever prevented the gateway from opening.
        """
        skills_cfg = self.config.skills
        Path(skills_cfg.skill_folder).mkdir(parents=True, exist_ok=True)
        Path(self.config.supervisor.logs_dir).mkdir(parents=True, exist_ok=True)

        report = BootReport()
        result = reconcile(skills_cfg.core_dir, skills_cfg.skill_folder)
        for error in result.errors:
            report.unavailable_roots.append(str(error.path))
            self.hlog.root_skipped(str(error.path))

        self.hlog.boot_start(len(result.descriptors))
        for descriptor in result.descriptors:
            await self._start_skill(descriptor, report)

        self.log.info(
            "coordinator.skills_started",
            started=len(report.started),
            failed=len(report.failed),
        )

        await self.gateway.open()
        self.gateway.announce()
        return report

    async def shutdown(self) -> list[str]:
        """Close the gateway, stop every supervised process, then close the bus.

        Installs already in flight finish first; new ones are refused.
        """
        await self.gateway.close()
        self.hlog.shutdown(len(self.supervisor.running()))
        stopped = await self.supervisor.stop_all()
        await self.bus.close()
        self.log.info("coordinator.shutdown_complete", stopped=stopped)
        return stopped

    async def run(self, signals: GracefulShutdown | None = None) -> BootReport:
        """Boot, wait for SIGINT/SIGTERM, then shut down before returning."""
        signals = signals or GracefulShutdown()
        try:
            report = await self.boot()
            await signals.wait()
        finally:
            await self.shutdown()
            signals.restore_defaults()
        return report

    async def _start_skill(self, descriptor: SkillDescriptor, report: BootReport) -> None:
        try:
            proc = await self.supervisor.start(descriptor.name, descriptor.source_path)
        except StartFailed as e:
            self.log.error(
                "coordinator.start_failed",
                skill=descriptor.name,
                origin=descriptor.origin.value,
                reason=e.reason,
            )
            self.hlog.boot_failed(descriptor.name, e.reason)
            report.failed[descriptor.name] = e.reason
            return
        report.started.append(descriptor.name)
        self.hlog.boot_started(descriptor.name, proc.pid)
