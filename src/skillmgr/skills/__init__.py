"""
Skills -- discovery, install commands and the install pipeline.
"""

from .history import BusInstallHistory, InstalledRecord, InstallHistory
from .installer import GitPackageInstaller, PackageInstaller, PackageRef
from .parser import ParsedCommand, ParseStatus, parse_command
from .pipeline import InstallOutcome, InstallPipeline, InstallRequest, Notify
from .reconciler import (
    ReconcileResult,
    SkillDescriptor,
    SkillOrigin,
    iter_skill_dirs,
    reconcile,
)

__all__ = [
    "BusInstallHistory",
    "GitPackageInstaller",
    "InstallHistory",
    "InstallOutcome",
    "InstallPipeline",
    "InstallRequest",
    "InstalledRecord",
    "Notify",
    "PackageInstaller",
    "PackageRef",
    "ParseStatus",
    "ParsedCommand",
    "ReconcileResult",
    "SkillDescriptor",
    "SkillOrigin",
    "iter_skill_dirs",
    "parse_command",
    "reconcile",
]
