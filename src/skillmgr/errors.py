"""
Error taxonomy for the skill manager.

Every failure the orchestration engine can surface derives from
SkillManagerError so the bus gateway can turn it into a readable reply.
"""

from dataclasses import dataclass

__all__ = [
    "BestEffort",
    "DirectoryUnavailable",
    "InstallFailed",
    "InstallInProgress",
    "MissingPackage",
    "NotRunning",
    "ShuttingDown",
    "SkillManagerError",
    "StartFailed",
]


class SkillManagerError(Exception):
    """Base error for skill manager operations."""

    code = "SkillManagerError"


class DirectoryUnavailable(SkillManagerError):
    """A skill root could not be listed."""

    code = "DirectoryUnavailable"

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Skill directory unavailable: {path} ({reason})")


class MissingPackage(SkillManagerError):
    """An install request arrived without a package identifier."""

    code = "MissingPackage"

    def __init__(self) -> None:
        super().__init__("No skill package found")


class InstallFailed(SkillManagerError):
    """Fetching or updating the package failed."""

    code = "InstallFailed"

    def __init__(self, package: str, reason: str):
        self.package = package
        self.reason = reason
        super().__init__(f"Failed to install {package}: {reason}")


class StartFailed(SkillManagerError):
    """The process backend could not launch a skill."""

    code = "StartFailed"

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to start {name}: {reason}")


class NotRunning(SkillManagerError):
    """A supervised process could not be stopped cleanly. Non-fatal."""

    code = "NotRunning"

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Could not stop {name}: {reason}")


class InstallInProgress(SkillManagerError):
    """Another install for the same skill name has not finished yet."""

    code = "InstallInProgress"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"An install of {name} is already in progress")


class ShuttingDown(SkillManagerError):
    """The manager stopped accepting install requests."""

    code = "ShuttingDown"

    def __init__(self) -> None:
        super().__init__("Skill manager is shutting down, try again later")


@dataclass(frozen=True)
class BestEffort:
    """Outcome of an operation whose failure is deliberately not propagated.

    Callers may inspect it or drop it; either way the failure has already
    been logged by the operation that produced it.
    """

    ok: bool
    error: str | None = None

    @classmethod
    def success(cls) -> "BestEffort":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: BaseException | str) -> "BestEffort":
        return cls(ok=False, error=str(error))
