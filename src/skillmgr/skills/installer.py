"""
Skills Installer -- Fetches and updates skill packages with git.

Supports identifiers of the form:
- owner/repo (resolved against the configured git base URL)
- repo (only if a default owner is configured)
- https://..., ssh://..., file://... and git@host:owner/repo URLs
- local paths to a git repository (/abs, ./rel, ~/home)

The canonical skill name is 'owner-repo' (or the last path segment for
local paths); it names both the install directory and the process.
"""

import re
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import structlog

from ..errors import InstallFailed

logger = structlog.get_logger()

__all__ = [
    "GitPackageInstaller",
    "PackageInstaller",
    "PackageRef",
]

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")


@dataclass(frozen=True)
class PackageRef:
    """Normalized form of a package identifier."""

    identifier: str
    name: str
    source: str


class PackageInstaller(Protocol):
    """Fetch/update collaborator used by the install pipeline."""

    def normalize(self, identifier: str) -> PackageRef: ...

    def install(self, identifier: str, destination_root: Path) -> Path: ...

    def update(self, local_path: Path) -> None: ...


class GitPackageInstaller:
    """Installs skills by cloning git repositories, updates them with pull."""

    def __init__(
        self,
        base_url: str = "https://github.com",
        default_owner: str | None = None,
        timeout: int = 120,
        install_requirements: bool = True,
    ):
        self.base_url = base_url.rstrip("/")
        self.default_owner = default_owner
        self.timeout = timeout
        self.install_requirements = install_requirements
        self.log = logger.bind(component="git_installer")

    def normalize(self, identifier: str) -> PackageRef:
        """Derive the canonical name and clone source of an identifier.

        Raises:
            InstallFailed: If the identifier cannot be resolved.
        """
        ident = identifier.strip()
        if not ident:
            raise InstallFailed(identifier, "empty package identifier")

        if ident.startswith(("/", "./", "../", "~")):
            path = Path(ident).expanduser()
            name = _strip_git_suffix(path.name)
            return PackageRef(identifier=ident, name=self._checked(ident, name), source=str(path))

        if "://" in ident:
            parts = [p for p in ident.split("://", 1)[1].split("/") if p]
            # parts[0] is the host, except for file:// URLs
            segments = parts[1:] if not ident.startswith("file://") else parts
            return self._ref_from_segments(ident, segments, source=ident)

        if ident.startswith("git@") and ":" in ident:
            segments = [p for p in ident.split(":", 1)[1].split("/") if p]
            return self._ref_from_segments(ident, segments, source=ident)

        segments = ident.split("/")
        if len(segments) == 1:
            if not self.default_owner:
                raise InstallFailed(
                    ident, "no owner given and no default owner configured (use owner/repo)"
                )
            segments = [self.default_owner, segments[0]]
        if len(segments) != 2 or not all(segments):
            raise InstallFailed(ident, "expected owner/repo")

        owner, repo = segments[0], _strip_git_suffix(segments[1])
        name = self._checked(ident, f"{owner}-{repo}")
        return PackageRef(
            identifier=ident,
            name=name,
            source=f"{self.base_url}/{owner}/{repo}.git",
        )

    def install(self, identifier: str, destination_root: Path) -> Path:
        """Clone the package under destination_root, or update it if present.

        Args:
            identifier: Package identifier (see module docstring).
            destination_root: Skill root; the package lands in <root>/<name>.

        Returns:
            Path of the installed skill directory.

        Raises:
            InstallFailed: If git (or the requirements install) fails.
        """
        ref = self.normalize(identifier)
        dest = Path(destination_root) / ref.name

        if (dest / ".git").exists():
            self.update(dest)
        elif dest.exists():
            raise InstallFailed(ref.identifier, f"{dest} exists and is not a git checkout")
        else:
            dest.parent.mkdir(parents=True, exist_ok=True)
            try:
                self._run(
                    ["git", "clone", "--depth", "1", ref.source, str(dest)],
                    package=ref.identifier,
                )
            except InstallFailed:
                shutil.rmtree(dest, ignore_errors=True)
                raise
            self.log.info("installer.cloned", skill=ref.name, source=ref.source)

        self._install_requirements(ref, dest)
        return dest

    def update(self, local_path: Path) -> None:
        """Fast-forward an existing checkout to the latest upstream version."""
        self._run(
            ["git", "-C", str(local_path), "pull", "--ff-only"],
            package=Path(local_path).name,
        )
        self.log.info("installer.updated", path=str(local_path))

    def _install_requirements(self, ref: PackageRef, dest: Path) -> None:
        requirements = dest / "requirements.txt"
        if not self.install_requirements or not requirements.exists():
            return
        self._run(
            [sys.executable, "-m", "pip", "install", "--quiet", "-r", str(requirements)],
            package=ref.identifier,
        )
        self.log.info("installer.requirements_installed", skill=ref.name)

    def _run(self, cmd: list[str], package: str) -> subprocess.CompletedProcess:
        self.log.debug("installer.exec", cmd=cmd)
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            self.log.error("installer.timeout", cmd=cmd[:3], package=package)
            raise InstallFailed(package, f"'{cmd[0]}' timed out after {self.timeout}s")
        except OSError as e:
            raise InstallFailed(package, f"cannot run '{cmd[0]}': {e}") from e

        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            self.log.error(
                "installer.command_failed",
                cmd=cmd[:3],
                package=package,
                stderr=stderr[:200],
            )
            raise InstallFailed(package, stderr[:200] or f"exit code {proc.returncode}")
        return proc

    def _ref_from_segments(self, ident: str, segments: list[str], source: str) -> PackageRef:
        if not segments:
            raise InstallFailed(ident, "URL has no repository path")
        repo = _strip_git_suffix(segments[-1])
        name = f"{segments[-2]}-{repo}" if len(segments) >= 2 else repo
        return PackageRef(identifier=ident, name=self._checked(ident, name), source=source)

    @staticmethod
    def _checked(ident: str, name: str) -> str:
        if not name or name in (".", "..") or not _SEGMENT_RE.match(name):
            raise InstallFailed(ident, f"invalid skill name '{name}'")
        return name


def _strip_git_suffix(segment: str) -> str:
    return segment[:-4] if segment.endswith(".git") else segment
