"""
Directory Reconciler -- Merges the core and user skill roots.

Two sources:
1. Core skills (bundled with the service distribution)
2. User skills (installed into the user-writable skill folder)

A user skill overrides a core skill with the same directory name. A root
that cannot be listed is reported and skipped; the other one still counts.
"""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog

from ..errors import DirectoryUnavailable

logger = structlog.get_logger()

__all__ = [
    "ReconcileResult",
    "SkillDescriptor",
    "SkillOrigin",
    "iter_skill_dirs",
    "reconcile",
]


class SkillOrigin(Enum):
    """Where a skill directory was found."""

    CORE = "core"
    USER = "user"


@dataclass(frozen=True)
class SkillDescriptor:
    """A skill found on disk. Identity is the directory name."""

    name: str
    source_path: Path
    origin: SkillOrigin


@dataclass
class ReconcileResult:
    """Deduplicated descriptors plus the roots that could not be listed."""

    descriptors: list[SkillDescriptor] = field(default_factory=list)
    errors: list[DirectoryUnavailable] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [d.name for d in self.descriptors]


def iter_skill_dirs(root: Path, origin: SkillOrigin) -> Iterator[SkillDescriptor]:
    """Yield one descriptor per immediate subdirectory of root.

    Non-directory and hidden entries are skipped. The listing itself is
    done up front so an unreadable root fails before anything is yielded.

    Raises:
        DirectoryUnavailable: If root is missing or cannot be listed.
    """
    try:
        entries = list(Path(root).iterdir())
    except OSError as e:
        raise DirectoryUnavailable(root, e.strerror or str(e)) from e

    for entry in entries:
        if entry.name.startswith("."):
            continue
        if not entry.is_dir():
            continue
        yield SkillDescriptor(name=entry.name, source_path=entry, origin=origin)


def reconcile(core_root: Path, user_root: Path) -> ReconcileResult:
    """Merge both roots into one list, one descriptor per name, user first.

    Args:
        core_root: Directory holding the bundled skills.
        user_root: Directory holding user-installed skills.

    Returns:
        ReconcileResult with the merged descriptors and per-root errors.
    """
    result = ReconcileResult()
    by_name: dict[str, SkillDescriptor] = {}

    for root, origin in ((user_root, SkillOrigin.USER), (core_root, SkillOrigin.CORE)):
        try:
            for descriptor in iter_skill_dirs(root, origin):
                existing = by_name.get(descriptor.name)
                if existing is None:
                    by_name[descriptor.name] = descriptor
                elif existing.origin != descriptor.origin:
                    logger.debug(
                        "reconcile.core_overridden",
                        skill=descriptor.name,
                        user_path=str(existing.source_path),
                    )
        except DirectoryUnavailable as e:
            logger.warning(
                "reconcile.root_unavailable",
                path=str(root),
                origin=origin.value,
                reason=e.reason,
            )
            result.errors.append(e)

    result.descriptors = list(by_name.values())
    logger.info(
        "reconcile.done",
        count=len(result.descriptors),
        names=result.names,
    )
    return result
