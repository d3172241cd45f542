"""
Installation history -- append-only records sent to the persistent store.

The store is reached over the bus with a 'put' request; nothing here
reads records back.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import structlog

from ..bus.base import MessageBus

logger = structlog.get_logger()

__all__ = [
    "BusInstallHistory",
    "InstallHistory",
    "InstalledRecord",
]


@dataclass(frozen=True)
class InstalledRecord:
    package_identifier: str
    installed_path: Path
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "pkg": self.package_identifier,
            "path": str(self.installed_path),
            "timestamp": self.timestamp.isoformat(),
        }


class InstallHistory(Protocol):
    async def record(self, record: InstalledRecord) -> None: ...


class BusInstallHistory:
    """Appends InstalledRecord entries to the store service on the bus."""

    KEY_PREFIX = "skills/installed"

    def __init__(self, bus: MessageBus, store_key: str):
        self.bus = bus
        self.store_key = store_key

    async def record(self, record: InstalledRecord) -> None:
        key = (
            f"{self.KEY_PREFIX}/{record.timestamp.strftime('%Y%m%dT%H%M%S%fZ')}"
            f"/{record.installed_path.name}"
        )
        await self.bus.request(
            self.store_key,
            {"type": "put", "key": key, "value": record.to_dict()},
        )
        logger.debug("history.recorded", key=key, pkg=record.package_identifier)
