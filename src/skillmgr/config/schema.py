"""
Pydantic models for skillmgr configuration.

Defines all configuration schemas using Pydantic v2 for validation,
defaults, and serialization. Paths are resolved once at startup and
never re-read afterwards.
"""

import sys
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


def _default_entry_points() -> dict[str, list[str]]:
    return {
        "main.py": [sys.executable, "main.py"],
        "index.js": ["node", "index.js"],
    }


class SkillsConfig(BaseModel):
    """Where skills live and how packages are fetched."""

    skill_folder: Path = Field(
        default=Path("skills"),
        description=(
            "User-writable skill root. Installed packages land here and "
            "override core skills with the same name."
        ),
    )
    core_dir: Path = Field(
        default=Path("core-skills"),
        description="Skills bundled with the service distribution.",
    )
    default_owner: str | None = Field(
        default=None,
        description=(
            "Owner prefixed to bare identifiers ('greeter' -> '<owner>/greeter'). "
            "If None, bare identifiers are rejected."
        ),
    )
    git_base_url: str = "https://github.com"
    git_timeout: int = Field(default=120, ge=1, le=3600, description="Timeout per git call in seconds")
    install_requirements: bool = Field(
        default=True,
        description="If True, pip-installs requirements.txt after fetching a skill.",
    )

    model_config = {"extra": "forbid"}


class SupervisorConfig(BaseModel):
    """Process supervision configuration."""

    logs_dir: Path = Field(
        default=Path("logs"),
        description="Each skill writes combined stdout/stderr to <logs_dir>/<name>.log",
    )
    entry_points: dict[str, list[str]] = Field(
        default_factory=_default_entry_points,
        description=(
            "Entry file -> command. The first file present in the skill "
            "directory decides how the skill is launched."
        ),
    )
    stop_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait after SIGTERM before sending SIGKILL.",
    )

    model_config = {"extra": "forbid"}

    @field_validator("entry_points")
    @classmethod
    def _commands_not_empty(cls, v: dict[str, list[str]]) -> dict[str, list[str]]:
        for entry, command in v.items():
            if not command:
                raise ValueError(f"Entry point '{entry}' has an empty command")
        return v


class BusConfig(BaseModel):
    """Service keys used on the message bus."""

    service_key: str = "everlife-skill-svc"
    relay_key: str = Field(
        default="everlife-communication-svc",
        description="Communication relay that routes chat commands to handlers.",
    )
    store_key: str = Field(
        default="everlife-db-svc",
        description="Persistent store that receives installation records.",
    )
    command_prefix: str = "/install"
    transport: Literal["http", "local"] = Field(
        default="http",
        description=(
            "'http' serves the service key over HTTP and reaches peers by URL. "
            "'local' keeps every message inside this process."
        ),
    )
    listen_host: str = "127.0.0.1"
    listen_port: int = Field(default=8760, ge=0, le=65535, description="0 picks a free port")
    peers: dict[str, str] = Field(
        default_factory=dict,
        description="Service key -> base URL of the process that responds on it.",
    )
    request_timeout: float = Field(default=30.0, gt=0, description="Seconds per bus request over HTTP")

    model_config = {"extra": "forbid"}

    @field_validator("command_prefix")
    @classmethod
    def _prefix_is_single_word(cls, v: str) -> str:
        if not v or any(c.isspace() for c in v):
            raise ValueError("command_prefix must be a single non-empty word")
        return v


class LoggingConfig(BaseModel):
    """Logging system configuration."""

    level: Literal["debug", "info", "human", "warn", "error"] = "human"
    file: Path | None = None
    verbose: int = 0

    model_config = {"extra": "forbid"}


class AppConfig(BaseModel):
    """Complete application configuration.

    This is the root of the configuration tree. It combines all sections
    and is the entry point for validation.
    """

    skills: SkillsConfig = Field(default_factory=SkillsConfig)
    supervisor: SupervisorConfig = Field(default_factory=SupervisorConfig)
    bus: BusConfig = Field(default_factory=BusConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid"}
