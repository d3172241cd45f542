"""
Configuration module for skillmgr.

Exports the main components for convenient imports.
"""

from .loader import load_config
from .schema import (
    AppConfig,
    BusConfig,
    LoggingConfig,
    SkillsConfig,
    SupervisorConfig,
)

__all__ = [
    "load_config",
    "AppConfig",
    "BusConfig",
    "LoggingConfig",
    "SkillsConfig",
    "SupervisorConfig",
]
