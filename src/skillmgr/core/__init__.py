"""
Core -- lifecycle coordination and signal handling.
"""

from .coordinator import BootReport, LifecycleCoordinator
from .shutdown import EXIT_INTERRUPTED, GracefulShutdown

__all__ = [
    "BootReport",
    "EXIT_INTERRUPTED",
    "GracefulShutdown",
    "LifecycleCoordinator",
]
