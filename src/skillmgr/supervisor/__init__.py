"""
Process supervision -- running skills as OS processes with per-skill logs.
"""

from .adapter import ProcessSupervisor
from .backend import ProcessBackend, ProcessSpec, SubprocessBackend
from .state import SupervisedProcess, SupervisorState

__all__ = [
    "ProcessBackend",
    "ProcessSpec",
    "ProcessSupervisor",
    "SubprocessBackend",
    "SupervisedProcess",
    "SupervisorState",
]
