"""
Message bus -- contract, transports (in-process and HTTP) and the skill
service gateway.

The gateway lives in skillmgr.bus.gateway; it depends on the skills
package, which itself imports the bus contract from here.
"""

from .base import BusClosed, BusError, Handler, MessageBus, NoResponder
from .http import HttpBus
from .local import LocalBus

__all__ = [
    "BusClosed",
    "BusError",
    "Handler",
    "HttpBus",
    "LocalBus",
    "MessageBus",
    "NoResponder",
]
