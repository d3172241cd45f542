"""
HUMAN logging level -- Readable progress of the skill manager.

Custom level between INFO (20) and WARNING (30). It does not indicate
severity: it marks the progress narrative an operator follows
("Installing X...", "Starting X...") without the technical noise.

Hierarchy:
    debug  (10) -> backend commands, bus payloads
    info   (20) -> system operations (config loaded, handler registered)
    human  (25) -> * what the manager does: install, start, stop
    warn   (30) -> non-fatal problems (stop failed, record failed)
    error  (40) -> errors
"""

import logging

import structlog

HUMAN = 25
logging.addLevelName(HUMAN, "HUMAN")


def _human_method(self, message, *args, **kwargs):
    if self.isEnabledFor(HUMAN):
        self._log(HUMAN, message, args, **kwargs)


logging.Logger.human = _human_method

# Register the level in structlog to avoid KeyError: 25
try:
    structlog.stdlib.LEVEL_TO_NAME[HUMAN] = "human"
except AttributeError:
    pass
