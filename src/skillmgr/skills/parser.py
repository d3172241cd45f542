"""Command Parser -- recognizes '/install <identifier>' in chat messages."""

import re
from dataclasses import dataclass
from enum import Enum

__all__ = [
    "ParseStatus",
    "ParsedCommand",
    "parse_command",
]

DEFAULT_PREFIX = "/install"


class ParseStatus(Enum):
    MATCH = "match"
    MISSING_TARGET = "missing_target"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class ParsedCommand:
    status: ParseStatus
    identifier: str | None = None

    @property
    def matched(self) -> bool:
        return self.status is ParseStatus.MATCH


_NO_MATCH = ParsedCommand(ParseStatus.NO_MATCH)
_MISSING_TARGET = ParsedCommand(ParseStatus.MISSING_TARGET)


def parse_command(text: str | None, prefix: str = DEFAULT_PREFIX) -> ParsedCommand:
    """Parse an install command out of a chat message.

    The prefix is case-insensitive and must be followed by whitespace or
    the end of the message ('/installfoo' is not a command).

    Args:
        text: Raw message text.
        prefix: Command word, '/install' by default.

    Returns:
        MATCH with the stripped identifier, MISSING_TARGET if the argument
        is empty, NO_MATCH otherwise.
    """
    if not text:
        return _NO_MATCH

    m = re.match(
        rf"^\s*{re.escape(prefix)}(?:\s+(.*))?\s*$",
        text,
        re.IGNORECASE | re.DOTALL,
    )
    if not m:
        return _NO_MATCH

    target = (m.group(1) or "").strip()
    if not target:
        return _MISSING_TARGET
    return ParsedCommand(ParseStatus.MATCH, target)
