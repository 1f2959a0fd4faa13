"""Exception hierarchy for codexmod.

  - MalformedConfig: a TOML input (or the merged result) does not parse.
  - SessionNotObserved: no new session record appeared before the poll
    loop gave up or was cancelled.
  - LaunchError: the agent process could not be started.
"""

from __future__ import annotations


class CodexModError(Exception):
    """Base class for all codexmod errors."""


class MalformedConfig(CodexModError):
    """A structured config document failed to parse."""

    def __init__(self, source: str, detail: str) -> None:
        self.source = source
        self.detail = detail
        super().__init__(f"Malformed {source}: {detail}")


class SessionNotObserved(CodexModError):
    """No new session record was observed after launch."""

    def __init__(self, reason: str, attempts: int = 0) -> None:
        self.reason = reason  # "timeout" or "cancelled"
        self.attempts = attempts
        super().__init__(f"No new session observed ({reason} after {attempts} polls)")


class LaunchError(CodexModError):
    """The agent process could not be started."""
