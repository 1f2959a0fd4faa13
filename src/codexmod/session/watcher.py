"""Session record discovery by polling Codex's sessions directory.

Codex does not report the id of a freshly started conversation.  It writes
a JSONL rollout file (``sessions/YYYY/MM/DD/rollout-<ts>-<uuid>.jsonl``)
some time after the process starts.  We snapshot the directory before
launch, then poll until a new file shows up and take the id from its name.

Key components:
  - SessionRecord: an observed session file.
  - SessionObserver: the narrow interface the continuity manager uses.
  - SessionDirectoryWatcher: filesystem-polling SessionObserver.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from ..errors import SessionNotObserved

logger = logging.getLogger(__name__)

_UUID_RE = re.compile(
    r"([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})$"
)


@dataclass(frozen=True)
class SessionRecord:
    """A session file created by the agent."""

    session_id: str
    path: Path
    created_at: datetime


class SessionObserver(Protocol):
    """Source of the session id for a process that is about to start."""

    def arm(self) -> None:
        """Capture the baseline; called right before the agent is launched."""
        ...

    def wait_for_session(
        self, cancel_event: threading.Event | None = None
    ) -> SessionRecord:
        """Block until a new session appears.  Raises SessionNotObserved."""
        ...


def session_id_from_name(filename: str) -> str:
    """Extract the session token embedded in a session file name."""
    stem = Path(filename).stem
    m = _UUID_RE.search(stem)
    return m.group(1) if m else stem


class SessionDirectoryWatcher:
    """Snapshots and diffs the session directory to spot new session files."""

    def __init__(
        self,
        sessions_dir: Path,
        poll_interval: float = 1.0,
        max_attempts: int = 30,
        pattern: str = "*.jsonl",
    ) -> None:
        self.sessions_dir = sessions_dir
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.pattern = pattern
        self._baseline: set[str] | None = None

    def snapshot(self) -> set[str]:
        """Relative paths of all session files currently on disk."""
        if not self.sessions_dir.is_dir():
            return set()
        return {
            p.relative_to(self.sessions_dir).as_posix()
            for p in self.sessions_dir.rglob(self.pattern)
            if p.is_file()
        }

    @staticmethod
    def diff(before: set[str], after: set[str]) -> set[str]:
        return after - before

    def arm(self) -> None:
        self._baseline = self.snapshot()
        logger.debug(
            "Session baseline: %d existing file(s) in %s",
            len(self._baseline),
            self.sessions_dir,
        )

    def _record_for(self, entry: str) -> SessionRecord:
        path = self.sessions_dir / entry
        try:
            mtime = path.stat().st_mtime
        except OSError:
            mtime = 0.0
        return SessionRecord(
            session_id=session_id_from_name(entry),
            path=path,
            created_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
        )

    def pick(self, entries: set[str]) -> SessionRecord:
        """Choose one record among new entries (latest mtime, then name)."""
        records = sorted(
            (self._record_for(e) for e in entries),
            key=lambda r: (r.created_at, r.path.as_posix()),
        )
        chosen = records[-1]
        if len(records) > 1:
            logger.warning(
                "Ambiguous session observation: %d new session files (%s); "
                "using the latest, %s",
                len(records),
                ", ".join(sorted(entries)),
                chosen.session_id,
            )
        return chosen

    def wait_for_session(
        self, cancel_event: threading.Event | None = None
    ) -> SessionRecord:
        """Poll until a new session file appears.

        Raises:
            SessionNotObserved: On timeout, or when ``cancel_event`` is set.
        """
        before = self._baseline if self._baseline is not None else set()
        event = cancel_event or threading.Event()

        for attempt in range(1, self.max_attempts + 1):
            new_entries = self.diff(before, self.snapshot())
            if new_entries:
                logger.debug("New session file(s) after %d poll(s)", attempt)
                return self.pick(new_entries)
            if attempt == self.max_attempts:
                break
            if event.wait(self.poll_interval):
                raise SessionNotObserved("cancelled", attempt)

        raise SessionNotObserved("timeout", self.max_attempts)
