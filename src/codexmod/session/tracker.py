"""Task session tracking file — remembers which Codex session to resume.

The file holds a single line ``<workdir>|<session_id>``: only the most
recent session of this workspace, never a history.  Writes go through a
temp file + rename so a concurrently starting process never reads a torn
line.

Key class: SessionTracker.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ..utils import atomic_write_text

logger = logging.getLogger(__name__)

_SEPARATOR = "|"


def _normalize_workdir(workdir: str | Path) -> str:
    return os.path.normpath(os.path.expanduser(str(workdir)))


class SessionTracker:
    """Reads and writes the workdir -> session id tracking file."""

    def __init__(self, tracking_file: Path) -> None:
        self.tracking_file = tracking_file

    def _read_entry(self) -> tuple[str, str] | None:
        try:
            raw = self.tracking_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        line = next((ln.strip() for ln in raw.splitlines() if ln.strip()), "")
        if not line:
            return None
        workdir, sep, session_id = line.rpartition(_SEPARATOR)
        if not sep or not workdir or not session_id:
            logger.warning("Ignoring unreadable tracking entry in %s", self.tracking_file)
            return None
        return workdir, session_id.strip()

    def lookup(self, workdir: str | Path) -> str | None:
        """Return the tracked session id for workdir, or None."""
        entry = self._read_entry()
        if entry is None:
            return None
        tracked_dir, session_id = entry
        if _normalize_workdir(tracked_dir) != _normalize_workdir(workdir):
            logger.info(
                "Tracked session %s belongs to %s, not %s; starting fresh",
                session_id,
                tracked_dir,
                workdir,
            )
            return None
        return session_id

    def record(self, workdir: str | Path, session_id: str) -> None:
        """Overwrite the tracking file with a single entry."""
        line = f"{_normalize_workdir(workdir)}{_SEPARATOR}{session_id}\n"
        atomic_write_text(self.tracking_file, line)
        logger.debug("Recorded session %s for %s", session_id, workdir)

    def clear(self) -> bool:
        """Delete the tracking file.  Returns True if it existed."""
        try:
            self.tracking_file.unlink()
        except FileNotFoundError:
            return False
        logger.info("Cleared session tracking file %s", self.tracking_file)
        return True
