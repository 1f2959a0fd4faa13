"""Shared helpers — default directories and atomic file writes.

Key functions: codex_home_dir(), module_dir(), atomic_write_text().
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def codex_home_dir() -> Path:
    """Resolve the Codex home directory ($CODEX_HOME or ~/.codex)."""
    raw = os.environ.get("CODEX_HOME", "")
    if raw:
        return Path(os.path.expanduser(raw))
    return Path.home() / ".codex"


def module_dir() -> Path:
    """Resolve the module state directory ($CODEX_MODULE_DIR or ~/.codex-module)."""
    raw = os.environ.get("CODEX_MODULE_DIR", "")
    if raw:
        return Path(os.path.expanduser(raw))
    return Path.home() / ".codex-module"


def atomic_write_text(path: Path, content: str) -> None:
    """Write content to path via a temp file in the same directory + rename.

    Readers see either the old file or the complete new one, never a
    half-written file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink(missing_ok=True)
    logger.debug("Wrote %s (%d bytes)", path, len(content))
