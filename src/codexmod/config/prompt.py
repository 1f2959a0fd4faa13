"""AGENTS.md management — idempotent injection of the system prompt.

Codex reads ``$CODEX_HOME/AGENTS.md`` at startup if it exists.  Other tools
(or a pre-install script) may already have written to it, so the prompt is
appended only when the exact text is not already contained in the file.

Key functions: inject_prompt(), read_prompt().
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def read_prompt(path: Path) -> str:
    """Read the prompt file, returning empty string if it doesn't exist."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""


def inject_prompt(path: Path, fragment: str) -> bool:
    """Create or append ``fragment`` to the prompt file.

    An empty fragment leaves the file untouched (absent stays absent).
    A fragment already contained verbatim is not appended again.

    Returns:
        True if the file was written, False otherwise.
    """
    if not fragment.strip():
        logger.debug("No system prompt configured; leaving %s untouched", path)
        return False

    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(fragment, encoding="utf-8")
        logger.info("Created prompt file %s", path)
        return True

    existing = path.read_text(encoding="utf-8")
    if fragment in existing:
        logger.info("System prompt already present in %s, skipping", path)
        return False

    separator = "" if not existing or existing.endswith("\n") else "\n"
    with open(path, "a", encoding="utf-8") as f:
        f.write(separator + fragment)
    logger.info("Appended system prompt to %s", path)
    return True
