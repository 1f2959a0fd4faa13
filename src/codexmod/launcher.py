"""Agent process launchers.

A launcher starts Codex once and returns; it does not supervise the
process.  Two implementations:
  - SubprocessLauncher: detached child process, output appended to the
    start log.
  - TmuxLauncher: runs Codex in a named window of a tmux session via
    libtmux, so an operator can attach to it later.

Key protocol: Launcher.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Protocol

import libtmux
from libtmux.exc import LibTmuxException

from .errors import LaunchError

logger = logging.getLogger(__name__)


class Launcher(Protocol):
    def launch(
        self, argv: list[str], workdir: Path, env: dict[str, str] | None = None
    ) -> None: ...


class SubprocessLauncher:
    """Start the agent as a detached child process."""

    def __init__(self, log_file: Path) -> None:
        self.log_file = log_file

    def launch(
        self, argv: list[str], workdir: Path, env: dict[str, str] | None = None
    ) -> None:
        if not argv or shutil.which(argv[0]) is None:
            raise LaunchError(f"Command not found: {argv[0] if argv else '<empty>'}")

        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        merged_env = {**os.environ, **(env or {})}
        with open(self.log_file, "ab") as log:
            try:
                proc = subprocess.Popen(
                    argv,
                    cwd=workdir,
                    env=merged_env,
                    stdin=subprocess.DEVNULL,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
            except OSError as e:
                raise LaunchError(f"Failed to start {argv[0]}: {e}") from e
        logger.info("Started %s (pid=%d) in %s", argv[0], proc.pid, workdir)


class TmuxLauncher:
    """Start the agent inside a tmux window."""

    def __init__(self, session_name: str = "codex", window_name: str = "codex") -> None:
        self.session_name = session_name
        self.window_name = window_name
        self._server: libtmux.Server | None = None

    @property
    def server(self) -> libtmux.Server:
        """Get or create tmux server connection."""
        if self._server is None:
            self._server = libtmux.Server()
        return self._server

    def get_session(self) -> libtmux.Session | None:
        """Get the tmux session if it exists."""
        try:
            return self.server.sessions.get(session_name=self.session_name)
        except Exception:
            return None

    def launch(
        self, argv: list[str], workdir: Path, env: dict[str, str] | None = None
    ) -> None:
        if not shutil.which("tmux"):
            raise LaunchError("tmux is not installed.")

        # Secrets go through the tmux environment, never through the keystrokes
        environment = dict(env or {})
        command = shlex.join(argv)

        try:
            session = self.get_session()
            if session is None:
                session = self.server.new_session(
                    session_name=self.session_name,
                    window_name=self.window_name,
                    start_directory=str(workdir),
                    environment=environment,
                )
                window = session.windows[0]
            else:
                window = session.new_window(
                    window_name=self.window_name,
                    start_directory=str(workdir),
                    environment=environment,
                )
            pane = window.active_pane
            if pane is None:
                raise LaunchError(f"No active pane in tmux window '{self.window_name}'")
            pane.send_keys(command, enter=True)
        except LibTmuxException as e:
            raise LaunchError(f"Failed to start Codex in tmux: {e}") from e

        logger.info(
            "Started Codex in tmux window '%s:%s' at %s",
            self.session_name,
            self.window_name,
            workdir,
        )
