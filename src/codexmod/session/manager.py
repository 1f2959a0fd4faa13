"""Session continuity — decides between resuming and starting Codex fresh.

State machine (one run per agent start):

    INIT -> RESUMING -> RUNNING -> TRACKING     tracked session found
    INIT -> STARTING -> RUNNING -> TRACKING     new session observed + recorded
    INIT -> STARTING -> RUNNING -> UNTRACKED    continuity off, timeout, cancel

The manager launches the agent exactly once and never supervises it;
observing the new session id is best-effort and never fatal.

Key classes: ContinuityManager, LaunchContext, LaunchResult.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..errors import SessionNotObserved
from ..launcher import Launcher
from .tracker import SessionTracker
from .watcher import SessionObserver

logger = logging.getLogger(__name__)


class ContinuityState(str, Enum):
    INIT = "init"
    RESUMING = "resuming"
    STARTING = "starting"
    RUNNING = "running"
    TRACKING = "tracking"
    UNTRACKED = "untracked"


@dataclass(frozen=True)
class LaunchContext:
    """Everything the manager needs about the current workspace."""

    workdir: Path
    model: str = ""
    prompt: str = ""
    continuity_enabled: bool = True
    codex_command: str = "codex"
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class LaunchResult:
    """Outcome of one start: final state, path taken and what was launched."""

    state: ContinuityState
    argv: list[str]
    session_id: str | None = None
    reason: str = ""
    history: list[ContinuityState] = field(default_factory=list)

    @property
    def resumed(self) -> bool:
        return ContinuityState.RESUMING in self.history


def build_codex_args(
    model: str, resume_session_id: str | None = None, prompt: str = ""
) -> list[str]:
    """Codex arguments for a resume (no prompt) or a fresh start."""
    args: list[str] = []
    if model:
        args.extend(["--model", model])
    if resume_session_id:
        args.extend(["resume", resume_session_id])
    elif prompt:
        args.append(prompt)
    return args


class ContinuityManager:
    """Launches Codex, resuming the tracked session when there is one."""

    def __init__(
        self,
        tracker: SessionTracker,
        observer: SessionObserver,
        launcher: Launcher,
    ) -> None:
        self.tracker = tracker
        self.observer = observer
        self.launcher = launcher

    def _launch(self, ctx: LaunchContext, args: list[str]) -> list[str]:
        logger.info("Starting Codex with arguments: %s", " ".join(args))
        argv = [ctx.codex_command, *args]
        self.launcher.launch(argv, ctx.workdir, ctx.env)
        return argv

    def start(
        self, ctx: LaunchContext, cancel_event: threading.Event | None = None
    ) -> LaunchResult:
        """Run the state machine once.

        Raises:
            LaunchError: If the launcher cannot start the agent.
        """
        history = [ContinuityState.INIT]

        if not ctx.continuity_enabled:
            logger.info("Session continuity disabled, starting fresh")
            history.append(ContinuityState.STARTING)
            argv = self._launch(ctx, build_codex_args(ctx.model, prompt=ctx.prompt))
            history += [ContinuityState.RUNNING, ContinuityState.UNTRACKED]
            return LaunchResult(
                ContinuityState.UNTRACKED, argv, reason="continuity disabled", history=history
            )

        session_id = self.tracker.lookup(ctx.workdir)
        if session_id:
            logger.info("Found existing task session: %s", session_id)
            logger.info("Resuming existing session")
            history.append(ContinuityState.RESUMING)
            argv = self._launch(ctx, build_codex_args(ctx.model, resume_session_id=session_id))
            history += [ContinuityState.RUNNING, ContinuityState.TRACKING]
            return LaunchResult(
                ContinuityState.TRACKING, argv, session_id=session_id, history=history
            )

        logger.info("No existing task session for %s, starting new session", ctx.workdir)
        history.append(ContinuityState.STARTING)
        self.observer.arm()
        argv = self._launch(ctx, build_codex_args(ctx.model, prompt=ctx.prompt))
        history.append(ContinuityState.RUNNING)

        logger.info("Capturing new session ID")
        try:
            record = self.observer.wait_for_session(cancel_event)
        except SessionNotObserved as e:
            logger.warning("Session not tracked: %s; Codex keeps running without continuity", e)
            history.append(ContinuityState.UNTRACKED)
            return LaunchResult(
                ContinuityState.UNTRACKED, argv, reason=e.reason, history=history
            )

        self.tracker.record(ctx.workdir, record.session_id)
        logger.info("Session tracked: %s", record.session_id)
        history.append(ContinuityState.TRACKING)
        return LaunchResult(
            ContinuityState.TRACKING, argv, session_id=record.session_id, history=history
        )
