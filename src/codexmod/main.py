"""Application entry point — CLI dispatcher for provisioning and starting Codex.

Execution modes:
  1. `codexmod assemble` — write config.toml + AGENTS.md.
  2. `codexmod start` — launch Codex, resuming the tracked session if any.
  3. `codexmod forget` — drop the tracked session so the next start is fresh.
  4. Default — assemble, then start (the normal provisioning run).

Exit status is 1 on invalid settings, malformed TOML or a failed launch.
"""

import logging
import signal
import sys
import threading

from .errors import LaunchError, MalformedConfig
from .settings import ModuleConfig

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def _assemble(cfg: ModuleConfig) -> None:
    from .config.assembler import CodexConfigAssembler

    assembler = CodexConfigAssembler(
        config_path=cfg.config_file,
        prompt_path=cfg.prompt_file,
        base_config_toml=cfg.base_config_toml,
        additional_mcp_servers=cfg.additional_mcp_servers,
        system_prompt=cfg.system_prompt,
        app_status_slug=cfg.app_status_slug,
        agentapi_url=cfg.agentapi_url,
    )
    assembler.write()


def _build_launcher(cfg: ModuleConfig):
    from .launcher import SubprocessLauncher, TmuxLauncher

    if cfg.launcher == "tmux":
        return TmuxLauncher(session_name=cfg.tmux_session_name)
    return SubprocessLauncher(cfg.start_log_file)


def _start(cfg: ModuleConfig, cancel_event: threading.Event | None = None):
    from .session.manager import ContinuityManager, LaunchContext
    from .session.tracker import SessionTracker
    from .session.watcher import SessionDirectoryWatcher

    cfg.module_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(cfg.start_log_file, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    pkg_logger = logging.getLogger("codexmod")
    pkg_logger.addHandler(file_handler)
    # The start log records the launch decision even when run without main()
    if pkg_logger.getEffectiveLevel() > logging.INFO:
        pkg_logger.setLevel(logging.INFO)

    try:
        logger.info("Workdir: %s", cfg.workdir)
        logger.info(
            "OpenAI API Key: %s", "Provided" if cfg.openai_api_key else "Not provided"
        )

        env = {}
        if cfg.openai_api_key:
            env["OPENAI_API_KEY"] = cfg.openai_api_key

        manager = ContinuityManager(
            tracker=SessionTracker(cfg.tracking_file),
            observer=SessionDirectoryWatcher(
                cfg.sessions_dir,
                poll_interval=cfg.session_poll_interval,
                max_attempts=cfg.session_poll_attempts,
            ),
            launcher=_build_launcher(cfg),
        )
        ctx = LaunchContext(
            workdir=cfg.workdir,
            model=cfg.model,
            prompt=cfg.task_prompt,
            continuity_enabled=cfg.continue_session,
            codex_command=cfg.codex_command,
            env=env,
        )
        result = manager.start(ctx, cancel_event)
        logger.info("Codex started (%s)", result.state.value)
        return result
    finally:
        pkg_logger.removeHandler(file_handler)
        file_handler.close()


def _forget(cfg: ModuleConfig) -> None:
    from .session.tracker import SessionTracker

    if SessionTracker(cfg.tracking_file).clear():
        print("Tracked session cleared; the next start begins a new session.")
    else:
        print("No tracked session.")


def main() -> None:
    """Main entry point."""
    command = sys.argv[1] if len(sys.argv) > 1 else ""
    if command not in ("", "assemble", "start", "forget"):
        print(f"Unknown command: {command}")
        print("Usage: codexmod [assemble|start|forget]")
        sys.exit(2)

    logging.basicConfig(format=_LOG_FORMAT, level=logging.WARNING)
    logging.getLogger("codexmod").setLevel(logging.DEBUG)

    from .settings import load_settings

    try:
        cfg = load_settings()
    except ValueError as e:
        print(f"Error: {e}\n")
        print("Check your environment / settings.toml configuration.")
        sys.exit(1)

    if command == "forget":
        _forget(cfg)
        return

    # SIGTERM stops session observation only; Codex keeps running.
    cancel_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: cancel_event.set())
    try:
        if command in ("", "assemble"):
            _assemble(cfg)
        if command in ("", "start"):
            _start(cfg, cancel_event)
    except MalformedConfig as e:
        print(f"Error: {e}")
        print("No config was written.")
        sys.exit(1)
    except LaunchError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("Interrupted; Codex was left running")


if __name__ == "__main__":
    main()
