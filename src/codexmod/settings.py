"""Module settings — reads .env + settings.toml + environment into ModuleConfig.

Layering (later wins):
  1. built-in defaults
  2. ``[module]`` table of ``<module_dir>/settings.toml`` (optional)
  3. environment variables (after loading ``.env`` from cwd, then module_dir)

Key entities:
  - ModuleConfig: frozen dataclass with every resolved input for one workspace.
  - load_settings(): produce a ModuleConfig.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .utils import codex_home_dir, module_dir as default_module_dir

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """\
You are a helpful Coding assistant. Aim to autonomously investigate
and solve issues the user gives you and test your work, whenever possible.
Avoid shortcuts like mocking tests. When you get stuck, you can ask the user
but opt for autonomy."""

LAUNCHERS = frozenset({"subprocess", "tmux"})

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})

# ---------------------------------------------------------------------------
# ModuleConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModuleConfig:
    """Resolved configuration for provisioning and starting Codex.

    Passed explicitly through the assembler and the continuity manager;
    nothing downstream reads the environment on its own.
    """

    # Agent
    workdir: Path = field(default_factory=Path.cwd)
    model: str = ""
    codex_command: str = "codex"
    launcher: str = "subprocess"
    tmux_session_name: str = "codex"
    openai_api_key: str = ""

    # Config inputs
    base_config_toml: str = ""
    additional_mcp_servers: str = ""
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    task_prompt: str = ""

    # Platform integration
    app_status_slug: str = "codex"
    agentapi_url: str = "http://localhost:3284"

    # Continuity
    continue_session: bool = True
    session_poll_interval: float = 1.0
    session_poll_attempts: int = 30

    # Paths
    codex_home: Path = field(default_factory=codex_home_dir)
    module_dir: Path = field(default_factory=default_module_dir)

    @property
    def config_file(self) -> Path:
        return self.codex_home / "config.toml"

    @property
    def prompt_file(self) -> Path:
        return self.codex_home / "AGENTS.md"

    @property
    def sessions_dir(self) -> Path:
        return self.codex_home / "sessions"

    @property
    def tracking_file(self) -> Path:
        return self.module_dir / ".codex-task-session"

    @property
    def start_log_file(self) -> Path:
        return self.module_dir / "agentapi-start.log"


# ---------------------------------------------------------------------------
# load_settings
# ---------------------------------------------------------------------------

# field name -> environment variable
_ENV_KEYS = {
    "workdir": "CODEX_WORKDIR",
    "model": "CODEX_MODEL",
    "codex_command": "CODEX_COMMAND",
    "launcher": "CODEX_LAUNCHER",
    "tmux_session_name": "CODEX_TMUX_SESSION",
    "openai_api_key": "OPENAI_API_KEY",
    "base_config_toml": "CODEX_BASE_CONFIG_TOML",
    "additional_mcp_servers": "CODEX_ADDITIONAL_MCP_SERVERS",
    "system_prompt": "CODEX_SYSTEM_PROMPT",
    "task_prompt": "CODEX_TASK_PROMPT",
    "app_status_slug": "CODER_MCP_APP_STATUS_SLUG",
    "agentapi_url": "CODER_MCP_AI_AGENTAPI_URL",
    "continue_session": "CODEX_CONTINUE",
    "session_poll_interval": "CODEX_SESSION_POLL_INTERVAL",
    "session_poll_attempts": "CODEX_SESSION_POLL_ATTEMPTS",
    "codex_home": "CODEX_HOME",
}


def _parse_bool(key: str, value: object) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"{key}: expected a boolean, got {value!r}")


def _read_toml_table(toml_path: Path) -> dict:
    """Return the [module] table of settings.toml, or {} if there is none."""
    if not toml_path.is_file():
        return {}
    with open(toml_path, "rb") as f:
        raw = tomllib.load(f)
    table = raw.get("module", {})
    if not isinstance(table, dict):
        raise ValueError(f"{toml_path}: [module] must be a table.")
    return table


def load_settings(module_dir: Path | None = None) -> ModuleConfig:
    """Read .env + settings.toml + environment and return a ModuleConfig.

    Args:
        module_dir: Override for the module state directory.
                    Defaults to ``$CODEX_MODULE_DIR`` or ``~/.codex-module``.

    Raises:
        ValueError: If a value cannot be converted or is out of range.
    """
    if module_dir is None:
        module_dir = default_module_dir()

    # Load .env files (local cwd first, then module_dir)
    local_env = Path(".env")
    module_env = module_dir / ".env"
    if local_env.is_file():
        load_dotenv(local_env)
    if module_env.is_file():
        load_dotenv(module_env)

    toml_values = _read_toml_table(module_dir / "settings.toml")

    def _get(key: str, default):
        """Environment > settings.toml > default."""
        env_name = _ENV_KEYS[key]
        if env_name in os.environ:
            return os.environ[env_name]
        return toml_values.get(key, default)

    launcher = str(_get("launcher", "subprocess")).strip().lower()
    if launcher not in LAUNCHERS:
        raise ValueError(
            f"launcher must be one of {sorted(LAUNCHERS)}, got {launcher!r}"
        )

    try:
        poll_interval = float(_get("session_poll_interval", 1.0))
        poll_attempts = int(_get("session_poll_attempts", 30))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid session polling setting: {e}") from e
    if poll_interval <= 0 or poll_attempts <= 0:
        raise ValueError("session_poll_interval and session_poll_attempts must be positive.")

    workdir_raw = str(_get("workdir", "")).strip()
    workdir = Path(os.path.expanduser(workdir_raw)) if workdir_raw else Path.cwd()

    home_raw = str(_get("codex_home", "")).strip()
    codex_home = Path(os.path.expanduser(home_raw)) if home_raw else Path.home() / ".codex"

    cfg = ModuleConfig(
        workdir=workdir,
        model=str(_get("model", "")).strip(),
        codex_command=str(_get("codex_command", "codex")).strip() or "codex",
        launcher=launcher,
        tmux_session_name=str(_get("tmux_session_name", "codex")),
        openai_api_key=str(_get("openai_api_key", "")),
        base_config_toml=str(_get("base_config_toml", "")),
        additional_mcp_servers=str(_get("additional_mcp_servers", "")),
        system_prompt=str(_get("system_prompt", DEFAULT_SYSTEM_PROMPT)),
        task_prompt=str(_get("task_prompt", "")),
        app_status_slug=str(_get("app_status_slug", "codex")),
        agentapi_url=str(_get("agentapi_url", "http://localhost:3284")),
        continue_session=_parse_bool("continue_session", _get("continue_session", True)),
        session_poll_interval=poll_interval,
        session_poll_attempts=poll_attempts,
        codex_home=codex_home,
        module_dir=module_dir,
    )
    logger.debug("Loaded settings: workdir=%s model=%r", cfg.workdir, cfg.model)
    return cfg
