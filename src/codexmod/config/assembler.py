"""config.toml assembly — composes Codex's config from layered TOML sources.

Layers, in merge order:
  1. _DEFAULT_CONFIG (sandbox / approval defaults)
  2. the operator's base config (section-level override)
  3. the operator's additional MCP servers (section-level override)
  4. the platform [mcp_servers.Coder] section (always present, always wins)

The result is written atomically to ``$CODEX_HOME/config.toml`` and the
system prompt is injected into ``$CODEX_HOME/AGENTS.md``.  Re-running with
the same inputs produces the same files.

Key class: CodexConfigAssembler.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from ..utils import atomic_write_text
from .merger import ConfigDocument, merge, parse_document
from .prompt import inject_prompt

logger = logging.getLogger(__name__)

PLATFORM_SERVER_NAME = "Coder"
PLATFORM_SECTION = f"mcp_servers.{PLATFORM_SERVER_NAME}"

_DEFAULT_CONFIG = """\
sandbox_mode = "workspace-write"
approval_policy = "never"
preferred_auth_method = "apikey"

[sandbox_workspace_write]
network_access = true
"""

_PLATFORM_DESCRIPTION = (
    "Report ALL tasks and statuses (in progress, done, failed) you are working on."
)


def _toml_string(value: str) -> str:
    return json.dumps(str(value or ""))


def platform_fragment(app_status_slug: str, agentapi_url: str) -> str:
    """Render the [mcp_servers.Coder] section wiring Codex to the workspace."""
    env = ", ".join(
        [
            f"CODER_MCP_APP_STATUS_SLUG = {_toml_string(app_status_slug)}",
            f"CODER_MCP_AI_AGENTAPI_URL = {_toml_string(agentapi_url)}",
        ]
    )
    return (
        f"[{PLATFORM_SECTION}]\n"
        'command = "coder"\n'
        'args = ["exp", "mcp", "server"]\n'
        f"env = {{ {env} }}\n"
        f"description = {_toml_string(_PLATFORM_DESCRIPTION)}\n"
        'type = "stdio"\n'
    )


class CodexConfigAssembler:
    """Merges default, operator and platform TOML and writes config + prompt."""

    def __init__(
        self,
        config_path: Path,
        prompt_path: Path,
        base_config_toml: str = "",
        additional_mcp_servers: str = "",
        system_prompt: str = "",
        app_status_slug: str = "codex",
        agentapi_url: str = "http://localhost:3284",
    ) -> None:
        self.config_path = config_path
        self.prompt_path = prompt_path
        self.base_config_toml = base_config_toml
        self.additional_mcp_servers = additional_mcp_servers
        self.system_prompt = system_prompt
        self.app_status_slug = app_status_slug
        self.agentapi_url = agentapi_url

    def build_document(self) -> ConfigDocument:
        """Merge all layers.  Raises MalformedConfig on any invalid layer."""
        default = parse_document(_DEFAULT_CONFIG, "default config")
        fixed = parse_document(
            platform_fragment(self.app_status_slug, self.agentapi_url),
            "platform section",
        )

        doc = default
        if self.base_config_toml.strip():
            base = parse_document(self.base_config_toml, "base config")
            doc = merge(doc, base)
        if self.additional_mcp_servers.strip():
            extra = parse_document(self.additional_mcp_servers, "additional MCP servers")
            doc = merge(doc, extra)
        return merge(doc, fixed_append=fixed)

    def assemble(self) -> str:
        """Build the full config.toml content."""
        return self.build_document().render()

    def write(self) -> None:
        """Assemble and write config.toml, then inject the system prompt.

        The config is assembled completely before anything touches disk, so
        a MalformedConfig leaves both files as they were.
        """
        content = self.assemble()
        atomic_write_text(self.config_path, content)
        logger.info("Wrote Codex config to %s", self.config_path)

        inject_prompt(self.prompt_path, self.system_prompt)
