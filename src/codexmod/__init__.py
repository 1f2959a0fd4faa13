"""codexmod - provisions and starts the Codex CLI inside a workspace.

Assembles the agent's config.toml and AGENTS.md from layered sources and
keeps the agent's conversation resumable across restarts of the workspace
by tracking the session id Codex assigns on first launch.

Package entry point. Exports the version string only; functional modules
are imported lazily by main.py.
"""

__version__ = "0.1.0"
