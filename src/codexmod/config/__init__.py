"""Config assembly: TOML section merging and AGENTS.md injection."""
