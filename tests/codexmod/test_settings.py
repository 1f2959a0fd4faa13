"""Tests for settings.py — ModuleConfig and load_settings."""

from pathlib import Path

import pytest

from codexmod.settings import DEFAULT_SYSTEM_PROMPT, ModuleConfig, load_settings


class TestModuleConfig:
    def test_derived_paths(self, tmp_path: Path):
        cfg = ModuleConfig(codex_home=tmp_path / ".codex", module_dir=tmp_path / "mod")
        assert cfg.config_file == tmp_path / ".codex" / "config.toml"
        assert cfg.prompt_file == tmp_path / ".codex" / "AGENTS.md"
        assert cfg.sessions_dir == tmp_path / ".codex" / "sessions"
        assert cfg.tracking_file == tmp_path / "mod" / ".codex-task-session"
        assert cfg.start_log_file == tmp_path / "mod" / "agentapi-start.log"

    def test_defaults(self):
        cfg = ModuleConfig()
        assert cfg.codex_command == "codex"
        assert cfg.launcher == "subprocess"
        assert cfg.continue_session is True
        assert cfg.system_prompt == DEFAULT_SYSTEM_PROMPT
        assert cfg.session_poll_interval == 1.0
        assert cfg.session_poll_attempts == 30


class TestLoadSettings:
    def test_defaults_without_sources(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("CODEX_HOME", raising=False)
        monkeypatch.chdir(tmp_path)
        cfg = load_settings(module_dir=tmp_path / "mod")
        assert cfg.workdir == tmp_path
        assert cfg.model == ""
        assert cfg.codex_home == Path.home() / ".codex"
        assert cfg.module_dir == tmp_path / "mod"
        assert cfg.system_prompt == DEFAULT_SYSTEM_PROMPT

    def test_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CODEX_WORKDIR", "/home/coder/project")
        monkeypatch.setenv("CODEX_MODEL", "gpt-4-turbo")
        monkeypatch.setenv("CODEX_CONTINUE", "false")
        monkeypatch.setenv("CODEX_TASK_PROMPT", "fix the bug")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("CODEX_HOME", str(tmp_path / "home"))
        cfg = load_settings(module_dir=tmp_path)
        assert cfg.workdir == Path("/home/coder/project")
        assert cfg.model == "gpt-4-turbo"
        assert cfg.continue_session is False
        assert cfg.task_prompt == "fix the bug"
        assert cfg.openai_api_key == "sk-test"
        assert cfg.codex_home == tmp_path / "home"

    def test_empty_system_prompt_disables_prompt(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setenv("CODEX_SYSTEM_PROMPT", "")
        assert load_settings(module_dir=tmp_path).system_prompt == ""

    def test_settings_toml(self, tmp_path: Path):
        (tmp_path / "settings.toml").write_text(
            '[module]\nmodel = "o3"\ncontinue_session = false\nsession_poll_attempts = 5\n'
            'base_config_toml = """\nsandbox_mode = "read-only"\n"""\n'
        )
        cfg = load_settings(module_dir=tmp_path)
        assert cfg.model == "o3"
        assert cfg.continue_session is False
        assert cfg.session_poll_attempts == 5
        assert 'sandbox_mode = "read-only"' in cfg.base_config_toml

    def test_env_overrides_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        (tmp_path / "settings.toml").write_text('[module]\nmodel = "o3"\n')
        monkeypatch.setenv("CODEX_MODEL", "gpt-5")
        assert load_settings(module_dir=tmp_path).model == "gpt-5"

    def test_dotenv_in_module_dir(self, tmp_path: Path):
        (tmp_path / ".env").write_text("CODEX_MODEL=from-dotenv\n")
        assert load_settings(module_dir=tmp_path).model == "from-dotenv"

    def test_invalid_launcher(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CODEX_LAUNCHER", "docker")
        with pytest.raises(ValueError, match="launcher"):
            load_settings(module_dir=tmp_path)

    def test_tmux_launcher(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CODEX_LAUNCHER", "TMUX")
        assert load_settings(module_dir=tmp_path).launcher == "tmux"

    def test_invalid_poll_attempts(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CODEX_SESSION_POLL_ATTEMPTS", "many")
        with pytest.raises(ValueError, match="polling"):
            load_settings(module_dir=tmp_path)

    def test_non_positive_poll_interval(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CODEX_SESSION_POLL_INTERVAL", "0")
        with pytest.raises(ValueError, match="positive"):
            load_settings(module_dir=tmp_path)

    def test_invalid_bool(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CODEX_CONTINUE", "maybe")
        with pytest.raises(ValueError, match="continue_session"):
            load_settings(module_dir=tmp_path)

    def test_module_table_must_be_table(self, tmp_path: Path):
        (tmp_path / "settings.toml").write_text('module = "oops"\n')
        with pytest.raises(ValueError, match="must be a table"):
            load_settings(module_dir=tmp_path)
