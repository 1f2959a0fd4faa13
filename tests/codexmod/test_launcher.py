"""Tests for launcher.py — SubprocessLauncher and TmuxLauncher."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from codexmod.errors import LaunchError
from codexmod.launcher import SubprocessLauncher, TmuxLauncher


class TestSubprocessLauncher:
    def test_missing_command_raises(self, tmp_path: Path):
        launcher = SubprocessLauncher(tmp_path / "start.log")
        with pytest.raises(LaunchError, match="Command not found"):
            launcher.launch(["definitely-not-a-real-codex-binary"], tmp_path)

    def test_empty_argv_raises(self, tmp_path: Path):
        with pytest.raises(LaunchError):
            SubprocessLauncher(tmp_path / "start.log").launch([], tmp_path)

    def test_popen_detached_with_log(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "start.log"
        launcher = SubprocessLauncher(log_file)
        with (
            patch("codexmod.launcher.shutil.which", return_value="/usr/bin/codex"),
            patch("codexmod.launcher.subprocess.Popen") as mock_popen,
        ):
            mock_popen.return_value.pid = 4242
            launcher.launch(["codex", "--model", "o3"], tmp_path, {"OPENAI_API_KEY": "sk"})

        args, kwargs = mock_popen.call_args
        assert args[0] == ["codex", "--model", "o3"]
        assert kwargs["cwd"] == tmp_path
        assert kwargs["start_new_session"] is True
        assert kwargs["stderr"] is subprocess.STDOUT
        assert kwargs["env"]["OPENAI_API_KEY"] == "sk"
        assert log_file.exists()

    def test_popen_oserror_wrapped(self, tmp_path: Path):
        launcher = SubprocessLauncher(tmp_path / "start.log")
        with (
            patch("codexmod.launcher.shutil.which", return_value="/usr/bin/codex"),
            patch("codexmod.launcher.subprocess.Popen", side_effect=PermissionError("denied")),
        ):
            with pytest.raises(LaunchError, match="denied"):
                launcher.launch(["codex"], tmp_path)

    def test_runs_real_process(self, tmp_path: Path):
        log_file = tmp_path / "start.log"
        SubprocessLauncher(log_file).launch(["true"], tmp_path)
        assert log_file.exists()


class TestTmuxLauncher:
    def test_no_tmux_raises(self, tmp_path: Path):
        with patch("codexmod.launcher.shutil.which", return_value=None):
            with pytest.raises(LaunchError, match="tmux"):
                TmuxLauncher().launch(["codex"], tmp_path)

    def test_creates_session_and_sends_command(self, tmp_path: Path):
        launcher = TmuxLauncher(session_name="ws", window_name="codex")
        server = MagicMock()
        server.sessions.get.side_effect = Exception("no session")
        pane = server.new_session.return_value.windows[0].active_pane
        launcher._server = server

        with patch("codexmod.launcher.shutil.which", return_value="/usr/bin/tmux"):
            launcher.launch(["codex", "--model", "o3", "fix it"], tmp_path, {"OPENAI_API_KEY": "sk-secret"})

        server.new_session.assert_called_once_with(
            session_name="ws",
            window_name="codex",
            start_directory=str(tmp_path),
            environment={"OPENAI_API_KEY": "sk-secret"},
        )
        pane.send_keys.assert_called_once_with("codex --model o3 'fix it'", enter=True)
        sent = pane.send_keys.call_args.args[0]
        assert "sk-secret" not in sent
        assert "OPENAI_API_KEY" not in sent

    def test_reuses_existing_session(self, tmp_path: Path):
        launcher = TmuxLauncher(session_name="ws")
        server = MagicMock()
        session = server.sessions.get.return_value
        launcher._server = server

        with patch("codexmod.launcher.shutil.which", return_value="/usr/bin/tmux"):
            launcher.launch(["codex"], tmp_path)

        server.new_session.assert_not_called()
        session.new_window.assert_called_once_with(
            window_name="codex", start_directory=str(tmp_path), environment={}
        )
        session.new_window.return_value.active_pane.send_keys.assert_called_once_with(
            "codex", enter=True
        )
