"""Root conftest — isolates codexmod from the real environment.

CODEX_HOME and CODEX_MODULE_DIR are force-set before any codexmod module is
imported so default paths never point at the developer's ~/.codex.  Every
other setting variable is removed per test, and the environment is restored
afterwards because load_dotenv() writes straight into os.environ.
"""

import os
import tempfile

import pytest

_TEST_ROOT = tempfile.mkdtemp(prefix="codexmod-test-")
os.environ["CODEX_HOME"] = os.path.join(_TEST_ROOT, "codex")
os.environ["CODEX_MODULE_DIR"] = os.path.join(_TEST_ROOT, "codex-module")

_SETTING_VARS = (
    "CODEX_WORKDIR",
    "CODEX_MODEL",
    "CODEX_COMMAND",
    "CODEX_LAUNCHER",
    "CODEX_TMUX_SESSION",
    "OPENAI_API_KEY",
    "CODEX_BASE_CONFIG_TOML",
    "CODEX_ADDITIONAL_MCP_SERVERS",
    "CODEX_SYSTEM_PROMPT",
    "CODEX_TASK_PROMPT",
    "CODER_MCP_APP_STATUS_SLUG",
    "CODER_MCP_AI_AGENTAPI_URL",
    "CODEX_CONTINUE",
    "CODEX_SESSION_POLL_INTERVAL",
    "CODEX_SESSION_POLL_ATTEMPTS",
)


@pytest.fixture(autouse=True)
def _isolated_env():
    saved = dict(os.environ)
    for name in _SETTING_VARS:
        os.environ.pop(name, None)
    yield
    os.environ.clear()
    os.environ.update(saved)
