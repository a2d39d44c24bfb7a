from __future__ import annotations

from pathlib import Path

import allure
import pytest

from pit.config import ConfigProvider, Settings, data_dir

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Settings"),
]


def test_defaults(tmp_path: Path) -> None:
    settings = Settings.from_env(environ={"PIT_DATA_DIR": str(tmp_path)})

    assert settings.pit_dir_name == ".pit"
    assert settings.db_file_name == "pit.db"
    assert settings.sqlite_busy_timeout_ms == 5_000
    assert settings.log_level == "WARNING"
    assert settings.workspace.branch_prefix == "pit"
    assert settings.sessions.socket_name == "pit"
    assert settings.sessions.config_dir == tmp_path
    assert settings.sessions.shell == "/bin/sh"
    assert settings.agents.default_agent == "claude"


def test_environment_overrides(tmp_path: Path) -> None:
    settings = Settings.from_env(
        repo_root=tmp_path,
        environ={
            "PIT_DATA_DIR": str(tmp_path / "data"),
            "PIT_SQLITE_BUSY_TIMEOUT_MS": "750",
            "PIT_LOG_LEVEL": "debug",
            "PIT_BRANCH_PREFIX": "agents/",
            "PIT_TMUX_SOCKET": "pit-ci",
            "PIT_DEFAULT_AGENT": "Codex",
            "SHELL": "/bin/zsh",
        },
    )

    assert settings.repo_root == tmp_path
    assert settings.sqlite_busy_timeout_ms == 750
    assert settings.log_level == "DEBUG"
    assert settings.workspace.branch_prefix == "agents"
    assert settings.sessions.socket_name == "pit-ci"
    assert settings.sessions.shell == "/bin/zsh"
    assert settings.agents.default_agent == "codex"


def test_default_agent_comes_from_config_file(tmp_path: Path) -> None:
    (tmp_path / "config.toml").write_text('[agent]\ndefault = "aider"\n', encoding="utf-8")

    settings = Settings.from_env(environ={"PIT_DATA_DIR": str(tmp_path)})

    assert settings.agents.default_agent == "aider"


def test_config_provider_prefers_environment(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text('[linear]\napi_key = "from-file"\n[agent]\ndefault = "pi"\n', "utf-8")

    provider = ConfigProvider(path, {"LINEAR_API_KEY": "from-env"})

    assert ConfigProvider.env_name("linear.api_key") == "LINEAR_API_KEY"
    assert provider.get("linear.api_key") == "from-env"
    assert provider.get("agent.default") == "pi"
    assert provider.get("missing.key") is None


def test_missing_config_file_is_empty(tmp_path: Path) -> None:
    assert ConfigProvider(tmp_path / "absent.toml", {}).get("agent.default") is None


def test_invalid_config_file_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("[agent\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid config file"):
        ConfigProvider(path, {}).get("agent.default")


@pytest.mark.parametrize("raw", ["soon", "0", "-5"])
def test_invalid_busy_timeout_names_the_variable(tmp_path: Path, raw: str) -> None:
    with pytest.raises(ValueError, match="PIT_SQLITE_BUSY_TIMEOUT_MS"):
        Settings.from_env(
            environ={"PIT_DATA_DIR": str(tmp_path), "PIT_SQLITE_BUSY_TIMEOUT_MS": raw},
        )


def test_data_dir_resolution(tmp_path: Path) -> None:
    assert data_dir({"PIT_DATA_DIR": str(tmp_path)}) == tmp_path
    assert data_dir({"XDG_DATA_HOME": str(tmp_path)}) == tmp_path / "pit"
    assert data_dir({}) == Path.home() / ".local" / "share" / "pit"


def test_pit_default_agent_wins_over_config_key(tmp_path: Path) -> None:
    (tmp_path / "config.toml").write_text('[agent]\ndefault = "aider"\n', encoding="utf-8")
    environ = {"PIT_DATA_DIR": str(tmp_path), "AGENT_DEFAULT": "goose"}

    assert Settings.from_env(environ=environ).agents.default_agent == "goose"

    environ["PIT_DEFAULT_AGENT"] = "Pi"
    assert Settings.from_env(environ=environ).agents.default_agent == "pi"
