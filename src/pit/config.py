"""Runtime configuration for pit."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from pit.core.dispatch import DEFAULT_AGENT


def data_dir(environ: Mapping[str, str] | None = None) -> Path:
    """Host-level directory for pit's tmux config and user config file."""

    env = os.environ if environ is None else environ
    override = env.get("PIT_DATA_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    xdg = env.get("XDG_DATA_HOME", "").strip()
    base = Path(xdg).expanduser() if xdg else Path.home() / ".local" / "share"
    return base / "pit"


class ConfigProvider:
    """Read-only lookup of dotted keys such as ``agent.default``.

    The environment wins (``agent.default`` -> ``AGENT_DEFAULT``), then the
    ``[section] key`` entry of ``config.toml``. Values are opaque strings.
    """

    def __init__(self, path: Path, environ: Mapping[str, str] | None = None) -> None:
        self.path = path
        self._environ = os.environ if environ is None else environ
        self._file_values: dict[str, str] | None = None

    @staticmethod
    def env_name(key: str) -> str:
        return key.replace(".", "_").replace("-", "_").upper()

    def get(self, key: str) -> str | None:
        from_env = self._environ.get(self.env_name(key))
        if from_env:
            return from_env
        return self._load().get(key)

    def _load(self) -> dict[str, str]:
        if self._file_values is None:
            self._file_values = _read_config_file(self.path)
        return self._file_values


@dataclass(slots=True)
class WorkspaceSettings:
    """Branch naming for task workspaces."""

    branch_prefix: str = "pit"


@dataclass(slots=True)
class SessionSettings:
    """Dedicated tmux server settings."""

    socket_name: str = "pit"
    config_dir: Path = field(default_factory=data_dir)
    shell: str = "/bin/sh"


@dataclass(slots=True)
class AgentSettings:
    default_agent: str = DEFAULT_AGENT.value


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern, resolved once at startup."""

    repo_root: Path | None = None
    pit_dir_name: str = ".pit"
    db_file_name: str = "pit.db"
    sqlite_busy_timeout_ms: int = 5_000
    log_level: str = "WARNING"
    workspace: WorkspaceSettings = field(default_factory=WorkspaceSettings)
    sessions: SessionSettings = field(default_factory=SessionSettings)
    agents: AgentSettings = field(default_factory=AgentSettings)

    @classmethod
    def from_env(
        cls,
        repo_root: Path | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> Settings:
        """Load settings from the environment and the user config file."""

        env = os.environ if environ is None else environ
        host_dir = data_dir(env)
        provider = ConfigProvider(host_dir / "config.toml", env)
        default_agent = (
            env.get("PIT_DEFAULT_AGENT") or provider.get("agent.default") or DEFAULT_AGENT.value
        )
        return cls(
            repo_root=repo_root,
            sqlite_busy_timeout_ms=_env_int(env, "PIT_SQLITE_BUSY_TIMEOUT_MS", 5_000),
            log_level=env.get("PIT_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
            workspace=WorkspaceSettings(
                branch_prefix=env.get("PIT_BRANCH_PREFIX", "pit").strip().strip("/") or "pit",
            ),
            sessions=SessionSettings(
                socket_name=env.get("PIT_TMUX_SOCKET", "pit").strip() or "pit",
                config_dir=host_dir,
                shell=env.get("SHELL", "/bin/sh") or "/bin/sh",
            ),
            agents=AgentSettings(default_agent=default_agent.strip().lower()),
        )


def _read_config_file(path: Path) -> dict[str, str]:
    try:
        with path.open("rb") as handle:
            raw = tomllib.load(handle)
    except FileNotFoundError:
        return {}
    except tomllib.TOMLDecodeError as error:
        raise ValueError(f"Invalid config file {path}: {error}") from error

    values: dict[str, str] = {}
    for section, entries in raw.items():
        if isinstance(entries, dict):
            for key, value in entries.items():
                values[f"{section}.{key}"] = str(value)
        else:
            values[section] = str(entries)
    return values


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as error:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from error
    if value <= 0:
        raise ValueError(f"{name} must be > 0.")
    return value
