"""Session manager wrapping a dedicated tmux server."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from pit.core.errors import SessionKillFailed, SessionNotFound, SessionSpawnFailed

logger = logging.getLogger(__name__)

AGENT_SESSION_PREFIX = "pit-"
SHELL_SESSION_PREFIX = "pit-shell-"

TMUX_CONF = """\
# pit tmux config: prefix is Ctrl-]
unbind C-b
set -g prefix C-]
bind C-] send-prefix
bind d detach-client

# Status bar with detach hint
set -g status on
set -g status-style 'bg=#1a1a2e,fg=#888888'
set -g status-left '#[fg=#e0af68,bold] pit #[fg=#555555]| '
set -g status-left-length 20
set -g status-right '#[fg=#555555]| #[fg=#e0af68]Ctrl-] d#[fg=#888888] to detach '
set -g status-right-length 40

# Terminal settings
set -g default-terminal 'xterm-256color'
set -ga terminal-overrides ',xterm-256color:Tc'
set -g mouse on
"""

# Messages tmux prints when the dedicated server has never been started or
# has exited together with its last session.
_NO_SERVER_MARKERS = ("no server running", "error connecting to", "no such file or directory")


def session_name_for(task_name: str) -> str:
    return f"{AGENT_SESSION_PREFIX}{task_name}"


def shell_session_name_for(task_name: str) -> str:
    return f"{SHELL_SESSION_PREFIX}{task_name}"


def ensure_tmux_config(config_dir: Path) -> Path:
    """Write the pit tmux config if missing or outdated and return its path."""

    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "tmux.conf"
    try:
        current = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        current = None
    if current != TMUX_CONF:
        config_path.write_text(TMUX_CONF, encoding="utf-8")
    return config_path


class TmuxSessionManager:
    """Create, list, attach and kill sessions on one isolated tmux server.

    The server is addressed by its own socket name (``tmux -L``), so pit never
    sees or collides with sessions on the user's default server, and it is
    started with pit's config file so the detach binding works regardless of
    the user's ``~/.tmux.conf``.
    """

    def __init__(
        self,
        *,
        socket_name: str = "pit",
        config_dir: Path | None = None,
        executable: str = "tmux",
    ) -> None:
        self.socket_name = socket_name
        self.config_dir = config_dir
        self.executable = executable

    def create(self, session_name: str, working_dir: Path, command: list[str]) -> None:
        """Spawn ``command`` as the session's only process, then attach."""

        self.launch_background(session_name, working_dir, command)
        self.attach(session_name)

    def launch_background(self, session_name: str, working_dir: Path, command: list[str]) -> None:
        """Spawn a detached session running ``command`` directly (no wrapping shell).

        When the command exits the session ends with it, which is what makes
        ``list_live`` a reliable liveness signal.
        """

        if not command:
            raise SessionSpawnFailed(f"Refusing to start {session_name!r} with an empty command.")
        try:
            result = self._run(
                "new-session",
                "-d",
                "-s",
                session_name,
                "-c",
                str(working_dir),
                "--",
                *command,
            )
        except OSError as error:
            raise SessionSpawnFailed(f"Could not run tmux: {error}") from error
        if result.returncode != 0:
            raise SessionSpawnFailed(
                f"tmux new-session {session_name!r} failed: {result.stderr.strip()}",
            )
        logger.info("Started tmux session %s in %s", session_name, working_dir)

    def attach(self, session_name: str) -> int:
        """Attach in the foreground; returns when the user detaches."""

        if not self.exists(session_name):
            raise SessionNotFound(session_name)
        env = os.environ.copy()
        # Allows attaching from inside another tmux client.
        env.pop("TMUX", None)
        completed = subprocess.run(
            [*self._base_args(), "attach-session", "-t", f"={session_name}"],
            env=env,
            check=False,
        )
        return completed.returncode

    def list_live(self) -> set[str]:
        """Names of live sessions; empty when the server (or tmux) is absent."""

        try:
            result = self._run("list-sessions", "-F", "#{session_name}")
        except FileNotFoundError:
            logger.debug("tmux executable %r not found; no live sessions", self.executable)
            return set()
        if result.returncode != 0:
            stderr = result.stderr.strip()
            if not any(marker in stderr.lower() for marker in _NO_SERVER_MARKERS):
                logger.warning("tmux list-sessions failed: %s", stderr)
            return set()
        return {line.strip() for line in result.stdout.splitlines() if line.strip()}

    def exists(self, session_name: str) -> bool:
        try:
            result = self._run("has-session", "-t", f"={session_name}")
        except FileNotFoundError:
            return False
        return result.returncode == 0

    def kill(self, session_name: str) -> bool:
        """Force-terminate a session. Returns ``False`` if it was not live."""

        if not self.exists(session_name):
            return False
        result = self._run("kill-session", "-t", f"={session_name}")
        if result.returncode != 0 and self.exists(session_name):
            raise SessionKillFailed(session_name, result.stderr)
        logger.info("Killed tmux session %s", session_name)
        return True

    def capture(self, session_name: str, lines: int = 30) -> str:
        """Return the last ``lines`` lines of the session's pane."""

        result = self._run(
            "capture-pane",
            "-p",
            "-t",
            f"={session_name}:",
            "-S",
            f"-{max(1, lines)}",
        )
        if result.returncode != 0:
            raise SessionNotFound(session_name)
        return result.stdout

    def _base_args(self) -> list[str]:
        args = [self.executable]
        if self.config_dir is not None:
            try:
                args.extend(["-f", str(ensure_tmux_config(self.config_dir))])
            except OSError as error:
                logger.warning("Could not write tmux config in %s: %s", self.config_dir, error)
        args.extend(["-L", self.socket_name])
        return args

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        command = [*self._base_args(), *args]
        logger.debug("%s", " ".join(command))
        return subprocess.run(command, capture_output=True, text=True, check=False)
